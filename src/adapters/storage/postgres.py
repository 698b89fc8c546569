"""
PostgreSQL storage adapter - Implements KeyValueStorage protocol.

This module provides a PostgreSQL-backed persistence medium for the
credential store using psycopg3 with raw SQL. Each client writes into
its own namespace of the ``client_storage`` table.
"""

import logging
from pathlib import Path

import psycopg
from psycopg_pool import ConnectionPool, PoolTimeout

from src.domain.exceptions import StorageFailure

logger = logging.getLogger(__name__)


class PostgresStorage:
    """
    Implements KeyValueStorage protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries. Driver errors surface as
    StorageFailure so the domain never sees psycopg types.
    """

    def __init__(self, pool: ConnectionPool, namespace: str = "default") -> None:
        """
        Initialize storage with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            namespace: Row namespace isolating this client's keys
        """
        self._pool = pool
        self._namespace = namespace

    def get_item(self, key: str) -> str | None:
        sql = "SELECT value FROM client_storage WHERE namespace = %s AND key = %s"
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (self._namespace, key))
                row = cursor.fetchone()
        except (psycopg.Error, PoolTimeout) as e:
            raise StorageFailure(f"read of {key!r} failed: {e}") from e
        return row[0] if row is not None else None

    def set_item(self, key: str, value: str) -> None:
        """Upsert a value. INSERT ... ON CONFLICT keeps the write atomic."""
        sql = """
            INSERT INTO client_storage (namespace, key, value, updated_at)
            VALUES (%s, %s, %s, NOW())
            ON CONFLICT (namespace, key) DO UPDATE
            SET value = EXCLUDED.value,
                updated_at = NOW()
        """
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (self._namespace, key, value))
                conn.commit()
        except (psycopg.Error, PoolTimeout) as e:
            raise StorageFailure(f"write of {key!r} failed: {e}") from e

    def remove_item(self, key: str) -> None:
        sql = "DELETE FROM client_storage WHERE namespace = %s AND key = %s"
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (self._namespace, key))
                conn.commit()
        except (psycopg.Error, PoolTimeout) as e:
            raise StorageFailure(f"delete of {key!r} failed: {e}") from e


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/storage/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
