"""Storage adapters - Persistence media for the credential store."""

from .file import JsonFileStorage
from .memory import InMemoryStorage
from .postgres import PostgresStorage, run_migrations

__all__ = ["InMemoryStorage", "JsonFileStorage", "PostgresStorage", "run_migrations"]
