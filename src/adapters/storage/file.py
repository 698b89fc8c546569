"""
JSON file storage adapter - Implements KeyValueStorage protocol.

Keeps every entry in one JSON document on disk, readable only by its
owner (0600). Writes go to a temporary sibling file that then replaces
the document, so a crash mid-write never leaves a truncated file.
"""

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path

from src.domain.exceptions import StorageFailure

logger = logging.getLogger(__name__)


class JsonFileStorage:
    """
    Implements KeyValueStorage protocol over a JSON file.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, path: Path) -> None:
        """
        Args:
            path: Location of the JSON document (created on first write)
        """
        self.path = Path(path).expanduser()

    def get_item(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if key in items:
            del items[key]
            self._save(items)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StorageFailure(f"cannot read {self.path}: {e}") from e
        except ValueError:
            logger.warning("Storage file %s is corrupt, starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, items: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".session-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(items, f, indent=2)
                os.chmod(tmp_name, 0o600)  # rw-------
                os.replace(tmp_name, self.path)
            except BaseException:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageFailure(f"cannot write {self.path}: {e}") from e
