"""
Unit tests for the JSON file and in-memory storage adapters.

Tests verify:
- Values survive a new adapter instance on the same file
- The document is private to its owner
- Corrupt documents are treated as empty
- Medium failures surface as StorageFailure
"""

import json
import os
import stat
from pathlib import Path

import pytest

from src.adapters.storage import InMemoryStorage, JsonFileStorage
from src.domain.credential_store import CredentialStore
from src.domain.exceptions import StorageFailure
from src.domain.models import UserProfile


@pytest.fixture
def path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "session.json"


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_missing_file_reads_as_empty(self, path: Path) -> None:
        assert JsonFileStorage(path).get_item("token") is None
        assert not path.exists()

    def test_values_survive_new_instance(self, path: Path) -> None:
        JsonFileStorage(path).set_item("token", "abc")
        assert JsonFileStorage(path).get_item("token") == "abc"

    def test_file_is_owner_only(self, path: Path) -> None:
        JsonFileStorage(path).set_item("token", "abc")
        mode = stat.S_IMODE(os.stat(path).st_mode)
        assert mode == 0o600

    def test_remove_item(self, path: Path) -> None:
        storage = JsonFileStorage(path)
        storage.set_item("token", "abc")
        storage.set_item("user", "{}")

        storage.remove_item("token")

        assert storage.get_item("token") is None
        assert json.loads(path.read_text()) == {"user": "{}"}

    def test_remove_missing_key_is_noop(self, path: Path) -> None:
        JsonFileStorage(path).remove_item("token")
        assert not path.exists()

    def test_corrupt_document_reads_as_empty(self, path: Path) -> None:
        path.parent.mkdir(parents=True)
        path.write_text("{truncated")
        storage = JsonFileStorage(path)

        assert storage.get_item("token") is None
        storage.set_item("token", "abc")
        assert storage.get_item("token") == "abc"

    def test_non_string_values_ignored(self, path: Path) -> None:
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"token": 123}))
        assert JsonFileStorage(path).get_item("token") is None

    def test_no_temp_files_left_behind(self, path: Path) -> None:
        storage = JsonFileStorage(path)
        storage.set_item("a", "1")
        storage.set_item("b", "2")
        assert sorted(p.name for p in path.parent.iterdir()) == ["session.json"]

    def test_unwritable_location_raises_storage_failure(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        storage = JsonFileStorage(blocker / "session.json")

        with pytest.raises(StorageFailure):
            storage.set_item("token", "abc")

    def test_credential_store_on_file(self, path: Path) -> None:
        """Credential store writes survive a restart on the file medium."""
        profile = UserProfile(id="u1", email="a@example.com")
        CredentialStore(JsonFileStorage(path)).put("tok", profile)

        assert CredentialStore(JsonFileStorage(path)).get() == ("tok", profile)


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    def test_initial_values(self) -> None:
        storage = InMemoryStorage({"token": "abc"})
        assert storage.get_item("token") == "abc"

    def test_snapshot_is_a_copy(self) -> None:
        storage = InMemoryStorage()
        storage.set_item("k", "v")
        snap = storage.snapshot()
        snap["k"] = "changed"
        assert storage.get_item("k") == "v"

    def test_remove_missing_key(self) -> None:
        storage = InMemoryStorage()
        storage.remove_item("missing")
        assert storage.snapshot() == {}
