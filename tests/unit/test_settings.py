"""
Unit tests for application settings and wiring factories.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from src.adapters.storage import InMemoryStorage, JsonFileStorage
from src.api.main import create_registration, create_session, create_storage
from src.config.settings import Settings


class TestSettings:
    """Tests for Settings loading and validation."""

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.grace_window_seconds == 300
        assert settings.renew_window_seconds == 600
        assert settings.bootstrap_timeout_seconds == 5.0
        assert settings.verification_countdown_seconds == 600
        assert settings.storage_backend == "file"

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://shop.example.com/api")
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        settings = Settings(_env_file=None)
        assert settings.api_base_url == "https://shop.example.com/api"
        assert settings.storage_backend == "memory"

    def test_renew_window_must_exceed_grace_window(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, grace_window_seconds=600, renew_window_seconds=300)

    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, storage_backend="redis")


class TestFactories:
    """Tests for the lifespan wiring helpers."""

    def test_memory_backend(self) -> None:
        storage, pool = create_storage(Settings(_env_file=None, storage_backend="memory"))
        assert isinstance(storage, InMemoryStorage)
        assert pool is None

    def test_file_backend(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, storage_backend="file", storage_file=tmp_path / "s.json")
        storage, pool = create_storage(settings)
        assert isinstance(storage, JsonFileStorage)
        assert storage.path == tmp_path / "s.json"
        assert pool is None

    def test_session_uses_configured_windows(self) -> None:
        settings = Settings(
            _env_file=None,
            grace_window_seconds=60,
            renew_window_seconds=120,
            bootstrap_timeout_seconds=1.5,
        )
        session = create_session(settings, gateway=None, storage=InMemoryStorage())
        assert session.expiry.grace_window.total_seconds() == 60
        assert session.expiry.renew_window.total_seconds() == 120
        assert session.bootstrap_timeout == 1.5

    def test_registration_uses_configured_countdown(self) -> None:
        settings = Settings(_env_file=None, verification_countdown_seconds=90)
        session = create_session(settings, gateway=None, storage=InMemoryStorage())
        flow = create_registration(settings, gateway=None, session=session)
        assert flow.countdown.total_seconds() == 90
        assert flow.code_length == 6
