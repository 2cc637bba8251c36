import pytest
from pydantic import ValidationError

from photo_pipeline.config.settings import Settings


class TestSettingsDefaults:
    def test_default_app_env(self) -> None:
        s = Settings()
        assert s.app_env == "dev"

    def test_default_db_port(self) -> None:
        s = Settings()
        assert s.db_port == 5432

    def test_default_size_ceilings(self) -> None:
        s = Settings()
        assert s.max_static_file_bytes == 10 * 1024 * 1024
        assert s.max_animated_file_bytes == 5 * 1024 * 1024
        assert s.min_file_bytes == 100

    def test_default_quota(self) -> None:
        s = Settings()
        assert s.user_storage_quota_bytes == 100 * 1024 * 1024

    def test_default_moderation_provider(self) -> None:
        s = Settings()
        assert s.moderation_provider == "example"
        assert s.moderation_unavailable_policy == "pending"

    def test_default_storage_backend(self) -> None:
        s = Settings()
        assert s.storage_backend == "local"
        assert s.storage_max_attempts == 3


class TestSettingsFromEnv:
    def test_loads_app_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_ENV", "production")
        s = Settings()
        assert s.app_env == "production"

    def test_loads_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        s = Settings()
        assert s.log_level == "DEBUG"

    def test_loads_moderation_profile(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MODERATION_PROFILE", "lenient")
        s = Settings()
        assert s.moderation_profile == "lenient"

    def test_loads_quota(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("USER_STORAGE_QUOTA_BYTES", "2048")
        s = Settings()
        assert s.user_storage_quota_bytes == 2048


class TestSettingsValidation:
    def test_invalid_db_port_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PORT", "not_a_number")
        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_quota_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("USER_STORAGE_QUOTA_BYTES", "lots")
        with pytest.raises(ValidationError):
            Settings()
