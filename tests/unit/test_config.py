"""Unit tests for Settings loading."""

import pytest

from neet_recall.config import Settings
from neet_recall.scheduling import SM2Config


class TestSettings:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("DEFAULT_USER_ID", raising=False)
        settings = Settings()

        assert settings.database_url.startswith("sqlite:///")
        assert settings.default_user_id == "local-user"
        assert settings.get_severity_thresholds() == {"high": 5, "medium": 3}
        assert settings.remediation_cache_ttl_days == 7

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SM2_MAX_INTERVAL", "180")
        monkeypatch.setenv("DEFAULT_USER_ID", "aspirant-7")

        settings = Settings()

        assert settings.default_user_id == "aspirant-7"
        assert SM2Config.from_settings(settings).max_interval == 180

    def test_scheduler_config_matches_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        assert SM2Config.from_settings(Settings()) == SM2Config()

    def test_invalid_log_level(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        with pytest.raises(ValueError):
            Settings()

    def test_remediation_ttl_must_be_positive(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("REMEDIATION_CACHE_TTL_DAYS", "0")
        with pytest.raises(ValueError):
            Settings()
