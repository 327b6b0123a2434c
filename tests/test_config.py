"""Tests for environment-bound settings."""

import pytest
from pydantic import ValidationError

from newsadmin.config import Environment, Settings, get_settings, reset_settings_cache


class TestSettingsFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_FAILED_LOGINS", "3")
        monkeypatch.setenv("LOCKOUT_MINUTES", "15")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example")

        settings = Settings.from_env()

        assert settings.max_failed_logins == 3
        assert settings.lockout_minutes == 15
        assert settings.cors_allow_origins == ["https://a.example", "https://b.example"]

    def test_defaults(self):
        settings = Settings(jwt_secret="x")

        assert settings.token_ttl_days == 7
        assert settings.max_failed_logins == 5
        assert settings.lockout_minutes == 120
        assert settings.admin_email == "admin@abhaya.com"
        assert settings.environment is Environment.DEVELOPMENT

    def test_environment_is_case_insensitive(self):
        assert Settings(jwt_secret="x", environment=" Production ").is_production

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
        first = get_settings()
        reset_settings_cache()
        assert get_settings() is not first


class TestSettingsValidation:
    def test_secret_generated_outside_production(self):
        settings = Settings(environment="development")
        assert settings.jwt_secret

    def test_secret_required_in_production(self):
        with pytest.raises(ValidationError):
            Settings(environment="production")

    def test_default_page_size_cannot_exceed_max(self):
        with pytest.raises(ValidationError):
            Settings(jwt_secret="x", default_page_size=50, max_page_size=10)

    @pytest.mark.parametrize("field", ["token_ttl_days", "max_failed_logins", "lockout_minutes"])
    def test_positive_values_required(self, field):
        with pytest.raises(ValidationError):
            Settings(jwt_secret="x", **{field: 0})

    def test_log_level_is_normalized(self):
        assert Settings(jwt_secret="x", log_level=" debug ").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(jwt_secret="x", log_level="chatty")
