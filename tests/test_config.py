"""Unit tests for settings defaults and environment overrides."""

from src.config import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.transition_max_attempts == 3
        assert settings.urgent_window_minutes == 60
        assert settings.default_trip_duration_hours == 3
        assert settings.sweep_interval_seconds == 60

    def test_only_the_async_database_url_is_configured(self):
        assert set(Settings.model_fields) == {
            "database_url",
            "redis_url",
            "transition_max_attempts",
            "urgent_window_minutes",
            "sweep_enabled",
            "sweep_interval_seconds",
            "default_trip_duration_hours",
        }

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("TRANSITION_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("SWEEP_ENABLED", "false")
        settings = Settings(_env_file=None)
        assert settings.transition_max_attempts == 5
        assert settings.sweep_enabled is False
