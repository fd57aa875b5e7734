"""
Tests for the configuration module.
"""

from pathlib import Path

import pytest


class TestSettings:
    """Tests for Settings class."""

    def test_defaults(self):
        from config.settings import Settings

        settings = Settings(_env_file=None)

        assert settings.host == "0.0.0.0"
        assert settings.port == 8080
        assert settings.storage_backend == "auto"
        assert settings.attention_storage_key == "automation-attention-scores"
        assert settings.browsing_storage_key == "automation-browsing-signals"
        assert settings.search_debounce_seconds == pytest.approx(0.3)

    def test_environment_properties(self):
        from config.settings import Settings

        for env in ["development", "dev", "local"]:
            assert Settings(_env_file=None, environment=env).is_development is True
        for env in ["production", "prod"]:
            assert Settings(_env_file=None, environment=env).is_production is True

    def test_json_logs_follow_environment(self):
        from config.settings import Settings

        assert Settings(_env_file=None, environment="production").use_json_logs is True
        assert Settings(_env_file=None, environment="development").use_json_logs is False
        assert Settings(_env_file=None, environment="development", json_logs=True).use_json_logs is True

    def test_log_level_normalized(self):
        from config.settings import Settings

        assert Settings(_env_file=None, log_level=" debug ").log_level == "DEBUG"

    def test_storage_backend_validated(self):
        from pydantic import ValidationError

        from config.settings import Settings

        assert Settings(_env_file=None, storage_backend=" FILE ").storage_backend == "file"
        with pytest.raises(ValidationError):
            Settings(_env_file=None, storage_backend="sqlite")

    def test_storage_path_from_string(self):
        from config.settings import Settings

        settings = Settings(_env_file=None, storage_path="/tmp/state.json")

        assert settings.storage_path == Path("/tmp/state.json")

    def test_cors_origins_parsing(self):
        from config.settings import Settings

        settings = Settings(_env_file=None, cors_origins="http://localhost:3000, http://localhost:5173")

        assert settings.cors_origins == ["http://localhost:3000", "http://localhost:5173"]

    def test_negative_debounce_rejected(self):
        from pydantic import ValidationError

        from config.settings import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None, search_debounce_seconds=-1)

    def test_env_vars(self, monkeypatch):
        from config.settings import Settings

        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("AGGREGATE_WORKER_ENABLED", "false")

        settings = Settings(_env_file=None)

        assert settings.storage_backend == "memory"
        assert settings.aggregate_worker_enabled is False


class TestGetSettings:

    def test_cached(self):
        from config.settings import get_settings

        assert get_settings() is get_settings()

    def test_testing_overrides(self):
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing(port=9000)

        assert settings.environment == "testing"
        assert settings.storage_backend == "memory"
        assert settings.aggregate_worker_enabled is False
        assert settings.port == 9000


class TestConstants:

    def test_caps(self):
        from config.constants import (
            DEFAULT_ATTENTION_CONFIG,
            DEFAULT_BROWSING_CONFIG,
            MAX_DETECTED_NEEDS,
        )

        assert DEFAULT_ATTENTION_CONFIG.MAX_ENTRIES == 32
        assert DEFAULT_BROWSING_CONFIG.MAX_SIGNALS == 6
        assert MAX_DETECTED_NEEDS == 4

    def test_configs_are_frozen(self):
        from dataclasses import FrozenInstanceError

        from config.constants import DEFAULT_RELEVANCE_CONFIG

        with pytest.raises(FrozenInstanceError):
            DEFAULT_RELEVANCE_CONFIG.BASE_SCORE = 2.0
