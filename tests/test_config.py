"""Tests for configuration system.

Tests the configuration module's ability to:
- Load settings from environment variables
- Use sensible defaults when not configured
- Validate configuration values
- Migrate legacy unprefixed environment variables
"""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from npc_bridge.__main__ import _migrate_legacy_env_vars
from npc_bridge.config import Config, get_config, reset_config, set_config


class TestConfigHappyPath:
    """Tests for normal configuration operation."""

    def test_default_values(self) -> None:
        """Defaults work when no config is set."""
        config = Config()

        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.gemini_api_key is None
        assert config.api_key == ""
        assert config.gemini_model == "gemini-1.5-flash"
        assert config.completion_timeout == 15.0
        assert config.history_limit == 20
        assert config.ping_interval == 30.0
        assert config.self_names == ["Eliz"]
        assert config.character_filter is None
        assert config.subscribe_events == ["PlayerMessage"]
        assert config.log_level == "INFO"

    def test_env_var_overrides(self) -> None:
        """Prefixed environment variables override defaults."""
        os.environ["NPC_BRIDGE_PORT"] = "9000"
        os.environ["NPC_BRIDGE_GEMINI_API_KEY"] = "secret"
        os.environ["NPC_BRIDGE_COMPLETION_TIMEOUT"] = "10"
        os.environ["NPC_BRIDGE_SELF_NAMES"] = '["Eliz", "Bob"]'

        config = Config()

        assert config.port == 9000
        assert config.api_key == "secret"
        assert config.completion_timeout == 10.0
        assert config.self_names == ["Eliz", "Bob"]

    def test_memory_and_connection_env_vars(self) -> None:
        os.environ["NPC_BRIDGE_GEMINI_BASE_URL"] = "http://localhost:9999/v1"
        os.environ["NPC_BRIDGE_HISTORY_LIMIT"] = "8"
        os.environ["NPC_BRIDGE_HISTORY_TURNS"] = "2"
        os.environ["NPC_BRIDGE_PING_INTERVAL"] = "5"
        os.environ["NPC_BRIDGE_CHARACTER_FILTER"] = "Eliz"
        os.environ["NPC_BRIDGE_SUBSCRIBE_EVENTS"] = '["PlayerMessage", "TitleChanged"]'

        config = Config()

        assert config.gemini_base_url == "http://localhost:9999/v1"
        assert config.history_limit == 8
        assert config.history_turns == 2
        assert config.ping_interval == 5.0
        assert config.character_filter == "Eliz"
        assert config.subscribe_events == ["PlayerMessage", "TitleChanged"]

    def test_log_level_case_insensitive(self) -> None:
        """Log level is normalized to uppercase."""
        os.environ["NPC_BRIDGE_LOG_LEVEL"] = "debug"

        config = Config()

        assert config.log_level == "DEBUG"

    def test_base_url_trailing_slash_stripped(self) -> None:
        config = Config(gemini_base_url="http://localhost:9999/v1beta/")

        assert config.gemini_base_url == "http://localhost:9999/v1beta"

    def test_to_dict_redacts_key(self) -> None:
        """API key never appears in the debug dictionary."""
        config = Config(gemini_api_key="super-secret")

        config_dict = config.to_dict()

        assert config_dict["gemini_api_key"] == "***"
        assert "super-secret" not in str(config_dict)
        assert "super-secret" not in repr(config)


class TestConfigValidation:
    """Tests for invalid configuration values."""

    @pytest.mark.parametrize("port", ["0", "70000", "not-a-port"])
    def test_invalid_port_rejected(self, port: str) -> None:
        os.environ["NPC_BRIDGE_PORT"] = port

        with pytest.raises(ValidationError):
            Config()

    def test_invalid_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Config(log_level="LOUD")

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Config(completion_timeout=0)


class TestConfigSingleton:
    """Tests for configuration singleton behavior."""

    def test_get_config_returns_same_instance(self) -> None:
        assert get_config() is get_config()

    def test_set_config_replaces_singleton(self) -> None:
        custom = Config(port=9999)

        set_config(custom)

        assert get_config() is custom

    def test_reset_config_reloads_from_env(self) -> None:
        first = get_config()
        os.environ["NPC_BRIDGE_PORT"] = "8181"

        reset_config()

        second = get_config()
        assert second is not first
        assert second.port == 8181


class TestLegacyEnvMigration:
    """Unprefixed PORT / GEMINI_API_KEY still configure the bridge."""

    def test_legacy_vars_are_migrated(self) -> None:
        os.environ["PORT"] = "3000"
        os.environ["GEMINI_API_KEY"] = "legacy-key"

        _migrate_legacy_env_vars()
        config = Config()

        assert config.port == 3000
        assert config.api_key == "legacy-key"

    def test_prefixed_var_wins(self) -> None:
        os.environ["PORT"] = "3000"
        os.environ["NPC_BRIDGE_PORT"] = "4000"

        _migrate_legacy_env_vars()

        assert Config().port == 4000
