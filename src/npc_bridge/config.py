"""Configuration management for the NPC chat bridge.

This module provides centralized configuration with support for:
- Environment variables (primary)
- Sensible defaults for all settings
- Type validation via Pydantic
- Easy testing through config overrides

Environment Variables:
    NPC_BRIDGE_HOST: Host the websocket server binds to (default: 0.0.0.0)
    NPC_BRIDGE_PORT: Port for websocket + health endpoints (default: 8080)
    NPC_BRIDGE_GEMINI_API_KEY: API key for the completion service
    NPC_BRIDGE_GEMINI_MODEL: Model name (default: gemini-1.5-flash)
    NPC_BRIDGE_GEMINI_BASE_URL: Completion API base URL
        (default: https://generativelanguage.googleapis.com/v1beta)
    NPC_BRIDGE_COMPLETION_TIMEOUT: Seconds to wait for a completion (default: 15)
    NPC_BRIDGE_HISTORY_LIMIT: Turns kept per character (default: 20)
    NPC_BRIDGE_HISTORY_TURNS: Prior turns threaded into each prompt (default: 6)
    NPC_BRIDGE_PING_INTERVAL: Seconds between liveness probes (default: 30)
    NPC_BRIDGE_SELF_NAMES: JSON list of senders treated as the bridge
        (default: ["Eliz"])
    NPC_BRIDGE_CHARACTER_FILTER: Only answer for this character name
    NPC_BRIDGE_SUBSCRIBE_EVENTS: JSON list of events subscribed on connect
        (default: ["PlayerMessage"])
    NPC_BRIDGE_LOG_LEVEL: Logging level (default: INFO)

Usage:
    from npc_bridge.config import get_config, Config

    config = get_config()
    port = config.port

    # For testing, create a custom config
    test_config = Config(port=9999, completion_timeout=0.5)
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class Config(BaseSettings):
    """Application configuration with environment variable support.

    All settings can be overridden via environment variables prefixed with
    NPC_BRIDGE_. For example, NPC_BRIDGE_PORT=9000 sets port to 9000.

    Attributes:
        host: Host address the websocket server binds to
        port: Port for the websocket server and HTTP health endpoints
        gemini_api_key: Credential for the completion service
        gemini_model: Completion model name
        gemini_base_url: Base URL of the completion API
        completion_timeout: Seconds before an in-flight completion is cancelled
        history_limit: Maximum turns kept per character
        history_turns: Prior turns threaded into each prompt
        ping_interval: Seconds between liveness probes
        self_names: Senders treated as the bridge itself
        character_filter: When set, only this character name is answered
        subscribe_events: Event names subscribed to on every connection
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    model_config = SettingsConfigDict(
        env_prefix="NPC_BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Network configuration
    host: str = Field(
        default="0.0.0.0",
        description="Host address the websocket server binds to",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port for the websocket server and health endpoints",
    )

    # Completion service
    gemini_api_key: SecretStr | None = Field(
        default=None,
        description="API key for the generative-language completion service",
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Completion model name",
    )
    gemini_base_url: str = Field(
        default=DEFAULT_GEMINI_BASE_URL,
        description="Base URL of the completion API",
    )
    completion_timeout: float = Field(
        default=15.0,
        gt=0,
        le=60,
        description="Seconds to wait for a completion before falling back",
    )

    # Conversation memory
    history_limit: int = Field(
        default=20,
        ge=1,
        description="Maximum conversation turns kept per character",
    )
    history_turns: int = Field(
        default=6,
        ge=0,
        description="Number of prior turns threaded into each prompt",
    )

    # Connections
    ping_interval: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between liveness probes of open connections",
    )
    self_names: list[str] = Field(
        default_factory=lambda: ["Eliz"],
        description="Sender names the bridge itself speaks as",
    )
    character_filter: str | None = Field(
        default=None,
        description="Only answer payloads addressed to this character name",
    )
    subscribe_events: list[str] = Field(
        default_factory=lambda: ["PlayerMessage"],
        description="Event names subscribed to when a game server connects",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("gemini_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Drop trailing slashes so endpoint paths join cleanly."""
        return v.rstrip("/")

    @property
    def api_key(self) -> str:
        """Plain API key value, empty when not configured."""
        if self.gemini_api_key is None:
            return ""
        return self.gemini_api_key.get_secret_value()

    def setup_logging(self) -> None:
        """Configure logging based on config settings."""
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for logging/debugging.

        The API key is reported only as set/unset.

        Returns:
            Dictionary of all config values
        """
        return {
            "host": self.host,
            "port": self.port,
            "gemini_api_key": "***" if self.api_key else None,
            "gemini_model": self.gemini_model,
            "gemini_base_url": self.gemini_base_url,
            "completion_timeout": self.completion_timeout,
            "history_limit": self.history_limit,
            "history_turns": self.history_turns,
            "ping_interval": self.ping_interval,
            "self_names": list(self.self_names),
            "character_filter": self.character_filter,
            "subscribe_events": list(self.subscribe_events),
            "log_level": self.log_level,
        }


# Module-level singleton instance
_config_instance: Config | None = None


def get_config() -> Config:
    """Get the singleton configuration instance.

    Creates the config on first call, caching it for subsequent calls.
    The config is loaded from environment variables and optional .env file.

    Returns:
        The Config singleton instance

    Note:
        For testing, use set_config() to inject a test configuration,
        or call reset_config() to force reloading from environment.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def set_config(config: Config) -> None:
    """Set the configuration instance (primarily for testing).

    Args:
        config: Config instance to use as the singleton
    """
    global _config_instance
    _config_instance = config


def reset_config() -> None:
    """Reset the configuration singleton.

    Forces the next get_config() call to reload from environment.
    """
    global _config_instance
    _config_instance = None
