"""Entry point for the NPC chat bridge.

Usage:
    python -m npc_bridge
    npc-bridge

Environment Variables:
    NPC_BRIDGE_HOST: Host to bind (default: 0.0.0.0)
    NPC_BRIDGE_PORT: Websocket + HTTP port (default: 8080)
    NPC_BRIDGE_GEMINI_API_KEY: Completion service API key
    NPC_BRIDGE_GEMINI_MODEL: Completion model (default: gemini-1.5-flash)
    NPC_BRIDGE_COMPLETION_TIMEOUT: Seconds per completion (default: 15)
    NPC_BRIDGE_CHARACTER_FILTER: Only answer for this character name
    NPC_BRIDGE_LOG_LEVEL: Logging level (default: INFO)
    (see npc_bridge.config for the full list)

Legacy environment variables (used when the prefixed one is unset):
    PORT, GEMINI_API_KEY, LOG_LEVEL
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from pydantic import ValidationError

from npc_bridge import __version__
from npc_bridge.config import Config, get_config, reset_config, set_config
from npc_bridge.server import BridgeService

LEGACY_ENV_VARS = {
    "PORT": "NPC_BRIDGE_PORT",
    "GEMINI_API_KEY": "NPC_BRIDGE_GEMINI_API_KEY",
    "LOG_LEVEL": "NPC_BRIDGE_LOG_LEVEL",
}


def _migrate_legacy_env_vars() -> None:
    """Copy unprefixed environment variables to their NPC_BRIDGE_ names.

    Hosting platforms commonly inject PORT, and earlier deployments used a
    bare GEMINI_API_KEY. A prefixed variable always wins.
    """
    for legacy_var, new_var in LEGACY_ENV_VARS.items():
        legacy_value = os.environ.get(legacy_var)
        if legacy_value is not None and os.environ.get(new_var) is None:
            os.environ[new_var] = legacy_value


async def run_bridge(config: Config) -> int:
    """Run the bridge until cancelled.

    Args:
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    service = BridgeService(config)
    try:
        await service.serve_forever()
    except asyncio.CancelledError:
        logging.getLogger(__name__).info("Bridge cancelled")
    finally:
        await service.stop()
    return 0


def main() -> int:
    """Main entry point."""
    _migrate_legacy_env_vars()

    # Reset config to pick up any migrated env vars
    reset_config()

    try:
        config = get_config()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    config.setup_logging()
    set_config(config)

    logger = logging.getLogger(__name__)
    logger.info("NPC chat bridge v%s starting", __version__)
    logger.info("Configuration: %s", config.to_dict())

    try:
        return asyncio.run(run_bridge(config))
    except KeyboardInterrupt:
        return 0
    except OSError as e:
        logger.error("Server error: %s", e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
