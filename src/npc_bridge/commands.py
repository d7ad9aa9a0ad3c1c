"""Outbound directives for the game server.

Builds the subscribe and commandRequest envelopes the bridge writes back
over the websocket, and the tellraw chat command that carries a
character's reply.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any, Protocol

from websockets.exceptions import ConnectionClosed

from npc_bridge.classifier import CHAT_MARKER

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = 1

# Control characters (including CR/LF/TAB) collapse to one space
_CONTROL_RUN = re.compile(r"[\x00-\x1f\x7f]+")


class DirectiveSink(Protocol):
    """Anything a directive can be written to (a websocket connection)."""

    async def send(self, message: str) -> None: ...


def generate_request_id() -> str:
    """Fresh correlation id for an outbound envelope."""
    return str(uuid.uuid4())


def escape_chat_text(text: str) -> str:
    """Make text safe to embed in a quoted JSON string inside a command.

    Backslashes and double quotes are escaped; runs of control characters
    become a single space since the command must stay on one line.
    """
    collapsed = _CONTROL_RUN.sub(" ", text)
    return collapsed.replace("\\", "\\\\").replace('"', '\\"')


def build_chat_command(character_name: str, text: str, target: str = "@a") -> str:
    """tellraw command broadcasting text attributed to a character."""
    name = escape_chat_text(character_name)
    body = escape_chat_text(text.strip())
    return (
        f'tellraw {target} {{"rawtext":[{{"text":"{CHAT_MARKER}{name}§r: {body}"}}]}}'
    )


def build_command_request(command_line: str) -> dict[str, Any]:
    """Envelope asking the game server to run a command."""
    return {
        "header": {
            "requestId": generate_request_id(),
            "messagePurpose": "commandRequest",
            "version": PROTOCOL_VERSION,
            "messageType": "commandRequest",
        },
        "body": {
            "origin": {"type": "player"},
            "commandLine": command_line,
            "version": PROTOCOL_VERSION,
        },
    }


def build_subscribe(event_name: str) -> dict[str, Any]:
    """Envelope subscribing to an upstream event kind."""
    return {
        "header": {
            "requestId": generate_request_id(),
            "messagePurpose": "subscribe",
            "version": PROTOCOL_VERSION,
            "messageType": "commandRequest",
        },
        "body": {"eventName": event_name},
    }


async def send_directive(sink: DirectiveSink, directive: dict[str, Any]) -> bool:
    """Serialize and write one directive.

    Returns:
        True if written, False if the connection had already closed
    """
    try:
        await sink.send(json.dumps(directive, ensure_ascii=False))
        return True
    except ConnectionClosed as e:
        logger.warning("Cannot send directive, connection closed: %s", e)
        return False


async def emit_chat(sink: DirectiveSink, character_name: str, text: str) -> bool:
    """Broadcast a character's reply on the connection that asked for it."""
    command = build_chat_command(character_name, text)
    logger.debug("Emitting command: %s", command)
    return await send_directive(sink, build_command_request(command))
