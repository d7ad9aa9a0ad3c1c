"""Inbound event classification.

Decides whether an envelope from the game server is a conversational
request the bridge should answer, and extracts its payload. Anything else
(ordinary chat, command responses, the bridge's own broadcasts) is noise and
is discarded without raising.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from pydantic import ValidationError

from npc_bridge.models import ConversationPayload, Envelope

logger = logging.getLogger(__name__)

# Senders the game uses for script/system output
SYSTEM_SENDERS: frozenset[str] = frozenset({"External", "Script Engine"})

# Prefix of every chat line the bridge emits
CHAT_MARKER = "§e"

ACCEPTED_MESSAGE_TYPES: frozenset[str] = frozenset({"title"})
ACCEPTED_EVENT_NAMES: frozenset[str] = frozenset({"TitleChanged", "PlayerMessage"})

# Replies to the bridge's own directives
IGNORED_PURPOSES: frozenset[str] = frozenset({"commandResponse", "error"})

TEXT_FIELDS = ("message", "title", "text")


@dataclass(frozen=True)
class ClassifierOptions:
    """Knobs for classify_envelope.

    Attributes:
        ignored_senders: Sender names never answered (self names + system tags)
        message_types: Accepted values of body.type
        event_names: Accepted event names when body.type is absent
        character_filter: If set, only payloads for this character are accepted
    """

    ignored_senders: frozenset[str] = SYSTEM_SENDERS
    message_types: frozenset[str] = ACCEPTED_MESSAGE_TYPES
    event_names: frozenset[str] = ACCEPTED_EVENT_NAMES
    character_filter: str | None = None

    @classmethod
    def for_bridge(
        cls,
        self_names: Iterable[str] = (),
        character_filter: str | None = None,
    ) -> ClassifierOptions:
        """Options with the bridge's own names added to the ignored senders."""
        return cls(
            ignored_senders=SYSTEM_SENDERS | frozenset(self_names),
            character_filter=character_filter,
        )


def _is_accepted_kind(envelope: Envelope, options: ClassifierOptions) -> bool:
    message_type = envelope.body.get("type")
    if message_type is not None:
        return isinstance(message_type, str) and message_type in options.message_types
    return envelope.event_name in options.event_names


def _extract_text(body: dict) -> str | None:
    for name in TEXT_FIELDS:
        value = body.get(name)
        if isinstance(value, str):
            return value
    return None


def decode_payload(text: str) -> ConversationPayload | None:
    """Decode the nested JSON string of a title message.

    Args:
        text: Raw message text

    Returns:
        The payload, or None when the text is not a structured request
        carrying both a requester name and a character name
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError:
        # Plain chat is expected here
        return None

    if not isinstance(raw, dict):
        return None
    if not raw.get("pn") or not raw.get("nn"):
        logger.debug("Payload missing pn/nn, ignoring: %s", text[:200])
        return None

    try:
        return ConversationPayload.model_validate(raw)
    except ValidationError as e:
        logger.debug("Payload failed validation: %s", e)
        return None


def classify_envelope(
    envelope: Envelope,
    options: ClassifierOptions | None = None,
) -> ConversationPayload | None:
    """Classify an envelope and extract its conversational payload.

    Checks run in order: reply filtering, sender guard, event kind,
    payload decode, required fields, self-echo, character filter.

    Args:
        envelope: Decoded inbound envelope
        options: Classification options (defaults accept every character)

    Returns:
        ConversationPayload if the event should be answered, None otherwise
    """
    if options is None:
        options = ClassifierOptions()

    if envelope.header.message_purpose in IGNORED_PURPOSES:
        return None

    body = envelope.body
    sender = body.get("sender")
    if not isinstance(sender, str):
        sender = ""
    if sender in options.ignored_senders:
        logger.debug("Ignoring message from %r", sender)
        return None

    if not _is_accepted_kind(envelope, options):
        return None

    text = _extract_text(body)
    if not text:
        return None
    if CHAT_MARKER in text:
        # One of our own broadcasts coming back
        return None

    payload = decode_payload(text)
    if payload is None:
        return None

    if sender and sender == payload.character_name:
        logger.debug("Ignoring self-echo from %r", sender)
        return None

    if (
        options.character_filter is not None
        and payload.character_name != options.character_filter
    ):
        logger.debug(
            "Payload for %r does not match filter %r",
            payload.character_name,
            options.character_filter,
        )
        return None

    return payload
