"""Wire and conversation data models.

Pydantic models for the websocket envelopes exchanged with the game server
and the conversational payload embedded in them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_REQUESTER_NAME = "Player"
DEFAULT_PERSONALITY = "friendly"


class BaseWireModel(BaseModel):
    """Base model for everything decoded off the socket.

    Configured to ignore extra fields the game may send but we don't model.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class InteractionType(Enum):
    """Why the character is being asked to speak."""

    DIALOGUE = "D"
    INTERACTION = "I"


class Role(Enum):
    """Author of a conversation turn."""

    REQUESTER = "user"
    CHARACTER = "model"


class EnvelopeHeader(BaseWireModel):
    """Header of an inbound or outbound envelope."""

    request_id: str | None = Field(default=None, alias="requestId")
    message_purpose: str | None = Field(default=None, alias="messagePurpose")
    version: int | str | None = None
    message_type: str | None = Field(default=None, alias="messageType")
    event_name: str | None = Field(default=None, alias="eventName")


class Envelope(BaseWireModel):
    """A single decoded websocket frame: a header plus a free-form body."""

    header: EnvelopeHeader = Field(default_factory=EnvelopeHeader)
    body: dict[str, Any] = Field(default_factory=dict)

    @field_validator("header", mode="before")
    @classmethod
    def coerce_header(cls, v: Any) -> Any:
        """Treat a missing or non-object header as empty."""
        return v if isinstance(v, dict) else {}

    @field_validator("body", mode="before")
    @classmethod
    def coerce_body(cls, v: Any) -> Any:
        """Treat a missing or non-object body as empty."""
        return v if isinstance(v, dict) else {}

    @property
    def event_name(self) -> str | None:
        """Event name from the body, falling back to the header."""
        name = self.body.get("eventName")
        if isinstance(name, str):
            return name
        return self.header.event_name

    @classmethod
    def from_message(cls, message: Any) -> Envelope | None:
        """Build an envelope from a decoded JSON frame.

        Args:
            message: Result of json.loads on a frame

        Returns:
            The envelope, or None if the frame is not a JSON object
        """
        if not isinstance(message, dict):
            return None
        try:
            return cls.model_validate(message)
        except ValidationError as e:
            logger.debug("Discarding malformed envelope: %s", e)
            return None


def _coerce_score(v: Any) -> float:
    if isinstance(v, bool) or v is None:
        return 0.0
    try:
        return float(v)
    except (TypeError, ValueError):
        logger.debug("Non-numeric affinity score %r, using 0", v)
        return 0.0


class ConversationPayload(BaseWireModel):
    """Conversational request embedded as a JSON string in a title message.

    Field names on the wire are single letters; aliases map them here.
    Absent or null values fall back to neutral defaults so rendering a
    prompt never fails.
    """

    requester_name: str = Field(default=DEFAULT_REQUESTER_NAME, alias="pn")
    message: str = Field(default="", alias="pm")
    character_name: str = Field(alias="nn")
    character_id: str | None = Field(default=None, alias="ni")
    personality: str = Field(default=DEFAULT_PERSONALITY, alias="np")
    gender: str | None = Field(default=None, alias="ns")
    friendship: float = Field(default=0.0, alias="a")
    romance: float = Field(default=0.0, alias="r")
    interaction_type: InteractionType = Field(
        default=InteractionType.DIALOGUE, alias="t"
    )

    @field_validator("requester_name", mode="before")
    @classmethod
    def default_requester(cls, v: Any) -> Any:
        return v if v else DEFAULT_REQUESTER_NAME

    @field_validator("personality", mode="before")
    @classmethod
    def default_personality(cls, v: Any) -> Any:
        return v if v else DEFAULT_PERSONALITY

    @field_validator("message", mode="before")
    @classmethod
    def default_message(cls, v: Any) -> Any:
        return "" if v is None else str(v)

    @field_validator("character_id", "gender", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("friendship", "romance", mode="before")
    @classmethod
    def coerce_scores(cls, v: Any) -> float:
        return _coerce_score(v)

    @field_validator("interaction_type", mode="before")
    @classmethod
    def coerce_interaction_type(cls, v: Any) -> InteractionType:
        if isinstance(v, InteractionType):
            return v
        if isinstance(v, str) and v.strip().upper() == "I":
            return InteractionType.INTERACTION
        return InteractionType.DIALOGUE

    @property
    def character_key(self) -> str:
        """Stable key for conversation history (id, else display name)."""
        return self.character_id or self.character_name


class ConversationTurn(BaseModel):
    """One utterance in a character's conversation log."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    speaker: str | None = None
