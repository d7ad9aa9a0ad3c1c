"""Gemini completion client.

Issues one generateContent request per conversational turn. Every failure
mode resolves to a fixed in-character fallback line instead of raising, so
the game always sees the character say something.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from npc_bridge.config import DEFAULT_GEMINI_BASE_URL
from npc_bridge.models import ConversationTurn, Role

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_TIMEOUT = 15.0

FALLBACK_NO_REPLY = "Sorry, I don't know what to say right now."
FALLBACK_MALFORMED = "Hmm."
FALLBACK_UNAVAILABLE = "Hmm... my mind wandered for a moment."
FALLBACK_TIMEOUT = "Sorry, give me a moment to think."


def build_prompt(
    context: str,
    message: str,
    history: Sequence[ConversationTurn] = (),
    *,
    requester_name: str = "Player",
    character_name: str = "NPC",
) -> str:
    """Assemble the text sent to the completion model.

    Args:
        context: Rendered character instruction
        message: Latest requester utterance
        history: Prior turns to thread in, oldest first
        requester_name: Label for the latest line, and for past requester
            turns that carry no speaker
        character_name: Label for the reply cue, and for past character
            turns that carry no speaker

    Returns:
        Prompt text ending with the character's reply cue
    """
    lines = [context]
    for turn in history:
        speaker = turn.speaker
        if not speaker:
            speaker = requester_name if turn.role is Role.REQUESTER else character_name
        lines.append(f'{speaker}: "{turn.content}"')
    lines.append(f'{requester_name}: "{message}"')
    lines.append(f"{character_name}:")
    return "\n".join(lines)


def extract_text(data: Any) -> str | None:
    """Pull candidates[0].content.parts[0].text from a response body.

    Returns:
        The stripped text, "" when the response has no usable candidate,
        or None when the body does not have the expected shape
    """
    if not isinstance(data, dict):
        return None
    if "error" in data:
        logger.warning("Completion service returned error: %s", data["error"])
        return ""

    candidates = data.get("candidates")
    if not candidates:
        return ""
    try:
        text = candidates[0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        # Blocked candidates come back without content
        return ""
    if not isinstance(text, str):
        return None
    return text.strip()


class CompletionClient:
    """Async client for a generateContent-style completion endpoint.

    The client owns an httpx.AsyncClient; call aclose() on shutdown.
    Each complete() call makes exactly one request, bounded by timeout.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        history_turns: int = 6,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the completion client.

        Args:
            api_key: Completion service credential
            model: Model name used in the endpoint path
            base_url: API base URL
            timeout: Seconds before the request is cancelled
            history_turns: Most recent prior turns threaded into the prompt
            http_client: Pre-built client (tests inject a MockTransport here)
        """
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._history_turns = history_turns
        self._http = http_client if http_client is not None else httpx.AsyncClient(
            timeout=timeout
        )

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    @property
    def timeout(self) -> float:
        return self._timeout

    async def aclose(self) -> None:
        await self._http.aclose()

    async def complete(
        self,
        context: str,
        message: str,
        history: Sequence[ConversationTurn] = (),
        *,
        requester_name: str = "Player",
        character_name: str = "NPC",
    ) -> str:
        """Get the character's reply to a message.

        Never raises for service failures; see the FALLBACK_* constants.

        Args:
            context: Rendered character instruction
            message: Latest requester utterance
            history: Prior turns for this character, oldest first
            requester_name: Label for requester lines
            character_name: Label for character lines

        Returns:
            Reply text, or a fallback line
        """
        recent = list(history)[-self._history_turns :] if self._history_turns else []
        prompt = build_prompt(
            context,
            message,
            recent,
            requester_name=requester_name,
            character_name=character_name,
        )

        try:
            return await asyncio.wait_for(self._request(prompt), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Completion request timed out after %.1fs", self._timeout
            )
            return FALLBACK_TIMEOUT

    async def _request(self, prompt: str) -> str:
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            response = await self._http.post(
                self.endpoint,
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.TimeoutException:
            logger.warning("Completion request timed out in transport")
            return FALLBACK_TIMEOUT
        except httpx.HTTPError as e:
            logger.warning("Completion request failed: %s", e)
            return FALLBACK_UNAVAILABLE

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(
                "Unparseable completion response (HTTP %d): %s",
                response.status_code,
                e,
            )
            return FALLBACK_MALFORMED

        text = extract_text(data)
        if text is None:
            logger.warning("Unexpected completion response shape: %.200s", data)
            return FALLBACK_MALFORMED
        if not text:
            return FALLBACK_NO_REPLY

        logger.debug("Completion received (%d chars)", len(text))
        return text
