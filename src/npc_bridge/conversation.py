"""In-memory conversation history.

Each character id owns a bounded log of turns. Logs are created lazily on
the first append and live for the lifetime of the process.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from npc_bridge.models import ConversationTurn, Role

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 20


class ConversationStore:
    """Per-character bounded conversation logs.

    When an append pushes a log past max_turns, the oldest turns are dropped
    from the front. Also hands out one asyncio.Lock per character so callers
    can serialise a read-complete-append sequence for that character.
    """

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS) -> None:
        """Initialize the store.

        Args:
            max_turns: Maximum turns retained per character
        """
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self._max_turns = max_turns
        self._logs: dict[str, deque[ConversationTurn]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def max_turns(self) -> int:
        return self._max_turns

    def append(self, character_id: str, turn: ConversationTurn) -> None:
        """Append a turn, evicting the oldest turns beyond the cap."""
        log = self._logs.get(character_id)
        if log is None:
            log = deque(maxlen=self._max_turns)
            self._logs[character_id] = log
        log.append(turn)

    def record_exchange(
        self,
        character_id: str,
        request: str,
        reply: str,
        *,
        requester_name: str | None = None,
        character_name: str | None = None,
    ) -> None:
        """Append a requester turn followed by the character's reply.

        Several players can talk to one character, so each turn keeps the
        name of whoever spoke it.
        """
        self.append(
            character_id,
            ConversationTurn(role=Role.REQUESTER, content=request, speaker=requester_name),
        )
        self.append(
            character_id,
            ConversationTurn(role=Role.CHARACTER, content=reply, speaker=character_name),
        )

    def get(self, character_id: str) -> tuple[ConversationTurn, ...]:
        """Snapshot of a character's log, oldest first (empty if unknown)."""
        log = self._logs.get(character_id)
        if log is None:
            return ()
        return tuple(log)

    def lock(self, character_id: str) -> asyncio.Lock:
        """Lock guarding one character's history."""
        lock = self._locks.get(character_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[character_id] = lock
        return lock

    def __contains__(self, character_id: object) -> bool:
        return character_id in self._logs

    def __len__(self) -> int:
        return len(self._logs)
