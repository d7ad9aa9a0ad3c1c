"""Live connection tracking and liveness probing."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Iterable
from typing import Any, Protocol

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from npc_bridge.commands import build_subscribe, send_directive

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 30.0


class Connection(Protocol):
    """The subset of a websocket server connection the registry uses."""

    state: State

    async def send(self, message: str) -> None: ...

    async def ping(self, data: Any = None) -> Any: ...


def generate_connection_id() -> str:
    """Short random id used in logs to tell connections apart."""
    return uuid.uuid4().hex[:8]


class ConnectionRegistry:
    """Tracks connected game servers.

    The registry:
    - Assigns each connection a short id and subscribes it to upstream events
    - Forgets connections on disconnect
    - Runs a background task that pings every open connection periodically

    Probing is fire-and-forget: pong replies are not awaited and failures
    only get logged.
    """

    def __init__(self, ping_interval: float = DEFAULT_PING_INTERVAL) -> None:
        """Initialize the registry.

        Args:
            ping_interval: Seconds between liveness probes
        """
        self._ping_interval = ping_interval
        self._connections: dict[str, Connection] = {}
        self._probe_task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self._probe_task is not None and not self._probe_task.done()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    async def connect(
        self,
        connection: Connection,
        event_names: Iterable[str] = (),
    ) -> str:
        """Register a new connection and send its subscriptions.

        Args:
            connection: The websocket connection
            event_names: Upstream events to subscribe to

        Returns:
            The generated connection id
        """
        connection_id = generate_connection_id()
        self._connections[connection_id] = connection
        logger.info(
            "New connection: %s (total: %d)", connection_id, len(self._connections)
        )

        for event_name in event_names:
            if not await send_directive(connection, build_subscribe(event_name)):
                break
            logger.debug("Subscribed %s to %s", connection_id, event_name)

        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection. Unknown ids are ignored."""
        if self._connections.pop(connection_id, None) is not None:
            logger.info(
                "Connection closed: %s (total: %d)",
                connection_id,
                len(self._connections),
            )

    async def probe_all(self) -> int:
        """Ping every open connection once.

        Returns:
            Number of connections pinged
        """
        probed = 0
        for connection_id, connection in list(self._connections.items()):
            if connection.state is not State.OPEN:
                continue
            try:
                await connection.ping()
                probed += 1
            except ConnectionClosed:
                logger.debug("Ping skipped, %s already closed", connection_id)
        return probed

    async def start(self) -> None:
        """Start the periodic probe task."""
        if self.is_running:
            logger.warning("ConnectionRegistry probe already running")
            return
        self._stop_event = asyncio.Event()
        self._probe_task = asyncio.create_task(self._probe_loop())

    async def stop(self) -> None:
        """Stop the periodic probe task."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._probe_task is not None:
            self._probe_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._probe_task
            self._probe_task = None

    async def _probe_loop(self) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._ping_interval
                )
                break
            except asyncio.TimeoutError:
                pass

            try:
                probed = await self.probe_all()
            except Exception as e:
                logger.debug("Liveness probe failed: %s", e)
                continue
            logger.debug("Liveness probe sent to %d connection(s)", probed)
