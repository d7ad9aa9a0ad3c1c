"""Bridge service: websocket server, dispatch and health endpoints.

Provides:
- BridgeService: owns the conversation store, connection registry and
  completion client, accepts game server connections and answers
  conversational events on the connection they arrived on
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosedError
from websockets.http11 import Request, Response

from npc_bridge.classifier import ClassifierOptions, classify_envelope
from npc_bridge.commands import DirectiveSink, emit_chat
from npc_bridge.completion import CompletionClient
from npc_bridge.config import Config
from npc_bridge.context import context_for_payload
from npc_bridge.conversation import ConversationStore
from npc_bridge.models import ConversationPayload, Envelope
from npc_bridge.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "NPC chat bridge is running.\n"


class BridgeService:
    """Single per-process bridge between game servers and the completion API.

    Each inbound frame is handled in its own task so a slow completion call
    never blocks reading from the socket. Turns for one character are
    serialised through the store's per-character lock, keeping its history
    in arrival order.
    """

    def __init__(
        self,
        config: Config,
        *,
        completion: CompletionClient | None = None,
        store: ConversationStore | None = None,
        registry: ConnectionRegistry | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Application configuration
            completion: Completion client (built from config if omitted)
            store: Conversation store (fresh if omitted)
            registry: Connection registry (fresh if omitted)
        """
        self._config = config
        if completion is None:
            completion = CompletionClient(
                config.api_key,
                model=config.gemini_model,
                base_url=config.gemini_base_url,
                timeout=config.completion_timeout,
                history_turns=config.history_turns,
            )
        if store is None:
            store = ConversationStore(max_turns=config.history_limit)
        if registry is None:
            registry = ConnectionRegistry(ping_interval=config.ping_interval)
        self.completion = completion
        self.store = store
        self.registry = registry
        self._options = ClassifierOptions.for_bridge(
            config.self_names, config.character_filter
        )
        self._server: Server | None = None
        self._tasks: set[asyncio.Task[bool]] = set()

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> int | None:
        """Port actually bound (useful when configured with port 0)."""
        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    async def start(self) -> None:
        """Start listening and begin liveness probing."""
        if self._server is not None:
            return

        if not self._config.api_key:
            logger.warning(
                "No completion API key configured; characters will only "
                "answer with fallback lines"
            )

        self._server = await serve(
            self._handle_connection,
            self._config.host,
            self._config.port,
            process_request=self._process_request,
            # Liveness is probed by the registry
            ping_interval=None,
        )
        await self.registry.start()
        logger.info(
            "Bridge listening on ws://%s:%s", self._config.host, self.port
        )

    async def serve_forever(self) -> None:
        """Run until cancelled."""
        if self._server is None:
            await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def stop(self) -> None:
        """Stop the server, the probe task and in-flight replies."""
        await self.registry.stop()

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        await self.completion.aclose()
        logger.info("Bridge stopped")

    def health(self) -> dict[str, Any]:
        """Status document served at /health."""
        return {
            "status": "ok",
            "connections": len(self.registry),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def _process_request(
        self, connection: ServerConnection, request: Request
    ) -> Response | None:
        """Answer plain HTTP requests; let websocket upgrades through."""
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None

        path = request.path.split("?", 1)[0]
        if path == "/":
            return connection.respond(HTTPStatus.OK, LIVENESS_TEXT)
        if path == "/health":
            response = connection.respond(HTTPStatus.OK, json.dumps(self.health()))
            del response.headers["Content-Type"]
            response.headers["Content-Type"] = "application/json"
            return response
        return connection.respond(HTTPStatus.NOT_FOUND, "Not found\n")

    async def _handle_connection(self, connection: ServerConnection) -> None:
        """Serve one game server connection until it closes."""
        connection_id = await self.registry.connect(
            connection, self._config.subscribe_events
        )
        try:
            async for frame in connection:
                task = asyncio.create_task(self.handle_frame(connection, frame))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        except ConnectionClosedError as e:
            logger.warning("Connection %s dropped: %s", connection_id, e)
        finally:
            self.registry.disconnect(connection_id)

    async def handle_frame(self, sink: DirectiveSink, frame: str | bytes) -> bool:
        """Decode, classify and answer one inbound frame.

        Args:
            sink: Connection the frame arrived on (replies go back here)
            frame: Raw websocket message

        Returns:
            True if a reply was written, False if the frame was discarded
        """
        try:
            message = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("Discarding non-JSON frame")
            return False

        envelope = Envelope.from_message(message)
        if envelope is None:
            return False

        payload = classify_envelope(envelope, self._options)
        if payload is None:
            return False

        return await self.respond(sink, payload)

    async def respond(
        self, sink: DirectiveSink, payload: ConversationPayload
    ) -> bool:
        """Produce a character's reply and broadcast it.

        Args:
            sink: Connection to write the chat command to
            payload: Decoded conversational request

        Returns:
            True if the command was written
        """
        key = payload.character_key
        logger.info(
            "%s -> %s: %s",
            payload.requester_name,
            payload.character_name,
            payload.message,
        )

        async with self.store.lock(key):
            history = self.store.get(key)
            reply = await self.completion.complete(
                context_for_payload(payload),
                payload.message,
                history,
                requester_name=payload.requester_name,
                character_name=payload.character_name,
            )
            self.store.record_exchange(
                key,
                payload.message,
                reply,
                requester_name=payload.requester_name,
                character_name=payload.character_name,
            )

        logger.info("%s -> %s: %s", payload.character_name, payload.requester_name, reply)
        return await emit_chat(sink, payload.character_name, reply)
