"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
import os
import socket
from collections.abc import Generator
from typing import Any

import httpx
import pytest
from websockets.protocol import State

from npc_bridge.completion import CompletionClient
from npc_bridge.config import Config, reset_config


class FakeConnection:
    """Stand-in for a websocket connection that records what is written."""

    def __init__(self, state: State = State.OPEN) -> None:
        self.state = state
        self.sent: list[str] = []
        self.pings = 0

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def ping(self, data: Any = None) -> None:
        self.pings += 1

    @property
    def directives(self) -> list[dict[str, Any]]:
        return [json.loads(m) for m in self.sent]


def get_free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_title_envelope(
    payload: dict[str, Any] | str,
    sender: str = "Server",
    purpose: str = "event",
) -> dict[str, Any]:
    """Wrap a conversational payload the way the NPC add-on sends it."""
    message = payload if isinstance(payload, str) else json.dumps(payload)
    return {
        "header": {"messagePurpose": purpose, "requestId": "abc", "version": 1},
        "body": {"type": "title", "sender": sender, "message": message},
    }


def gemini_reply(text: str) -> dict[str, Any]:
    """Minimal successful generateContent response body."""
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


def stub_completion(
    handler: Any,
    timeout: float = 1.0,
    history_turns: int = 6,
) -> CompletionClient:
    """CompletionClient whose HTTP calls are served by handler."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CompletionClient(
        "test-key", timeout=timeout, history_turns=history_turns, http_client=http
    )


@pytest.fixture(autouse=True)
def clean_env() -> Generator[None, None, None]:
    """Keep NPC_BRIDGE_ and legacy env vars from leaking between tests."""
    watched = ("PORT", "GEMINI_API_KEY", "LOG_LEVEL")
    original = {
        k: v
        for k, v in os.environ.items()
        if k.startswith("NPC_BRIDGE_") or k in watched
    }
    for key in original:
        del os.environ[key]
    reset_config()

    yield

    for key in list(os.environ):
        if key.startswith("NPC_BRIDGE_") or key in watched:
            del os.environ[key]
    os.environ.update(original)
    reset_config()


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    """Conversational payload as sent by the NPC add-on."""
    return {
        "pn": "Steve",
        "pm": "hello",
        "nn": "Eliz",
        "ni": "npc1",
        "np": "humorous",
        "a": 60,
        "r": 10,
    }


@pytest.fixture
def config() -> Config:
    """Config bound to localhost on an ephemeral port."""
    return Config(host="127.0.0.1", port=get_free_port(), gemini_api_key="test-key")


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()
