"""Shared test fixtures and configuration for backend tests."""
import asyncio
from typing import Any, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from vault.config import reset_config
from vault.main import app


class RecordingEmitter:
    """EventEmitter that records every delivery instead of sending it.

    Each entry is (kind, connection_id, event, data) where kind is one of
    "send", "broadcast" or "broadcast_except". connection_id is the target
    for "send", the excluded connection for "broadcast_except", and None
    for "broadcast".
    """

    def __init__(self) -> None:
        self.events: List[Tuple[str, Optional[str], str, Any]] = []

    async def send(self, connection_id: str, event: str, data: Any) -> None:
        self.events.append(("send", connection_id, event, data))

    async def broadcast(self, event: str, data: Any) -> None:
        self.events.append(("broadcast", None, event, data))

    async def broadcast_except(self, connection_id: str, event: str, data: Any) -> None:
        self.events.append(("broadcast_except", connection_id, event, data))

    def named(self, event: str) -> list:
        return [e for e in self.events if e[2] == event]

    def clear(self) -> None:
        self.events.clear()


class YieldingEmitter(RecordingEmitter):
    """RecordingEmitter that suspends on every delivery, like a real socket."""

    async def send(self, connection_id: str, event: str, data: Any) -> None:
        await asyncio.sleep(0)
        await super().send(connection_id, event, data)

    async def broadcast(self, event: str, data: Any) -> None:
        await asyncio.sleep(0)
        await super().broadcast(event, data)

    async def broadcast_except(self, connection_id: str, event: str, data: Any) -> None:
        await asyncio.sleep(0)
        await super().broadcast_except(connection_id, event, data)


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def yielding_emitter() -> YieldingEmitter:
    return YieldingEmitter()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every test against default settings.

    Moves into an empty directory so no vault.settings.yaml is picked up and
    clears the environment overrides.
    """
    monkeypatch.chdir(tmp_path)
    for name in ("PORT", "ACCESS_CODE", "VAULT_DATABASE_PATH", "VAULT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def api_client():
    """Provide a TestClient with the app lifespan running.

    The lifespan builds the session router, so each test gets fresh
    presence, colors and history.
    """
    with TestClient(app) as client:
        yield client
