"""Shared fixtures for the rpsnet test suite."""

import asyncio
import sys
import time
from pathlib import Path

import pytest

# Ensure the project root is on sys.path so 'rpsnet' resolves
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rpsnet.client import GameClient
from rpsnet.server import GameServer

# Short enough to keep the suite fast, long enough that an ACK and the
# following SOL never land in the same read
TEST_POLL_INTERVAL = 0.02


async def wait_until(predicate, timeout: float = 3.0, interval: float = 0.01):
    """Poll a sync or async predicate until it is truthy or *timeout* passes."""
    deadline = time.monotonic() + timeout
    while True:
        result = predicate()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return result
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
async def server():
    """A listening GameServer on an ephemeral loopback port."""
    srv = GameServer("127.0.0.1", 0, poll_interval=TEST_POLL_INTERVAL)
    srv.start()
    assert srv.listening
    yield srv
    srv.dispose()
    # Let cancelled player loops run their cleanup
    await asyncio.sleep(0.05)


@pytest.fixture
def make_client(server):
    """Factory that starts a GameClient against the test server.

    Every client created through the factory is disposed at teardown.
    """
    clients: list[GameClient] = []

    async def _make(name: str) -> GameClient:
        host, port = server.address
        client = GameClient(name, host, port)
        client.start()
        clients.append(client)
        await client.wait_connected()
        return client

    yield _make

    for client in clients:
        client.dispose()
