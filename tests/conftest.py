"""Shared fixtures for the Tile38 client tests."""

import asyncio
import threading

import pytest

from mock_server import MockServer


@pytest.fixture
async def server():
    srv = MockServer()
    await srv.start()
    yield srv
    await srv.stop()


@pytest.fixture
def threaded_server():
    """A MockServer running on its own event loop, for synchronous clients."""
    loop = asyncio.new_event_loop()
    srv = MockServer()
    loop.run_until_complete(srv.start())
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    yield srv
    asyncio.run_coroutine_threadsafe(srv.stop(), loop).result(5)
    loop.call_soon_threadsafe(loop.stop)
    thread.join(5)
    loop.close()
