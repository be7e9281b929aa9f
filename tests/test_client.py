"""Tests for Tile38 Python client"""

import asyncio

import pytest

from mock_server import (
    OK_FALSE,
    SERVER_ERROR,
    TEST_TTL,
    delayed,
    reply_with,
    return_err,
    return_not_found,
    return_ok_false,
    return_ok_true,
)
from tile38 import (
    ConnectionError,
    InvalidArgumentsError,
    Response,
    ServerError,
    Tile38,
    Tile38Sync,
    UninitializedError,
    UnknownFieldError,
    connect,
)

# method name -> (arguments, command line the server should receive)
NO_RESULT_CMDS = {
    "set": (("test", "obj1", "STRING", "testing"), "SET test obj1 STRING testing"),
    "delete": (("test", "obj1"), "DEL test obj1"),
    "pdel": (("test", "obj*"), "PDEL test obj*"),
    "expire": (("test", "obj1", 60), "EXPIRE test obj1 60"),
    "persist": (("test", "obj1"), "PERSIST test obj1"),
}

RESULT_CMDS = {
    "get": (("test", "obj1"), "GET test obj1"),
    "scan": (("test",), "SCAN test"),
    "search": (("test",), "SEARCH test"),
}

ALL_CMDS = {**NO_RESULT_CMDS, **RESULT_CMDS, "ttl": (("test", "obj1"), "TTL test obj1")}


@pytest.fixture
async def db(server):
    """Create a connected client for testing"""
    client = await Tile38.connect(server.host, server.port, pool_size=1)
    server.received.clear()
    yield client
    if client._session is not None:
        await client.close()


class TestUninitialized:
    """Test calls on a client that was never connected"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", sorted(ALL_CMDS))
    async def test_command_raises(self, method, server):
        client = Tile38(server.host, server.port)
        args, _ = ALL_CMDS[method]
        with pytest.raises(UninitializedError, match="database not initialized"):
            await getattr(client, method)(*args)
        assert server.received == []

    @pytest.mark.asyncio
    async def test_execute_raises(self):
        with pytest.raises(UninitializedError):
            await Tile38().execute("GET", "test", "obj1")

    @pytest.mark.asyncio
    async def test_live_raises(self):
        with pytest.raises(UninitializedError):
            await Tile38().live("NEARBY", "fleet", "FENCE")

    @pytest.mark.asyncio
    async def test_close_raises(self):
        with pytest.raises(UninitializedError):
            await Tile38().close()

    @pytest.mark.asyncio
    async def test_closed_client_raises(self, db, server):
        await db.close()
        with pytest.raises(UninitializedError):
            await db.scan("test")


class TestConnect:
    """Test connection functionality"""

    @pytest.mark.asyncio
    async def test_connect_sends_handshake(self, server):
        client = await connect(server.host, server.port, pool_size=2)
        assert server.received == ["OUTPUT json", "OUTPUT json"]
        await client.close()

    @pytest.mark.asyncio
    async def test_connect_refused(self, server):
        port = server.port
        await server.stop()
        with pytest.raises(ConnectionError):
            await Tile38.connect("127.0.0.1", port)

    @pytest.mark.asyncio
    async def test_connect_server_error(self, server):
        server.handlers["OUTPUT"] = return_err
        with pytest.raises(ConnectionError, match=SERVER_ERROR):
            await Tile38.connect(server.host, server.port, pool_size=1)
        assert server.received == ["OUTPUT json"]

    @pytest.mark.asyncio
    async def test_connect_ok_false(self, server):
        server.handlers["OUTPUT"] = return_ok_false
        with pytest.raises(ConnectionError, match=OK_FALSE):
            await Tile38.connect(server.host, server.port, pool_size=1)

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, server):
        async with await Tile38.connect(server.host, server.port) as client:
            await client.scan("test")
        assert client._session is None

    @pytest.mark.asyncio
    async def test_context_manager_after_close(self, server):
        async with await Tile38.connect(server.host, server.port) as client:
            await client.close()
        assert client._session is None

    @pytest.mark.asyncio
    async def test_context_manager_never_connected(self):
        with pytest.raises(ServerError, match="from the block"):
            async with Tile38():
                raise ServerError("from the block")


class TestCommandErrors:
    """Test RESP error replies"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", sorted(ALL_CMDS))
    async def test_server_error(self, method, db, server):
        args, line = ALL_CMDS[method]
        server.handlers[line.split()[0]] = return_err
        with pytest.raises(ServerError) as exc_info:
            await getattr(db, method)(*args)
        assert exc_info.value.message == SERVER_ERROR
        assert exc_info.value.command == line.split()[0]
        assert server.received == [line]


class TestCommandFalse:
    """Test ok:false replies"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", sorted(ALL_CMDS))
    async def test_ok_false(self, method, db, server):
        args, line = ALL_CMDS[method]
        server.handlers[line.split()[0]] = return_ok_false
        with pytest.raises(ServerError, match=OK_FALSE):
            await getattr(db, method)(*args)
        assert server.received == [line]


class TestCommandSuccess:
    """Test ok:true replies"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", sorted(NO_RESULT_CMDS))
    async def test_no_result(self, method, db, server):
        args, line = NO_RESULT_CMDS[method]
        assert await getattr(db, method)(*args) is None
        assert server.received == [line]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", sorted(RESULT_CMDS))
    async def test_result(self, method, db, server):
        args, line = RESULT_CMDS[method]
        r = await getattr(db, method)(*args)
        assert isinstance(r, Response)
        assert r.ok is True
        assert r.object == '{"id":"test"}'
        assert server.received == [line]

    @pytest.mark.asyncio
    async def test_ttl(self, db, server):
        assert await db.ttl("test", "obj1") == TEST_TTL
        assert server.received == ["TTL test obj1"]

    @pytest.mark.asyncio
    async def test_extra_arguments(self, db, server):
        await db.scan("fleet", "LIMIT", 10, "IDS")
        assert server.received == ["SCAN fleet LIMIT 10 IDS"]

    @pytest.mark.asyncio
    async def test_execute(self, db, server):
        server.handlers["NEARBY"] = reply_with({"ok": True, "ids": ["truck1"], "count": 1})
        r = await db.execute("NEARBY", "fleet", "IDS", "POINT", 33, -115, 5000)
        assert r.ids == ["truck1"]
        assert server.received == ["NEARBY fleet IDS POINT 33 -115 5000"]

    @pytest.mark.asyncio
    async def test_connection_reused(self, db, server):
        for _ in range(3):
            await db.scan("test")
        assert server.connections == 1


class TestCancellation:
    """Test commands abandoned before their reply arrives"""

    @pytest.mark.asyncio
    async def test_next_command_gets_its_own_reply(self, db, server):
        server.handlers["GET"] = delayed(0.2, reply_with({"ok": True, "id": "from-get"}))
        server.handlers["SCAN"] = reply_with({"ok": True, "id": "from-scan"})
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(db.get("fleet", "truck1"), 0.05)

        assert (await db.scan("fleet")).id == "from-scan"
        assert server.commands("SCAN") == ["SCAN fleet"]
        await asyncio.sleep(0.2)


class TestGetNotFound:
    """Test the not-found translation of GET"""

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self, db, server):
        server.handlers["GET"] = return_not_found
        assert await db.get("test", "value1") is None
        assert server.received == ["GET test value1"]

    @pytest.mark.asyncio
    async def test_other_error_raises(self, db, server):
        server.handlers["GET"] = reply_with({"ok": False, "err": "bad request"})
        with pytest.raises(ServerError) as exc_info:
            await db.get("test", "value1")
        assert exc_info.value.message == "bad request"

    @pytest.mark.asyncio
    async def test_not_found_only_for_get(self, db, server):
        server.handlers["TTL"] = return_not_found
        with pytest.raises(ServerError, match="id not found"):
            await db.ttl("test", "value1")


class TestArguments:
    """Test argument validation"""

    @pytest.mark.asyncio
    async def test_set_without_value(self, db, server):
        with pytest.raises(InvalidArgumentsError, match="invalid arguments"):
            await db.set("test", "obj")
        assert server.received == []

    @pytest.mark.asyncio
    async def test_execute_without_arguments(self, db, server):
        with pytest.raises(InvalidArgumentsError):
            await db.execute("test")
        assert server.received == []


class TestDecodeFailure:
    """Test replies the client cannot decode"""

    @pytest.mark.asyncio
    async def test_unknown_field_has_context(self, db, server):
        server.handlers["SCAN"] = reply_with({"ok": True, "zzz": 1})
        with pytest.raises(UnknownFieldError) as exc_info:
            await db.scan("test")
        assert any("SCAN" in note for note in exc_info.value.__notes__)

    @pytest.mark.asyncio
    async def test_connection_survives_decode_error(self, db, server):
        server.handlers["SCAN"] = reply_with("{invalid}")
        with pytest.raises(Exception):
            await db.scan("test")
        server.handlers["SCAN"] = return_ok_true
        assert (await db.scan("test")).ok is True
        assert server.connections == 1


class TestLive:
    """Test live feeds opened from the client"""

    @pytest.mark.asyncio
    async def test_live_uses_own_connection(self, db, server):
        server.handlers["NEARBY"] = lambda args: [
            reply_with({"ok": True, "live": True})(args),
            reply_with({"command": "set", "detect": "enter", "id": "truck1"})(args),
        ]
        server.hangup.add("NEARBY")
        feed = await db.live("NEARBY", "fleet", "FENCE", "POINT", 33, -115, 5000)
        events = [e async for e in feed]
        assert [e.detect for e in events] == ["enter"]
        assert server.connections == 2
        assert server.received == ["OUTPUT json", "NEARBY fleet FENCE POINT 33 -115 5000"]


class TestSyncClient:
    """Test the synchronous wrapper"""

    def test_commands(self, threaded_server):
        threaded_server.handlers["GET"] = return_not_found
        with Tile38Sync.connect(threaded_server.host, threaded_server.port, pool_size=1) as db:
            db.set("fleet", "truck1", "POINT", 33, -115)
            assert db.get("fleet", "truck1") is None
            assert db.ttl("fleet", "truck1") == TEST_TTL
            assert db.scan("fleet").ok is True
        assert threaded_server.received == [
            "OUTPUT json",
            "SET fleet truck1 POINT 33 -115",
            "GET fleet truck1",
            "TTL fleet truck1",
            "SCAN fleet",
        ]

    def test_requires_loop(self):
        with pytest.raises(TypeError):
            Tile38Sync(Tile38())

    def test_connect_failure(self, threaded_server):
        threaded_server.handlers["OUTPUT"] = return_ok_false
        with pytest.raises(ConnectionError):
            Tile38Sync.connect(threaded_server.host, threaded_server.port, pool_size=1)
