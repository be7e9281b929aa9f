"""Tile38 client implementation"""

import asyncio
from typing import Any, Optional

from .errors import InvalidArgumentsError, ServerError, UninitializedError
from .protocol import DEFAULT_PORT, ID_NOT_FOUND
from .session import Session
from .tcp import LiveFeed
from .types import Response


class Tile38:
    """Client for a Tile38 server.

    Use ``await Tile38.connect(...)`` to get a ready instance. Commands take
    their arguments in the same form as the Tile38 CLI, see
    https://tile38.com/commands/.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        pool_size: int = 4,
    ):
        self._host = host
        self._port = port
        self._pool_size = pool_size
        self._session: Optional[Session] = None

    @classmethod
    async def connect(
        cls,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        pool_size: int = 4,
    ) -> "Tile38":
        """Connect to a Tile38 server"""
        client = cls(host, port, pool_size)
        await client._connect()
        return client

    async def _connect(self) -> None:
        session = Session(self._host, self._port, self._pool_size)
        await session.open()
        self._session = session

    def _require_session(self) -> Session:
        if self._session is None:
            raise UninitializedError()
        return self._session

    async def execute(self, command: str, *args: Any) -> Response:
        """Run an arbitrary command and return the decoded reply."""
        session = self._require_session()
        return await session.execute(command, *(str(a) for a in args))

    async def set(self, key: str, id: str, *args: Any) -> None:
        """Save an object, e.g. ``set("fleet", "truck1", "POINT", 33, -115)``."""
        self._require_session()
        if not args:
            raise InvalidArgumentsError("invalid arguments: SET requires a value")
        await self.execute("SET", key, id, *args)

    async def get(self, key: str, id: str, *args: Any) -> Optional[Response]:
        """Get an object. Returns None if the id does not exist."""
        try:
            return await self.execute("GET", key, id, *args)
        except ServerError as e:
            if e.message == ID_NOT_FOUND:
                return None
            raise

    async def scan(self, key: str, *args: Any) -> Response:
        """Iterate through the objects of a key"""
        return await self.execute("SCAN", key, *args)

    async def search(self, key: str, *args: Any) -> Response:
        """Iterate through the string values of a key"""
        return await self.execute("SEARCH", key, *args)

    async def delete(self, key: str, id: str) -> None:
        """Delete an object"""
        await self.execute("DEL", key, id)

    async def pdel(self, key: str, pattern: str) -> None:
        """Delete the objects whose ids match a pattern"""
        await self.execute("PDEL", key, pattern)

    async def expire(self, key: str, id: str, seconds: int) -> None:
        """Set a timeout on an object"""
        await self.execute("EXPIRE", key, id, int(seconds))

    async def persist(self, key: str, id: str) -> None:
        """Remove the timeout on an object"""
        await self.execute("PERSIST", key, id)

    async def ttl(self, key: str, id: str) -> float:
        """Get the remaining time to live of an object in seconds."""
        response = await self.execute("TTL", key, id)
        return response.ttl

    async def live(self, command: str, *args: Any) -> LiveFeed:
        """Open a live geofence feed, e.g. ``live("NEARBY", "fleet", "FENCE", ...)``.

        The feed runs on its own connection, outside the pool.
        """
        self._require_session()
        return await LiveFeed.open(
            self._host, self._port, command, *(str(a) for a in args)
        )

    async def close(self) -> None:
        """Close all pooled connections"""
        session = self._require_session()
        self._session = None
        await session.close()

    async def __aenter__(self) -> "Tile38":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._session is not None:
            await self.close()


# Synchronous wrapper for convenience
class Tile38Sync:
    """Synchronous wrapper for Tile38.

    Create one with ``Tile38Sync.connect(...)``. The wrapped client must have
    been connected on ``loop``, which the wrapper owns and closes.
    """

    def __init__(self, client: Tile38, loop: asyncio.AbstractEventLoop):
        self._client = client
        self._loop = loop

    @classmethod
    def connect(
        cls,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        pool_size: int = 4,
    ) -> "Tile38Sync":
        """Connect to a Tile38 server"""
        loop = asyncio.new_event_loop()
        try:
            client = loop.run_until_complete(Tile38.connect(host, port, pool_size))
        except BaseException:
            loop.close()
            raise
        return cls(client, loop)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    def execute(self, command: str, *args: Any) -> Response:
        return self._run(self._client.execute(command, *args))

    def set(self, key: str, id: str, *args: Any) -> None:
        return self._run(self._client.set(key, id, *args))

    def get(self, key: str, id: str, *args: Any) -> Optional[Response]:
        return self._run(self._client.get(key, id, *args))

    def scan(self, key: str, *args: Any) -> Response:
        return self._run(self._client.scan(key, *args))

    def search(self, key: str, *args: Any) -> Response:
        return self._run(self._client.search(key, *args))

    def delete(self, key: str, id: str) -> None:
        return self._run(self._client.delete(key, id))

    def pdel(self, key: str, pattern: str) -> None:
        return self._run(self._client.pdel(key, pattern))

    def expire(self, key: str, id: str, seconds: int) -> None:
        return self._run(self._client.expire(key, id, seconds))

    def persist(self, key: str, id: str) -> None:
        return self._run(self._client.persist(key, id))

    def ttl(self, key: str, id: str) -> float:
        return self._run(self._client.ttl(key, id))

    def close(self) -> None:
        try:
            self._run(self._client.close())
        finally:
            self._loop.close()

    def __enter__(self) -> "Tile38Sync":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


# Convenience function
connect = Tile38.connect
