"""Command execution over a pool of Tile38 connections."""

import logging
from typing import Any

from redis.asyncio import BlockingConnectionPool
from redis.exceptions import RedisError

from .errors import ConnectionError, DecodeError, InvalidArgumentsError, ServerError
from .protocol import DEFAULT_PORT, decode_response
from .tcp import Tile38Connection, request
from .types import Response

logger = logging.getLogger(__name__)


class Session:
    """Runs commands against one server and classifies the replies.

    Connections come from a redis-py ``BlockingConnectionPool`` of at most
    ``pool_size`` connections. Borrowers wait while all of them are checked
    out, and every connection has completed the ``OUTPUT json`` handshake
    before it is handed out.
    """

    def __init__(self, host: str = "localhost", port: int = DEFAULT_PORT, pool_size: int = 4):
        if pool_size < 1:
            raise ValueError(f"pool size must be at least 1, got {pool_size}")
        self._host = host
        self._port = port
        self._pool_size = pool_size
        self._pool = BlockingConnectionPool(
            max_connections=pool_size,
            timeout=None,
            connection_class=Tile38Connection,
            host=host,
            port=port,
        )
        self._closed = False

    @property
    def address(self) -> str:
        return f"{self._host}:{self._port}"

    @property
    def pool(self) -> BlockingConnectionPool:
        return self._pool

    async def _borrow(self) -> Tile38Connection:
        if self._closed:
            raise ConnectionError("Session is closed")
        try:
            return await self._pool.get_connection()
        except RedisError as e:
            raise ConnectionError(f"unable to connect to {self.address}: {e}") from e

    async def open(self) -> None:
        """Dial the whole pool, failing if any connection cannot be established."""
        held = []
        try:
            for _ in range(self._pool_size):
                held.append(await self._borrow())
        except BaseException:
            for conn in held:
                await self._pool.release(conn)
            await self.close()
            raise
        for conn in held:
            await self._pool.release(conn)
        logger.info("Connection pool to %s ready (%d connections)", self.address, self._pool_size)

    async def close(self) -> None:
        self._closed = True
        await self._pool.disconnect()
        logger.info("Connection pool to %s closed", self.address)

    async def execute(self, command: str, *args: Any) -> Response:
        """Run a command and return its decoded reply.

        Raises InvalidArgumentsError when no arguments are given, a
        DecodeError subclass when the reply cannot be decoded and
        ServerError when the server reports a failure.
        """
        if not args:
            raise InvalidArgumentsError(f"invalid arguments: {command} requires at least one argument")

        conn = await self._borrow()
        try:
            raw = await request(conn, command, *args)
        finally:
            await self._pool.release(conn)

        try:
            response = decode_response(raw)
        except DecodeError as e:
            e.add_note(f"while decoding the reply to {command}")
            raise

        if not response.ok:
            raise ServerError(response.err, command=command)
        return response
