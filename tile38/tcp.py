"""Tile38 RESP connections and live feeds, built on redis-py's asyncio transport."""

import asyncio
import logging
from typing import Any

from redis.asyncio.connection import Connection
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError

from .errors import (
    ConnectionError,
    DecodeError,
    InvalidInputError,
    ServerError,
)
from .protocol import (
    DEFAULT_PORT,
    OUTPUT_COMMAND,
    OUTPUT_JSON,
    decode_response,
)
from .types import Response

logger = logging.getLogger(__name__)


async def _output_json(conn: "Tile38Connection") -> None:
    """Switch a freshly dialed connection to JSON output.

    Raising a redis ConnectionError makes redis-py drop the socket, so a
    connection whose handshake failed never reaches a borrower.
    """
    await conn.on_connect()
    try:
        response = decode_response(await request(conn, OUTPUT_COMMAND, OUTPUT_JSON))
        if not response.ok:
            raise ServerError(response.err, command=OUTPUT_COMMAND)
    except (DecodeError, ServerError, ConnectionError) as e:
        raise RedisConnectionError(f"handshake with {conn.address} failed: {e}") from e
    logger.debug("Connected to %s", conn.address)


class Tile38Connection(Connection):
    """A RESP connection that switches itself to JSON output on connect."""

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("host", "localhost")
        kwargs.setdefault("port", DEFAULT_PORT)
        # no CLIENT SETINFO, no reconnect attempts on a failed dial
        kwargs.update(
            lib_name=None,
            lib_version=None,
            retry=Retry(NoBackoff(), 0),
            redis_connect_func=_output_json,
        )
        super().__init__(**kwargs)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


async def request(conn: Tile38Connection, command: str, *args: Any) -> bytes:
    """Send one command and return the raw payload of its reply.

    RESP error lines raise ServerError and transport failures raise
    ConnectionError. redis-py disconnects a connection whose read was
    interrupted, so no reply is ever left behind for the next command.
    """
    logger.debug("%s -> %s %s", conn.address, command, " ".join(map(str, args)))
    try:
        await conn.send_command(command, *args)
        reply = await conn.read_response()
    except ResponseError as e:
        raise ServerError(str(e), command=command) from e
    except RedisError as e:
        raise ConnectionError(f"{command} on {conn.address} failed: {e}") from e
    if not isinstance(reply, bytes):
        raise InvalidInputError(f"{command}: expected a JSON reply, got {reply!r}")
    return reply


def _closed_by_server(e: RedisConnectionError) -> bool:
    # redis-py raises a bare ConnectionError at EOF; socket failures are
    # re-raised while handling the underlying OSError
    return e.__cause__ is None and e.__context__ is None


class LiveFeed:
    """Async iterator over live geofence events on a dedicated connection."""

    def __init__(self, conn: Tile38Connection, command: str, response: Response):
        self._conn = conn
        self._command = command
        self._response = response
        self._closed = False

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        command: str,
        *args: Any,
    ) -> "LiveFeed":
        """Dial a new connection and place it in live mode with a command."""
        conn = Tile38Connection(host=host, port=port)
        try:
            await conn.connect()
        except RedisError as e:
            raise ConnectionError(f"unable to connect to {conn.address}: {e}") from e
        try:
            response = decode_response(await request(conn, command, *args))
            if not response.ok:
                raise ServerError(response.err, command=command)
        except BaseException:
            await conn.disconnect()
            raise
        logger.debug("Live feed started on %s: %s", conn.address, command)
        return cls(conn, command, response)

    @property
    def response(self) -> Response:
        """The reply that acknowledged the live command."""
        return self._response

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "LiveFeed":
        return self

    async def __anext__(self) -> Response:
        if self._closed:
            raise StopAsyncIteration

        try:
            frame = await self._conn.read_response()
        except ResponseError as e:
            raise ServerError(str(e), command=self._command) from e
        except RedisConnectionError as e:
            # a close() racing the read ends the feed quietly
            if self._closed or _closed_by_server(e):
                await self.close()
                raise StopAsyncIteration
            await self.close()
            raise ConnectionError(f"live feed on {self._conn.address} failed: {e}") from e
        except RedisError as e:
            await self.close()
            raise ConnectionError(f"live feed on {self._conn.address} failed: {e}") from e
        except asyncio.CancelledError:
            await self.close()
            raise StopAsyncIteration

        if not isinstance(frame, bytes):
            raise InvalidInputError(f"expected a JSON event, got {frame!r}")
        return decode_response(frame)

    async def close(self) -> None:
        """Stop the feed and close its connection."""
        if self._closed:
            return
        self._closed = True
        await self._conn.disconnect()
        logger.debug("Live feed on %s closed", self._conn.address)

    async def __aenter__(self) -> "LiveFeed":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
