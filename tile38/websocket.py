"""Live geofence feeds over the Tile38 WebSocket endpoint."""

import logging
from typing import Any, Optional
from urllib.parse import quote

from websockets.asyncio.client import connect as ws_connect, ClientConnection
from websockets.exceptions import ConnectionClosedOK, WebSocketException

from .errors import ConnectionError, InvalidInputError, ServerError
from .protocol import DEFAULT_PORT, decode_response
from .types import Response

logger = logging.getLogger(__name__)


def build_url(host: str, port: int, command: str, *args: Any) -> str:
    """Build the ``ws://host:port/CMD+arg+...`` URL for a live command."""
    parts = [quote(str(p), safe="") for p in (command, *args)]
    return f"ws://{host}:{port}/" + "+".join(parts)


class WebSocketFeed:
    """Async iterator over live geofence events received on a WebSocket."""

    def __init__(
        self,
        command: str,
        *args: Any,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
    ):
        self._url = build_url(host, port, command, *args)
        self._command = command
        self._ws: Optional[ClientConnection] = None
        self._response: Optional[Response] = None
        self._closed = False

    @classmethod
    async def connect(
        cls,
        command: str,
        *args: Any,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
    ) -> "WebSocketFeed":
        """Open a feed and wait for the server to acknowledge it."""
        feed = cls(command, *args, host=host, port=port)
        await feed._connect()
        return feed

    @property
    def url(self) -> str:
        return self._url

    @property
    def response(self) -> Optional[Response]:
        """The reply that acknowledged the live command."""
        return self._response

    async def _connect(self) -> None:
        try:
            self._ws = await ws_connect(self._url)
            message = await self._ws.recv()
        except (OSError, WebSocketException) as e:
            await self.close()
            raise ConnectionError(f"unable to open live feed at {self._url}: {e}") from e

        try:
            response = decode_response(message)
            if not response.ok:
                raise ServerError(response.err, command=self._command)
        except BaseException:
            await self.close()
            raise
        self._response = response
        logger.debug("Live feed started at %s", self._url)

    def __aiter__(self) -> "WebSocketFeed":
        return self

    async def __anext__(self) -> Response:
        if self._closed or self._ws is None:
            raise StopAsyncIteration

        try:
            message = await self._ws.recv()
        except ConnectionClosedOK:
            await self.close()
            raise StopAsyncIteration
        except WebSocketException as e:
            if self._closed:
                raise StopAsyncIteration
            await self.close()
            raise ConnectionError(f"live feed at {self._url} failed: {e}") from e

        if not isinstance(message, (str, bytes)):
            raise InvalidInputError(f"expected a JSON event, got {message!r}")
        return decode_response(message)

    async def close(self) -> None:
        """Stop the feed and close the WebSocket."""
        if self._closed:
            return
        self._closed = True
        if self._ws:
            await self._ws.close()
        logger.debug("Live feed at %s closed", self._url)

    async def __aenter__(self) -> "WebSocketFeed":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
