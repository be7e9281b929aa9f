"""Tile38 Python Client"""

from .client import Tile38, Tile38Sync, connect
from .tcp import LiveFeed, Tile38Connection
from .session import Session
from .websocket import WebSocketFeed
from .types import Response
from .protocol import decode_response
from .errors import (
    Tile38Error,
    DecodeError,
    InvalidInputError,
    UnknownFieldError,
    UnknownFieldTypeError,
    InvalidArgumentsError,
    UninitializedError,
    ConnectionError,
    ServerError,
)

__all__ = [
    # Client
    "Tile38",
    "Tile38Sync",
    "connect",
    "Session",
    # Connections
    "Tile38Connection",
    # Live feeds
    "LiveFeed",
    "WebSocketFeed",
    # Types
    "Response",
    # Protocol
    "decode_response",
    # Errors
    "Tile38Error",
    "DecodeError",
    "InvalidInputError",
    "UnknownFieldError",
    "UnknownFieldTypeError",
    "InvalidArgumentsError",
    "UninitializedError",
    "ConnectionError",
    "ServerError",
]
__version__ = "0.1.0"
