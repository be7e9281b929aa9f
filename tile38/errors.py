"""Exception hierarchy for the Tile38 client."""

from typing import Optional


class Tile38Error(Exception):
    """Base exception for Tile38 errors."""
    pass


class DecodeError(Tile38Error):
    """A reply could not be decoded."""
    pass


class InvalidInputError(DecodeError):
    """Reply payload is not valid JSON."""
    pass


class UnknownFieldError(DecodeError):
    """Reply contains a top-level key the client does not recognize."""
    def __init__(self, field: Optional[str]):
        self.field = field
        if field is None:
            super().__init__("unknown response value: reply is not a JSON object")
        else:
            super().__init__(f"unknown response value: {field!r}")


class UnknownFieldTypeError(DecodeError):
    """A reply key holds a JSON value of an unexpected shape."""
    pass


class InvalidArgumentsError(Tile38Error):
    """A command was called with missing arguments."""
    pass


class UninitializedError(Tile38Error):
    """Operation on a client that is not connected."""
    def __init__(self, message: str = "database not initialized"):
        super().__init__(message)


class ConnectionError(Tile38Error):
    """Connection-related errors."""
    pass


class ServerError(Tile38Error):
    """The server answered with an error."""
    def __init__(self, message: str, command: Optional[str] = None):
        self.message = message
        self.command = command
        super().__init__(message)

