"""Tile38 reply decoding: JSON replies and live events into Response values."""

import json
import re
from datetime import datetime
from typing import Any, Callable, Union

from .errors import (
    InvalidInputError,
    UnknownFieldError,
    UnknownFieldTypeError,
)
from .types import Response


# Protocol constants
DEFAULT_PORT = 9851
OUTPUT_COMMAND = "OUTPUT"
OUTPUT_JSON = "json"
ID_NOT_FOUND = "id not found"

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|z|[+-]\d{2}:\d{2})$"
)
_TRUE_WORDS = {"1", "t", "true"}


class _Object(dict):
    """A decoded JSON object that also keeps its members in document order,
    repeated names included."""

    def __init__(self, pairs: list[tuple[str, Any]]):
        super().__init__(pairs)
        self.pairs = pairs


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON literal {name}")


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _num(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.lower() in _TRUE_WORDS
    return False


def _raw(value: Any) -> str:
    """Minimized JSON text of a decoded value."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def parse_time(value: Any) -> Union[datetime, None]:
    """Parse an RFC 3339 timestamp, returning None if it is malformed.

    Fractional seconds beyond microsecond precision are truncated.
    """
    if not isinstance(value, str):
        return None
    match = _RFC3339.match(value)
    if match is None:
        return None
    base, fraction, offset = match.groups()
    text = base
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    text += "+00:00" if offset in ("Z", "z") else offset
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _elements(value: Any) -> list:
    """Array elements; an object yields its member values, a scalar itself."""
    if isinstance(value, list):
        return value
    if isinstance(value, _Object):
        return [v for _, v in value.pairs]
    return [value]


def _decode_list(response: Response, key: str, value: Any) -> None:
    if key == "ids":
        response.ids.extend(_str(x) for x in _elements(value))
    else:
        response.objects.extend(_raw(x) for x in _elements(value))


def _decode_fields(response: Response, key: str, value: Any) -> None:
    names = response.field_names
    if isinstance(value, list):
        for name in value:
            names.setdefault(_str(name), len(names))
    elif isinstance(value, _Object):
        for name, number in value.pairs:
            if name in names:
                continue
            names[name] = len(names)
            response.field_values.append(_num(number))
    else:
        raise UnknownFieldTypeError("unknown field type")


def _decode_object(response: Response, key: str, value: Any) -> None:
    response.object = value if isinstance(value, str) else _raw(value)


def _setter(attr: str, convert: Callable[[Any], Any]) -> Callable[[Response, str, Any], None]:
    def decode(response: Response, key: str, value: Any) -> None:
        setattr(response, attr, convert(value))
    return decode


_DECODERS: dict[str, Callable[[Response, str, Any], None]] = {
    "ok": _setter("ok", _bool),
    "id": _setter("id", _str),
    "object": _decode_object,
    "ids": _decode_list,
    "objects": _decode_list,
    "fields": _decode_fields,
    "count": _setter("count", lambda v: int(_num(v))),
    "cursor": _setter("cursor", lambda v: int(_num(v))),
    "ttl": _setter("ttl", _num),
    "err": _setter("err", _str),
    "elapsed": _setter("elapsed", _str),
    "live": _setter("live", _bool),
    "command": _setter("command", _str),
    "group": _setter("group", _str),
    "detect": _setter("detect", _str),
    "key": _setter("key", _str),
    "time": _setter("time", parse_time),
}


def decode_response(data: Union[bytes, str]) -> Response:
    """Decode one JSON reply or live event into a Response.

    Raises InvalidInputError for malformed JSON, UnknownFieldError for an
    unrecognized top-level key and UnknownFieldTypeError when ``fields``
    is neither an array nor an object.
    """
    try:
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        msg = json.loads(text, parse_constant=_reject_constant, object_pairs_hook=_Object)
    except ValueError as e:
        raise InvalidInputError(f"received invalid JSON: {e}") from e

    if not isinstance(msg, _Object):
        raise UnknownFieldError(None)

    # repeated keys are all applied in order; list-valued keys accumulate
    response = Response()
    for key, value in msg.pairs:
        decoder = _DECODERS.get(key)
        if decoder is None:
            raise UnknownFieldError(key)
        decoder(response, key, value)
    return response
