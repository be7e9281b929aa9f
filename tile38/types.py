"""Type definitions for Tile38 client"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Response:
    """A decoded server reply or live geofence event.

    Every attribute keeps its zero value unless the matching key was present
    in the message. ``field_names`` maps a field name to its position in
    ``field_values`` (or in each object's value list for multi-object
    replies, where the server sends the names only).
    """
    ok: bool = False
    id: str = ""
    object: str = ""
    ids: list[str] = field(default_factory=list)
    objects: list[str] = field(default_factory=list)
    field_names: dict[str, int] = field(default_factory=dict)
    field_values: list[float] = field(default_factory=list)
    count: int = 0
    cursor: int = 0
    ttl: float = 0.0
    err: str = ""
    elapsed: str = ""

    # live geofence events
    live: bool = False
    command: str = ""
    group: str = ""
    detect: str = ""
    key: str = ""
    time: Optional[datetime] = None

    def field_value(self, name: str) -> Optional[float]:
        """Return the value of a named field, or None if it has no value."""
        index = self.field_names.get(name)
        if index is None or index >= len(self.field_values):
            return None
        return self.field_values[index]
