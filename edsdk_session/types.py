from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Union


class SessionState(enum.Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"


class EventKind(enum.Enum):
    PROPERTY = "property"
    OBJECT = "object"
    STATE = "state"


@dataclass(frozen=True)
class CameraIdentity:
    """Snapshot of a connected camera's descriptor.

    Two identities are equal iff their port names match; the description and
    sub type are informational only.
    """

    port_name: str
    device_description: str = field(default="", compare=False)
    device_sub_type: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"{self.device_description or 'camera'} ({self.port_name})"


@dataclass(frozen=True)
class DownloadedImage:
    path: str
    filename: str
    size: int
    # dateTime as reported by the camera (seconds since the epoch)
    timestamp: int

    @property
    def captured_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


@dataclass(frozen=True)
class DeviceInfo:
    port_name: str
    description: str
    sub_type: int


@dataclass(frozen=True)
class ItemInfo:
    size: int
    filename: str
    timestamp: int


# ---------- Tagged SDK events ----------
@dataclass(frozen=True)
class PropertyEventRecord:
    event: int
    property_id: int
    param: int
    kind: EventKind = field(default=EventKind.PROPERTY, init=False)


@dataclass(frozen=True)
class ObjectEventRecord:
    event: int
    item: Any
    kind: EventKind = field(default=EventKind.OBJECT, init=False)


@dataclass(frozen=True)
class StateEventRecord:
    event: int
    data: int
    kind: EventKind = field(default=EventKind.STATE, init=False)


SdkEvent = Union[PropertyEventRecord, ObjectEventRecord, StateEventRecord]

ImageListener = Callable[[DownloadedImage], None]
EventObserver = Callable[[SdkEvent], None]
Unsubscribe = Callable[[], None]
