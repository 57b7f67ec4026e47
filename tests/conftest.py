"""Pytest configuration and fixtures for edsdk-session tests.

No camera or EDSDK install is needed: ``FakeBinding`` stands in for the
native SDK, records every call, and delivers queued events to whatever
handlers are registered when ``pump_events`` runs.
"""

from __future__ import annotations

import os
from collections import Counter
from concurrent.futures import Executor, Future
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from edsdk_session.config import SessionConfig
from edsdk_session.errors import NativeCallError
from edsdk_session.polling import ManualTicker
from edsdk_session.types import DeviceInfo, EventKind, ItemInfo

ERR_COMM_DISCONNECTED = 0x000000C1


class FakeRef:
    """Opaque SDK reference."""

    def __init__(self, label: str) -> None:
        self.label = label

    def __repr__(self) -> str:
        return f"<{self.label}>"


class FakeStream(FakeRef):
    def __init__(self, path: str) -> None:
        super().__init__(f"stream {os.path.basename(path)}")
        self.path = path


class FakeBinding:
    """In-memory SdkBinding.

    Attributes:
        calls: (name, args) for every call, in order.
        fail: method name -> result code; that call raises NativeCallError.
        retains / releases: per-reference call counters.
    """

    pumps_on_init_thread = False

    def __init__(self, devices: Optional[List[Tuple[str, str, int]]] = None) -> None:
        self.devices: List[Tuple[str, str, int]] = list(devices or [])
        self.calls: List[Tuple[str, tuple]] = []
        self.fail: Dict[str, int] = {}
        self.retains: Counter = Counter()
        self.releases: Counter = Counter()
        self.handlers: Dict[Tuple[int, EventKind], Any] = {}
        self.items: Dict[int, ItemInfo] = {}
        self.pending: List[Tuple[Any, EventKind, tuple]] = []
        self.camera_refs: Dict[str, FakeRef] = {}
        self.list_refs: List[FakeRef] = []
        self.streams: List[FakeStream] = []
        self.live: Set[int] = set()

    # ---------- helpers ----------
    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail:
            raise NativeCallError(name, self.fail[name])

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def count(self, name: str) -> int:
        return self.names().count(name)

    def camera(self, port: str) -> FakeRef:
        if port not in self.camera_refs:
            self.camera_refs[port] = FakeRef(f"camera {port}")
        return self.camera_refs[port]

    def add_item(self, filename: str, size: int, timestamp: int) -> FakeRef:
        item = FakeRef(f"item {filename}")
        self.items[id(item)] = ItemInfo(size=size, filename=filename, timestamp=timestamp)
        return item

    def queue_event(self, ref: Any, kind: EventKind, *args: Any) -> None:
        self.pending.append((ref, kind, args))

    def handler(self, ref: Any, kind: EventKind) -> Any:
        return self.handlers.get((id(ref), kind))

    # ---------- SdkBinding ----------
    def initialize(self) -> None:
        self._record("initialize")

    def terminate(self) -> None:
        self._record("terminate")

    def retain(self, ref: Any) -> None:
        self._record("retain", ref)
        self.retains[id(ref)] += 1

    def release(self, ref: Any) -> None:
        self._record("release", ref)
        self.releases[id(ref)] += 1

    def pump_events(self) -> None:
        self._record("pump_events")
        pending, self.pending = self.pending, []
        for ref, kind, args in pending:
            handler = self.handler(ref, kind)
            if handler is not None:
                handler(*args)

    def enumerate_devices(self) -> Any:
        self._record("enumerate_devices")
        list_ref = FakeRef("camera list")
        self.list_refs.append(list_ref)
        return list_ref

    def child_count(self, list_ref: Any) -> int:
        self._record("child_count", list_ref)
        return len(self.devices)

    def child_at(self, list_ref: Any, index: int) -> Any:
        self._record("child_at", list_ref, index)
        return self.camera(self.devices[index][0])

    def device_info(self, ref: Any) -> DeviceInfo:
        self._record("device_info", ref)
        for port, description, sub_type in self.devices:
            if self.camera_refs.get(port) is ref:
                return DeviceInfo(port, description, sub_type)
        raise NativeCallError("device_info", ERR_COMM_DISCONNECTED)

    def open_session(self, ref: Any) -> None:
        self._record("open_session", ref)
        self.live.add(id(ref))

    def close_session(self, ref: Any) -> None:
        self._record("close_session", ref)
        self.live.discard(id(ref))

    def _set_handler(self, name: str, kind: EventKind, ref: Any, mask: int, handler: Any) -> None:
        self._record(name, ref, mask, handler)
        if handler is None:
            self.handlers.pop((id(ref), kind), None)
        else:
            self.handlers[(id(ref), kind)] = handler

    def set_property_event_handler(self, ref: Any, mask: int, handler: Any) -> None:
        self._set_handler("set_property_event_handler", EventKind.PROPERTY, ref, mask, handler)

    def set_object_event_handler(self, ref: Any, mask: int, handler: Any) -> None:
        self._set_handler("set_object_event_handler", EventKind.OBJECT, ref, mask, handler)

    def set_state_event_handler(self, ref: Any, mask: int, handler: Any) -> None:
        self._set_handler("set_state_event_handler", EventKind.STATE, ref, mask, handler)

    def get_property_size(self, ref: Any, prop_id: int) -> int:
        self._record("get_property_size", ref, prop_id)
        return 4

    def set_property_data(self, ref: Any, prop_id: int, size: int, data: int) -> None:
        self._record("set_property_data", ref, prop_id, size, data)

    def send_command(self, ref: Any, command: int, param: int) -> None:
        self._record("send_command", ref, command, param)

    def set_capacity_hint(
        self, ref: Any, free_clusters: int, bytes_per_sector: int, reset: bool = True
    ) -> None:
        self._record("set_capacity_hint", ref, free_clusters, bytes_per_sector, reset)

    def item_info(self, item: Any) -> ItemInfo:
        self._record("item_info", item)
        return self.items[id(item)]

    def create_file_stream(self, path: str, disposition: int, access: int) -> Any:
        self._record("create_file_stream", path, disposition, access)
        stream = FakeStream(path)
        self.streams.append(stream)
        return stream

    def download(self, item: Any, size: int, stream: Any) -> None:
        self._record("download", item, size, stream)
        with open(stream.path, "wb") as f:
            f.write(b"\xff" * size)

    def download_complete(self, item: Any) -> None:
        self._record("download_complete", item)


class ImmediateExecutor(Executor):
    """Runs submitted work inline so tests can assert right after a tick."""

    def __init__(self) -> None:
        self.submitted = 0
        self._shutdown = False

    def submit(self, fn, *args, **kwargs):
        if self._shutdown:
            raise RuntimeError("cannot schedule new futures after shutdown")
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True, *, cancel_futures=False):
        self._shutdown = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def binding() -> FakeBinding:
    """Fake SDK with two connected cameras, A and B."""
    return FakeBinding(
        devices=[
            ("usb:001,004", "Canon EOS R6", 2),
            ("usb:001,007", "Canon EOS 90D", 2),
        ]
    )


@pytest.fixture
def ticker() -> ManualTicker:
    return ManualTicker()


@pytest.fixture
def executor() -> ImmediateExecutor:
    return ImmediateExecutor()


@pytest.fixture
def config(tmp_path) -> SessionConfig:
    """Config writing into a temp dir, with no shutter wait."""
    return SessionConfig(download_dir=str(tmp_path), shutter_settle_delay=0)


@pytest.fixture
def make_binding():
    """Factory for bindings with a custom device list."""
    return FakeBinding
