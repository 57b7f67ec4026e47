"""The native call surface consumed by the session core.

``SdkBinding`` is the contract; ``EdsdkBinding`` implements it on top of the
``edsdk`` extension module. Every call either returns its value or raises
``NativeCallError`` carrying the SDK result code.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, List, Optional, Protocol

from edsdk_session.errors import InitializationError, NativeCallError
from edsdk_session.types import DeviceInfo, ItemInfo

PropertyHandler = Callable[[int, int, int], int]
ObjectHandler = Callable[[int, Any], int]
StateHandler = Callable[[int, int], int]


class SdkBinding(Protocol):
    # True when SDK events reach only the thread that ran initialize()
    pumps_on_init_thread: bool

    def initialize(self) -> None: ...

    def terminate(self) -> None: ...

    def retain(self, ref: Any) -> None: ...

    def release(self, ref: Any) -> None: ...

    def pump_events(self) -> None: ...

    def enumerate_devices(self) -> Any: ...

    def child_count(self, list_ref: Any) -> int: ...

    def child_at(self, list_ref: Any, index: int) -> Any: ...

    def device_info(self, ref: Any) -> DeviceInfo: ...

    def open_session(self, ref: Any) -> None: ...

    def close_session(self, ref: Any) -> None: ...

    def set_property_event_handler(
        self, ref: Any, mask: int, handler: Optional[PropertyHandler]
    ) -> None: ...

    def set_object_event_handler(
        self, ref: Any, mask: int, handler: Optional[ObjectHandler]
    ) -> None: ...

    def set_state_event_handler(
        self, ref: Any, mask: int, handler: Optional[StateHandler]
    ) -> None: ...

    def get_property_size(self, ref: Any, prop_id: int) -> int: ...

    def set_property_data(self, ref: Any, prop_id: int, size: int, data: int) -> None: ...

    def send_command(self, ref: Any, command: int, param: int) -> None: ...

    def set_capacity_hint(
        self, ref: Any, free_clusters: int, bytes_per_sector: int, reset: bool = True
    ) -> None: ...

    def item_info(self, item: Any) -> ItemInfo: ...

    def create_file_stream(self, path: str, disposition: int, access: int) -> Any: ...

    def download(self, item: Any, size: int, stream: Any) -> None: ...

    def download_complete(self, item: Any) -> None: ...


# Windows message pumping for EDSDK callbacks
if os.name == "nt":
    try:
        import pythoncom  # type: ignore
    except Exception:  # pragma: no cover - optional dependency
        pythoncom = None  # type: ignore
else:  # pragma: no cover - not required outside Windows
    pythoncom = None  # type: ignore


def _noop_property_handler(event: Any, prop_id: Any, param: Any) -> int:
    return 0


def _noop_object_handler(event: Any, ref: Any) -> int:
    return 0


def _noop_state_handler(event: Any, data: Any) -> int:
    return 0


class EdsdkBinding:
    """``SdkBinding`` backed by the ``edsdk`` module from edsdk-python.

    ``edsdk`` wraps every SDK reference in an ``EdsObject`` whose deallocation
    performs the native release, so ``retain``/``release`` pin and unpin the
    Python object instead of touching the refcount directly.
    """

    def __init__(self) -> None:
        try:
            import edsdk  # type: ignore
        except Exception as e:
            raise InitializationError(
                "edsdk-python is required to talk to Canon cameras"
            ) from e
        self._edsdk = edsdk
        self._pinned: Dict[int, List[Any]] = {}
        # PumpWaitingMessages drains the calling thread's queue only
        self.pumps_on_init_thread = pythoncom is not None

    def _call(self, name: str, *args: Any) -> Any:
        try:
            return getattr(self._edsdk, name)(*args)
        except getattr(self._edsdk, "EdsError", Exception) as e:
            code = getattr(e, "code", None)
            raise NativeCallError(name, int(code) if code is not None else -1, str(e)) from e

    # ---------- Lifecycle ----------
    def initialize(self) -> None:
        self._call("InitializeSDK")

    def terminate(self) -> None:
        self._pinned.clear()
        self._call("TerminateSDK")

    def retain(self, ref: Any) -> None:
        self._pinned.setdefault(id(ref), []).append(ref)

    def release(self, ref: Any) -> None:
        pins = self._pinned.get(id(ref))
        if not pins:
            return
        pins.pop()
        if not pins:
            del self._pinned[id(ref)]

    def pump_events(self) -> None:
        if pythoncom is not None:
            pythoncom.PumpWaitingMessages()
        self._call("GetEvent")

    # ---------- Enumeration ----------
    def enumerate_devices(self) -> Any:
        return self._call("GetCameraList")

    def child_count(self, list_ref: Any) -> int:
        return int(self._call("GetChildCount", list_ref))

    def child_at(self, list_ref: Any, index: int) -> Any:
        return self._call("GetChildAtIndex", list_ref, index)

    def device_info(self, ref: Any) -> DeviceInfo:
        info = self._call("GetDeviceInfo", ref)
        return DeviceInfo(
            port_name=info.get("szPortName", ""),
            description=info.get("szDeviceDescription", ""),
            sub_type=int(info.get("deviceSubType", 0)),
        )

    # ---------- Session ----------
    def open_session(self, ref: Any) -> None:
        self._call("OpenSession", ref)

    def close_session(self, ref: Any) -> None:
        self._call("CloseSession", ref)

    # edsdk insists on a callable, a no-op handler detaches ours
    def set_property_event_handler(
        self, ref: Any, mask: int, handler: Optional[PropertyHandler]
    ) -> None:
        self._call("SetPropertyEventHandler", ref, mask, handler or _noop_property_handler)

    def set_object_event_handler(
        self, ref: Any, mask: int, handler: Optional[ObjectHandler]
    ) -> None:
        self._call("SetObjectEventHandler", ref, mask, handler or _noop_object_handler)

    def set_state_event_handler(
        self, ref: Any, mask: int, handler: Optional[StateHandler]
    ) -> None:
        self._call("SetCameraStateEventHandler", ref, mask, handler or _noop_state_handler)

    # ---------- Properties / commands ----------
    def get_property_size(self, ref: Any, prop_id: int) -> int:
        _data_type, size = self._call("GetPropertySize", ref, prop_id, 0)
        return int(size)

    def set_property_data(self, ref: Any, prop_id: int, size: int, data: int) -> None:
        # edsdk derives the size from the property's data type
        self._call("SetPropertyData", ref, prop_id, 0, data)

    def send_command(self, ref: Any, command: int, param: int) -> None:
        self._call("SendCommand", ref, command, param)

    def set_capacity_hint(
        self, ref: Any, free_clusters: int, bytes_per_sector: int, reset: bool = True
    ) -> None:
        self._call(
            "SetCapacity",
            ref,
            {
                "reset": reset,
                "bytesPerSector": bytes_per_sector,
                "numberOfFreeClusters": free_clusters,
            },
        )

    # ---------- Transfer ----------
    def item_info(self, item: Any) -> ItemInfo:
        info = self._call("GetDirectoryItemInfo", item)
        return ItemInfo(
            size=int(info["size"]),
            filename=info.get("szFileName") or "",
            timestamp=int(info.get("dateTime", 0)),
        )

    def create_file_stream(self, path: str, disposition: int, access: int) -> Any:
        return self._call("CreateFileStream", path, disposition, access)

    def download(self, item: Any, size: int, stream: Any) -> None:
        self._call("Download", item, size, stream)

    def download_complete(self, item: Any) -> None:
        self._call("DownloadComplete", item)
