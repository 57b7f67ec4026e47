from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Executor
from typing import Any, Callable, Dict, List, Optional, Tuple

from edsdk_session.binding import SdkBinding
from edsdk_session.config import SessionConfig
from edsdk_session.constants import (
    CAMERA_COMMAND_PRESS_SHUTTER_BUTTON,
    PROP_ID_DRIVE_MODE,
    PROP_ID_SAVE_TO,
    SHUTTER_BUTTON_COMPLETELY,
    SHUTTER_BUTTON_OFF,
)
from edsdk_session.dispatcher import EventDispatcher
from edsdk_session.download import ImageDownloadPipeline
from edsdk_session.errors import NativeCallError, NotOpenError, SessionError
from edsdk_session.handles import CallbackToken, NativeHandle
from edsdk_session.listeners import ListenerRegistry
from edsdk_session.types import (
    CameraIdentity,
    DownloadedImage,
    EventKind,
    EventObserver,
    ImageListener,
    SessionState,
    Unsubscribe,
)

_logger = logging.getLogger(__name__)

# EdsUInt32
_UINT32_SIZE = 4


class CameraSession:
    """
    One logical connection to one camera.

    Contract
    - open(): retain the camera, register callbacks, open the SDK session,
      configure save-to-host and drive mode. A failing step raises
      SessionError and leaves whatever was done in place.
    - close(): undo the above, each step best-effort. No-op unless open.
    - trigger_capture(): capacity hint, press, settle, release.
    - Downloaded images are announced through the session's ListenerRegistry.
    """

    def __init__(
        self,
        binding: SdkBinding,
        camera_ref: Any,
        identity: CameraIdentity,
        *,
        config: Optional[SessionConfig] = None,
        executor: Optional[Executor] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.identity = identity
        self.config = config or SessionConfig()
        self._binding = binding
        self._camera_ref = camera_ref
        self._sleep = sleep
        self._log = logger or _logger.debug
        self._state = SessionState.CLOSED
        self._handle: Optional[NativeHandle] = None
        self._tokens: Dict[EventKind, CallbackToken] = {}
        self.registry = ListenerRegistry()
        self._pipeline = ImageDownloadPipeline(
            binding,
            self.registry,
            self.config.download_dir,
            executor=executor,
            file_pattern=self.config.file_pattern,
            unclaimed_limit=self.config.unclaimed_limit,
        )
        self._dispatcher = EventDispatcher(self._pipeline.dispatch, name=identity.port_name)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is SessionState.OPEN

    @property
    def unclaimed_images(self) -> List[DownloadedImage]:
        return list(self._pipeline.unclaimed)

    def drain_unclaimed_images(self) -> List[DownloadedImage]:
        return self._pipeline.drain_unclaimed()

    @property
    def pipeline(self) -> ImageDownloadPipeline:
        return self._pipeline

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    def __repr__(self) -> str:
        return f"CameraSession({self.identity.port_name!r}, {self._state.value})"

    # ---------- Lifecycle ----------
    def open(self) -> None:
        if self._state is not SessionState.CLOSED:
            raise SessionError(f"Camera session for {self.identity} is {self._state.value}")
        self._state = SessionState.OPENING
        try:
            self._open_sequence()
        except Exception:
            # No rollback: the retained handle and any registrations stay as they are
            self._state = SessionState.CLOSED
            raise
        self._state = SessionState.OPEN
        self._log(f"Camera session opened: {self.identity}")

    def _open_sequence(self) -> None:
        # Retain the camera reference so it outlives the enumeration list
        self._handle = NativeHandle.retain(self._binding, self._camera_ref)
        ref = self._handle.ref

        for kind, handler in self._dispatcher.handlers().items():
            try:
                self._tokens[kind] = CallbackToken.register(self._binding, ref, kind, handler)
            except NativeCallError as e:
                raise SessionError.from_native(
                    f"Unable to register {kind.value} event handler", e
                ) from e

        try:
            self._binding.open_session(ref)
        except NativeCallError as e:
            raise SessionError.from_native("Unable to open camera session", e) from e

        # Save to host so no memory card is required
        try:
            size = self._binding.get_property_size(ref, PROP_ID_SAVE_TO)
            self._binding.set_property_data(ref, PROP_ID_SAVE_TO, size, self.config.save_to)
        except NativeCallError as e:
            raise SessionError.from_native("Unable to set save destination", e) from e

        try:
            self._binding.set_property_data(
                ref, PROP_ID_DRIVE_MODE, _UINT32_SIZE, self.config.drive_mode
            )
        except NativeCallError as e:
            raise SessionError.from_native("Unable to set drive mode", e) from e

    def close(self) -> None:
        if self._state is not SessionState.OPEN:
            return
        self._state = SessionState.CLOSING
        for kind in (EventKind.PROPERTY, EventKind.OBJECT, EventKind.STATE):
            token = self._tokens.pop(kind, None)
            if token is None:
                continue
            try:
                token.unregister()
            except NativeCallError as e:
                _logger.warning(
                    "Unable to unregister %s handler for %s: %s", kind.value, self.identity, e
                )

        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                self._binding.close_session(handle.ref)
            except NativeCallError as e:
                _logger.warning("Unable to close camera session for %s: %s", self.identity, e)
            try:
                handle.release()
            except NativeCallError as e:
                _logger.warning("Unable to release camera %s: %s", self.identity, e)
        self._state = SessionState.CLOSED
        self._log(f"Camera session closed: {self.identity}")

    # ---------- Capture ----------
    def trigger_capture(self) -> None:
        if self._state is not SessionState.OPEN or self._handle is None:
            raise NotOpenError(
                f"Camera {self.identity} must be opened before attempting to trigger a capture"
            )
        ref = self._handle.ref
        # Tell the camera the host has room, otherwise it may refuse to shoot
        try:
            self._binding.set_capacity_hint(
                ref,
                self.config.capacity_free_clusters,
                self.config.capacity_bytes_per_sector,
                reset=True,
            )
        except NativeCallError as e:
            raise SessionError.from_native("Unable to set host capacity", e) from e

        self._log(f"Trigger capture on {self.identity}")
        self._send_shutter(SHUTTER_BUTTON_COMPLETELY)
        if self.config.shutter_settle_delay > 0:
            self._sleep(self.config.shutter_settle_delay)
        self._send_shutter(SHUTTER_BUTTON_OFF)

    def _send_shutter(self, position: int) -> None:
        try:
            self._binding.send_command(
                self._handle.ref, CAMERA_COMMAND_PRESS_SHUTTER_BUTTON, position
            )
        except NativeCallError as e:
            raise SessionError.from_native(
                f"Unable to send shutter button command 0x{position:x}", e
            ) from e

    # ---------- Listeners ----------
    def subscribe(self, listener: ImageListener) -> Unsubscribe:
        return self.registry.subscribe(listener)

    def subscribe_queue(
        self, loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> Tuple["asyncio.Queue[DownloadedImage]", Unsubscribe]:
        return self.registry.subscribe_queue(loop)

    def add_event_observer(self, fn: EventObserver) -> Unsubscribe:
        return self._dispatcher.add_observer(fn)
