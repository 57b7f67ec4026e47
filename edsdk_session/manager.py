from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

from edsdk_session.binding import EdsdkBinding, SdkBinding
from edsdk_session.camera_session import CameraSession
from edsdk_session.config import SessionConfig
from edsdk_session.errors import (
    DeviceNotFoundError,
    EnumerationError,
    NativeCallError,
    NotOpenError,
)
from edsdk_session.handles import NativeHandle, SdkContext
from edsdk_session.polling import ManualTicker, PollingLoop, TickSource
from edsdk_session.types import CameraIdentity, ImageListener, Unsubscribe

_logger = logging.getLogger(__name__)


class SessionManager:
    """
    Entry point: lists cameras and keeps at most one open session per port.

    Contract
    - Creating the manager initializes the SDK (InitializationError on failure);
      terminate() or leaving the ``with`` block shuts everything down.
    - The event loop runs exactly while at least one session is open.
    - Image downloads run on ``executor`` (a single worker thread by default).
    - Where the binding only delivers events to the thread that initialized
      the SDK, no pump thread is started; that thread drives the loop through
      wait_for().
    """

    def __init__(
        self,
        binding: Optional[SdkBinding] = None,
        *,
        config: Optional[SessionConfig] = None,
        ticker: Optional[TickSource] = None,
        executor: Optional[Executor] = None,
        verbose: bool = False,
        logger: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.verbose = verbose
        self._log = logger or (_logger.info if verbose else _logger.debug)
        self._context = SdkContext(binding if binding is not None else EdsdkBinding())
        self._binding = self._context.binding
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.download_workers,
            thread_name_prefix="edsdk-download",
        )
        self._sessions: Dict[str, CameraSession] = {}
        self._lock = threading.RLock()
        self._polling_lock = threading.Lock()
        if ticker is None and self._binding.pumps_on_init_thread:
            # Events only arrive on the thread that initialized the SDK, which
            # then pumps them itself through wait_for()
            ticker = ManualTicker()
        self.polling = PollingLoop(
            self._binding.pump_events, ticker, interval=self.config.poll_interval
        )
        self._terminated = False
        try:
            self._context.initialize()
        except Exception:
            self._shutdown_executor()
            raise

    # ---------- Lifecycle ----------
    def __enter__(self) -> "SessionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.terminate()

    def terminate(self) -> None:
        """Close every session (best effort), stop pumping, terminate the SDK."""
        if self._terminated:
            return
        self._terminated = True
        self._close_all()
        with self._polling_lock:
            self.polling.stop()
        self._shutdown_executor()
        self._context.terminate()
        self._log("Session manager terminated")

    def _close_all(self) -> None:
        # Session objects hold the camera references; they must be gone before
        # the SDK is terminated, so none outlive this frame
        with self._lock:
            sessions, self._sessions = list(self._sessions.values()), {}
        while sessions:
            session = sessions.pop(0)
            try:
                session.close()
            except Exception:
                _logger.exception("Failed to close %s during terminate", session.identity)
            del session

    def _shutdown_executor(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ---------- Discovery ----------
    def list_devices(self) -> List[CameraIdentity]:
        """Return the cameras currently connected."""
        with self._enumerate() as (cameras, _camera_list):
            return [identity for identity, _ref in cameras]

    def _enumerate(self) -> "_Enumeration":
        try:
            list_ref = self._binding.enumerate_devices()
        except NativeCallError as e:
            raise EnumerationError.from_native("Unable to get the camera list", e) from e
        camera_list = NativeHandle.adopt(self._binding, list_ref)
        try:
            cameras = self._read_camera_list(camera_list.ref)
        except BaseException:
            camera_list.release()
            raise
        return _Enumeration(cameras, camera_list)

    def _read_camera_list(self, list_ref: Any) -> List[Tuple[CameraIdentity, Any]]:
        try:
            count = self._binding.child_count(list_ref)
        except NativeCallError as e:
            raise EnumerationError.from_native("Unable to get the camera count", e) from e

        cameras: List[Tuple[CameraIdentity, Any]] = []
        for index in range(count):
            try:
                camera_ref = self._binding.child_at(list_ref, index)
            except NativeCallError as e:
                raise EnumerationError.from_native(
                    f"Unable to get the camera at index {index}", e
                ) from e
            try:
                info = self._binding.device_info(camera_ref)
            except NativeCallError as e:
                raise EnumerationError.from_native(
                    f"Unable to get the camera info at index {index}", e
                ) from e
            identity = CameraIdentity(
                port_name=info.port_name,
                device_description=info.description,
                device_sub_type=info.sub_type,
            )
            cameras.append((identity, camera_ref))
        return cameras

    # ---------- Sessions ----------
    def open(self, identity: CameraIdentity) -> None:
        """Open a session with ``identity``; does nothing if already open."""
        with self._lock:
            if identity.port_name in self._sessions:
                return
            with self._enumerate() as (cameras, _camera_list):
                found = next(
                    (
                        (ident, ref)
                        for ident, ref in cameras
                        if ident.port_name == identity.port_name
                    ),
                    None,
                )
                if found is None:
                    raise DeviceNotFoundError(
                        f"Unable to find camera at port name {identity.port_name}"
                    )
                session = CameraSession(
                    self._binding,
                    found[1],
                    found[0],
                    config=self.config,
                    executor=self._executor,
                    logger=self._log,
                )
                # The session retains its camera, so the list can go afterwards
                session.open()
            self._sessions[identity.port_name] = session
        self._sync_polling()
        self._log(f"Opened {session.identity}")

    def close(self, identity: CameraIdentity) -> bool:
        """Close the session for ``identity``; False if none was open."""
        try:
            with self._lock:
                session = self._sessions.pop(identity.port_name, None)
                if session is None:
                    return False
                session.close()
        finally:
            # Stopping joins the pump thread, so it must happen without holding
            # self._lock: callbacks on that thread may be waiting for it
            self._sync_polling()
        self._log(f"Closed {session.identity}")
        return True

    def _sync_polling(self) -> None:
        # Run the loop exactly while a session is open
        with self._polling_lock:
            with self._lock:
                wanted = bool(self._sessions)
            if wanted:
                self.polling.start()
            else:
                self.polling.stop()

    def wait_for(self, done: threading.Event, timeout: Optional[float] = None) -> bool:
        """Pump events on the calling thread until ``done`` is set.

        Needed where the SDK only delivers events to the thread that
        initialized it (Windows). Harmless elsewhere: overlapping pumps are
        skipped by the loop. Returns False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not done.is_set():
            self.polling.tick()
            remaining = self.polling.interval
            if deadline is not None:
                remaining = min(remaining, deadline - time.monotonic())
                if remaining <= 0:
                    return done.is_set()
            done.wait(remaining)
        return True

    def trigger_capture(self, identity: CameraIdentity) -> None:
        self.session(identity).trigger_capture()

    def subscribe_to_images(
        self, identity: CameraIdentity, listener: ImageListener
    ) -> Unsubscribe:
        return self.session(identity).subscribe(listener)

    # ---------- Introspection ----------
    def session(self, identity: CameraIdentity) -> CameraSession:
        with self._lock:
            session = self._sessions.get(identity.port_name)
        if session is None:
            raise NotOpenError(f"Camera {identity} is not open")
        return session

    def is_open(self, identity: CameraIdentity) -> bool:
        with self._lock:
            return identity.port_name in self._sessions

    @property
    def open_sessions(self) -> Tuple[CameraIdentity, ...]:
        with self._lock:
            return tuple(s.identity for s in self._sessions.values())


class _Enumeration:
    """Camera list snapshot that releases the SDK list object on exit."""

    def __init__(
        self, cameras: List[Tuple[CameraIdentity, Any]], camera_list: NativeHandle
    ) -> None:
        self.cameras = cameras
        self._camera_list = camera_list

    def __enter__(self) -> Tuple[List[Tuple[CameraIdentity, Any]], NativeHandle]:
        return self.cameras, self._camera_list

    def __exit__(self, exc_type, exc, tb) -> None:
        self._camera_list.release()
