from __future__ import annotations

from typing import Dict, Optional, Union


class NativeCallError(Exception):
    """A native SDK call reported a non-success result code."""

    def __init__(self, call: str, code: int, message: Optional[str] = None) -> None:
        self.call = call
        self.code = int(code)
        super().__init__(message or f"{call} failed. Result: 0x{self.code:08X}")


class CameraError(RuntimeError):
    """Base class for every error raised by the session core."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        self.code = code
        super().__init__(message)

    @classmethod
    def from_native(cls, message: str, exc: NativeCallError) -> "CameraError":
        return cls(f"{message}. Result: 0x{exc.code:08X}", code=exc.code)


class InitializationError(CameraError):
    """The SDK could not be loaded or initialized."""


class EnumerationError(CameraError):
    """Listing connected cameras failed."""


class DeviceNotFoundError(CameraError):
    """No connected camera matches the requested port name."""


class SessionError(CameraError):
    """A native open/close/property/command call failed for a session."""


class DownloadError(CameraError):
    """A single image transfer failed."""


class NotOpenError(CameraError):
    """The operation needs an open camera session."""


def classify_error(exc: BaseException) -> Dict[str, Union[int, str, None]]:
    """Return a structured error info dict with the native code when known."""
    code = getattr(exc, "code", None)
    info: Dict[str, Union[int, str, None]] = {
        "type": type(exc).__name__,
        "message": str(exc),
    }
    if code is not None:
        info["code"] = int(code)
    return info
