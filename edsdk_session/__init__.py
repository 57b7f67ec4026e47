"""Session lifecycle and event dispatch for Canon cameras driven through EDSDK."""

from edsdk_session.binding import EdsdkBinding, SdkBinding
from edsdk_session.camera_session import CameraSession
from edsdk_session.config import SessionConfig
from edsdk_session.errors import (
    CameraError,
    DeviceNotFoundError,
    DownloadError,
    EnumerationError,
    InitializationError,
    NativeCallError,
    NotOpenError,
    SessionError,
    classify_error,
)
from edsdk_session.manager import SessionManager
from edsdk_session.polling import ManualTicker, PollingLoop, ThreadTicker
from edsdk_session.types import CameraIdentity, DownloadedImage, SessionState

__version__ = "0.1.0"

__all__ = [
    "CameraError",
    "CameraIdentity",
    "CameraSession",
    "DeviceNotFoundError",
    "DownloadError",
    "DownloadedImage",
    "EdsdkBinding",
    "EnumerationError",
    "InitializationError",
    "ManualTicker",
    "NativeCallError",
    "NotOpenError",
    "PollingLoop",
    "SdkBinding",
    "SessionConfig",
    "SessionError",
    "SessionManager",
    "SessionState",
    "ThreadTicker",
    "classify_error",
]
