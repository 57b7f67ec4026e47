from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from edsdk_session.binding import SdkBinding
from edsdk_session.constants import OBJECT_EVENT_ALL, PROPERTY_EVENT_ALL, STATE_EVENT_ALL
from edsdk_session.errors import InitializationError, NativeCallError
from edsdk_session.types import EventKind

logger = logging.getLogger(__name__)


class NativeHandle:
    """Owns one reference to an SDK object.

    ``retain`` increments the SDK refcount on acquisition, ``adopt`` takes over
    a reference the SDK already handed out. Either way ``release`` gives the
    reference back exactly once.
    """

    __slots__ = ("_binding", "_ref")

    def __init__(self, binding: SdkBinding, ref: Any) -> None:
        self._binding = binding
        self._ref = ref

    @classmethod
    def retain(cls, binding: SdkBinding, ref: Any) -> "NativeHandle":
        binding.retain(ref)
        return cls(binding, ref)

    @classmethod
    def adopt(cls, binding: SdkBinding, ref: Any) -> "NativeHandle":
        return cls(binding, ref)

    @property
    def ref(self) -> Any:
        if self._ref is None:
            raise RuntimeError("Native handle already released")
        return self._ref

    @property
    def released(self) -> bool:
        return self._ref is None

    def transfer(self) -> "NativeHandle":
        """Move ownership into a new wrapper; this one becomes empty."""
        moved = NativeHandle(self._binding, self.ref)
        self._ref = None
        return moved

    def release(self) -> None:
        ref, self._ref = self._ref, None
        if ref is not None:
            self._binding.release(ref)

    def __copy__(self) -> "NativeHandle":
        raise TypeError("NativeHandle cannot be copied, use transfer()")

    def __deepcopy__(self, memo: Any) -> "NativeHandle":
        raise TypeError("NativeHandle cannot be copied, use transfer()")

    def __enter__(self) -> "NativeHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._ref is None else repr(self._ref)
        return f"NativeHandle({state})"


_EVENT_MASKS = {
    EventKind.PROPERTY: PROPERTY_EVENT_ALL,
    EventKind.OBJECT: OBJECT_EVENT_ALL,
    EventKind.STATE: STATE_EVENT_ALL,
}


def _setter(binding: SdkBinding, kind: EventKind) -> Callable[[Any, int, Any], None]:
    if kind is EventKind.PROPERTY:
        return binding.set_property_event_handler
    if kind is EventKind.OBJECT:
        return binding.set_object_event_handler
    return binding.set_state_event_handler


class CallbackToken:
    """Proof that a handler is registered for one event kind on one camera.

    Keeps the handler alive while registered; ``unregister`` consumes it.
    """

    def __init__(self, binding: SdkBinding, ref: Any, kind: EventKind, handler: Callable) -> None:
        self._binding = binding
        self._ref = ref
        self.kind = kind
        self._handler: Optional[Callable] = handler

    @classmethod
    def register(
        cls, binding: SdkBinding, ref: Any, kind: EventKind, handler: Callable
    ) -> "CallbackToken":
        _setter(binding, kind)(ref, _EVENT_MASKS[kind], handler)
        return cls(binding, ref, kind, handler)

    @property
    def active(self) -> bool:
        return self._handler is not None

    def unregister(self) -> None:
        if self._handler is None:
            raise RuntimeError(f"{self.kind.value} callback already unregistered")
        self._handler = None
        _setter(self._binding, self.kind)(self._ref, _EVENT_MASKS[self.kind], None)


class SdkContext:
    """Process-wide SDK init/terminate, owned by whoever creates it."""

    def __init__(self, binding: SdkBinding) -> None:
        self.binding = binding
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> "SdkContext":
        if self._initialized:
            return self
        try:
            self.binding.initialize()
        except NativeCallError as e:
            raise InitializationError.from_native("Unable to initialize the EDSDK", e) from e
        self._initialized = True
        logger.debug("EDSDK initialized")
        return self

    def terminate(self) -> None:
        if not self._initialized:
            return
        self._initialized = False
        try:
            self.binding.terminate()
        except NativeCallError as e:
            logger.warning("Unable to terminate the EDSDK: %s", e)
        else:
            logger.debug("EDSDK terminated")
