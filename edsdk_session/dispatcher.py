from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from edsdk_session.constants import ERR_OK, OBJECT_EVENT_DIR_ITEM_REQUEST_TRANSFER
from edsdk_session.types import (
    EventKind,
    EventObserver,
    ObjectEventRecord,
    PropertyEventRecord,
    SdkEvent,
    StateEventRecord,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Routes the SDK callbacks of one camera.

    The handlers run synchronously inside the event pump. They always
    acknowledge with ``ERR_OK`` and never let an exception reach the SDK.
    """

    def __init__(self, on_transfer_requested: Callable[[Any], Any], name: str = "") -> None:
        self._on_transfer_requested = on_transfer_requested
        self._name = name
        self._observers: List[EventObserver] = []

    def add_observer(self, fn: EventObserver) -> Unsubscribe:
        """Receive every raw event as a tagged record."""
        self._observers.append(fn)

        def remove() -> None:
            if fn in self._observers:
                self._observers.remove(fn)

        return remove

    def handlers(self) -> Dict[EventKind, Callable[..., int]]:
        return {
            EventKind.PROPERTY: self.handle_property_event,
            EventKind.OBJECT: self.handle_object_event,
            EventKind.STATE: self.handle_state_event,
        }

    # ---------- Event handlers ----------
    def handle_property_event(self, event: int, property_id: int, param: int) -> int:
        logger.debug(
            "%s property event 0x%x - property 0x%x - param 0x%x",
            self._name, int(event), int(property_id), int(param),
        )
        self._notify(PropertyEventRecord(int(event), int(property_id), int(param)))
        return ERR_OK

    def handle_object_event(self, event: int, item: Any) -> int:
        logger.debug("%s object event 0x%x", self._name, int(event))
        if int(event) == OBJECT_EVENT_DIR_ITEM_REQUEST_TRANSFER:
            try:
                self._on_transfer_requested(item)
            except Exception:
                logger.exception("%s failed to schedule image download", self._name)
        self._notify(ObjectEventRecord(int(event), item))
        return ERR_OK

    def handle_state_event(self, event: int, data: int) -> int:
        logger.debug("%s state event 0x%x - data %s", self._name, int(event), data)
        self._notify(StateEventRecord(int(event), int(data)))
        return ERR_OK

    def _notify(self, record: SdkEvent) -> None:
        for fn in list(self._observers):
            try:
                fn(record)
            except Exception:
                logger.exception("%s event observer %r failed", self._name, fn)
