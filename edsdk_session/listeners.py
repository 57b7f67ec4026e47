from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from typing import Dict, Optional, Tuple

from edsdk_session.types import DownloadedImage, ImageListener, Unsubscribe

logger = logging.getLogger(__name__)


class ListenerRegistry:
    """Per-session subscribers for downloaded images.

    Safe to subscribe/unsubscribe while a download is publishing: ``publish``
    works on a snapshot taken under the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count()
        # dicts keep insertion order, which is the delivery order
        self._listeners: Dict[int, ImageListener] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def subscribe(self, listener: ImageListener) -> Unsubscribe:
        with self._lock:
            key = next(self._ids)
            self._listeners[key] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(key, None)

        return unsubscribe

    def publish(self, image: DownloadedImage) -> int:
        """Deliver ``image`` to every listener; returns how many were called."""
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(image)
            except Exception:
                logger.exception("Image listener %r failed for %s", listener, image.filename)
        return len(listeners)

    # ---------- asyncio bridge ----------
    def subscribe_queue(
        self, loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> Tuple["asyncio.Queue[DownloadedImage]", Unsubscribe]:
        """Feed images into an asyncio queue owned by ``loop``.

        Without ``loop`` this must be called from a coroutine. Publishing
        happens on a download worker thread, so items are handed over with
        ``call_soon_threadsafe``.
        """
        if loop is None:
            loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[DownloadedImage]" = asyncio.Queue()

        def enqueue(image: DownloadedImage) -> None:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(queue.put_nowait, image)

        return queue, self.subscribe(enqueue)
