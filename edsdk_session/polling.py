"""Periodic event pumping.

The SDK only delivers queued callbacks from inside its GetEvent call, so
something has to call it every few milliseconds while a camera is open.
``PollingLoop`` does that on top of a pluggable tick source: ``ThreadTicker``
for real use, ``ManualTicker`` when ticks should be driven by hand.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Tick = Callable[[], None]


class TickSource(Protocol):
    def start(self, tick: Tick, interval: float) -> None: ...

    def stop(self) -> None: ...


class ThreadTicker:
    """Calls ``tick`` every ``interval`` seconds from a single worker thread.

    The next tick is only scheduled once the previous one returned, so ticks
    never overlap.
    """

    def __init__(self, name: str = "edsdk-event-pump") -> None:
        self._name = name
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def start(self, tick: Tick, interval: float) -> None:
        if self._thread is not None:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(tick, interval, self._stop), name=self._name, daemon=True
        )
        self._thread.start()

    def _run(self, tick: Tick, interval: float, stop: threading.Event) -> None:
        while not stop.wait(interval):
            tick()

    def stop(self) -> None:
        thread, self._thread = self._thread, None
        if thread is None:
            return
        self._stop.set()
        # stop() may be reached from a callback running on the pump thread
        if thread is not threading.current_thread():
            thread.join()


class ManualTicker:
    """Tick source that only fires when ``fire`` is called."""

    def __init__(self) -> None:
        self._tick: Optional[Tick] = None
        self.interval: Optional[float] = None
        self.starts = 0
        self.stops = 0

    @property
    def active(self) -> bool:
        return self._tick is not None

    def start(self, tick: Tick, interval: float) -> None:
        self._tick = tick
        self.interval = interval
        self.starts += 1

    def stop(self) -> None:
        self._tick = None
        self.stops += 1

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            if self._tick is None:
                return
            self._tick()


class PollingLoop:
    """Runs ``pump`` once per tick while started.

    A failing pump is logged and the loop keeps going. A tick that arrives
    while the previous one is still inside ``pump`` is skipped.
    """

    def __init__(
        self,
        pump: Callable[[], None],
        ticker: Optional[TickSource] = None,
        interval: float = 0.01,
    ) -> None:
        self._pump = pump
        self._ticker: TickSource = ticker if ticker is not None else ThreadTicker()
        self.interval = interval
        self._running = False
        self._busy = threading.Lock()
        self.ticks = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Start pumping; returns False if already running."""
        if self._running:
            return False
        self._running = True
        self._ticker.start(self.tick, self.interval)
        logger.debug("Event loop started (interval %.3fs)", self.interval)
        return True

    def stop(self) -> bool:
        """Stop pumping; returns False if it was not running."""
        if not self._running:
            return False
        self._running = False
        self._ticker.stop()
        logger.debug("Event loop stopped after %d ticks", self.ticks)
        return True

    def tick(self) -> None:
        if not self._running:
            return
        if not self._busy.acquire(blocking=False):
            return
        try:
            self.ticks += 1
            self._pump()
        except Exception:
            self.failures += 1
            logger.exception("Event pump failed")
        finally:
            self._busy.release()
