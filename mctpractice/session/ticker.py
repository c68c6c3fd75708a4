"""Tick sources that drive ``PlaybackController.tick``.

The interval only controls how promptly instructions are noticed; elapsed
time is always measured from the controller's clock, so a late or skipped
tick never shifts the schedule.

- ManualTickSource: the host calls ``fire()`` from its own loop (tests, game loops)
- QtTickSource: repeating ``QTimer`` on the Qt event loop
- AsyncioTickSource: repeating ``call_later`` on the running asyncio loop
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Callable, Optional, Protocol

TICK_MS_ENV = "MCTPRACTICE_TICK_MS"
DEFAULT_TICK_MS = 1000.0
MIN_TICK_MS = 1.0

TickCallback = Callable[[], Any]

logger = logging.getLogger(__name__)


def resolve_tick_interval_ms(value: Optional[float] = None) -> float:
    """Explicit value, else ``MCTPRACTICE_TICK_MS``, else 1000 ms."""
    if value is None:
        raw = os.environ.get(TICK_MS_ENV, "").strip()
        if raw:
            try:
                value = float(raw)
            except ValueError:
                logger.warning("[ticker] Ignoring invalid %s=%r", TICK_MS_ENV, raw)
    if value is None:
        return DEFAULT_TICK_MS
    return max(MIN_TICK_MS, float(value))


class TickSource(Protocol):
    """Repeating timer the controller starts and stops."""

    @property
    def active(self) -> bool: ...

    def start(self, callback: TickCallback) -> None: ...

    def stop(self) -> None: ...


class ManualTickSource:
    """Host-driven tick source; ``fire()`` ticks only while started."""

    def __init__(self) -> None:
        self._callback: Optional[TickCallback] = None
        self.fired = 0

    @property
    def active(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    def fire(self) -> Any:
        if self._callback is None:
            return None
        self.fired += 1
        return self._callback()


class QtTickSource:
    """Repeating ``PyQt6.QtCore.QTimer``.

    Needs a Qt event loop on the current thread (``QCoreApplication`` is
    enough for headless hosts).
    """

    def __init__(self, interval_ms: Optional[float] = None, parent: Any = None) -> None:
        from PyQt6.QtCore import Qt, QTimer

        self.interval_ms = resolve_tick_interval_ms(interval_ms)
        self._timer = QTimer(parent)
        self._timer.setInterval(int(round(self.interval_ms)))
        self._timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._callback: Optional[TickCallback] = None
        self._timer.timeout.connect(self._on_timeout)

    @property
    def active(self) -> bool:
        return self._timer.isActive()

    def _on_timeout(self) -> None:
        if self._callback is not None:
            self._callback()

    def start(self, callback: TickCallback) -> None:
        self._callback = callback
        self._timer.start()
        logger.debug("[ticker] Qt timer started (%.0f ms)", self.interval_ms)

    def stop(self) -> None:
        self._timer.stop()
        self._callback = None


class AsyncioTickSource:
    """Repeating ``loop.call_later`` tick on the running asyncio loop."""

    def __init__(self, interval_ms: Optional[float] = None, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.interval_ms = resolve_tick_interval_ms(interval_ms)
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._callback: Optional[TickCallback] = None

    @property
    def active(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self.stop()
        self._callback = callback
        self._schedule()
        logger.debug("[ticker] asyncio tick started (%.0f ms)", self.interval_ms)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._callback = None

    def _schedule(self) -> None:
        assert self._loop is not None
        self._handle = self._loop.call_later(self.interval_ms / 1000.0, self._on_timer)

    def _on_timer(self) -> None:
        self._handle = None
        callback = self._callback
        if callback is None:
            return
        callback()
        # The callback may have stopped (or restarted) the source
        if self._callback is callback and self._handle is None:
            self._schedule()
