"""Session event system for broadcasting playback state changes.

Provides event types, event data structures, and an event emitter for
decoupled communication between the PlaybackController and UI, speech,
and persistence collaborators.

Usage:
    emitter = SessionEventEmitter()
    emitter.subscribe(SessionEventType.INSTRUCTION_DISPATCHED, lambda evt: print(evt.data["text"]))
    emitter.emit(SessionEvent(SessionEventType.PHASE_START, data={"phase_index": 0}))
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Any, Optional
import logging
import time


class SessionEventType(Enum):
    """Types of events that can occur during playback."""

    # Session lifecycle
    SESSION_START = auto()     # Session started from idle
    SESSION_PAUSE = auto()     # Session paused
    SESSION_RESUME = auto()    # Session resumed from pause
    SESSION_END = auto()       # Session completed or stopped early (data["result"])
    SESSION_RESET = auto()     # Controller returned to idle

    # Script progress
    PHASE_START = auto()               # Phase entered (fires once per phase)
    INSTRUCTION_DISPATCHED = auto()    # Instruction announced (fires once per instruction)
    POSITION_CHANGED = auto()          # Every tick while running (data["position"])


@dataclass
class SessionEvent:
    """Represents a session event with optional payload data.

    Attributes:
        event_type: Type of event that occurred
        data: Optional dictionary with event-specific data
        timestamp: Optional wall-clock timestamp (set by emitter if missing)
    """
    event_type: SessionEventType
    data: Optional[dict[str, Any]] = None
    timestamp: Optional[float] = None

    def __str__(self) -> str:
        """Human-readable event representation."""
        if self.data:
            data_str = ", ".join(f"{k}={v}" for k, v in self.data.items())
            return f"SessionEvent({self.event_type.name}, {data_str})"
        return f"SessionEvent({self.event_type.name})"


class SessionEventEmitter:
    """Event bus for playback state changes.

    Subscribers are called synchronously in subscription order. A subscriber
    that raises is logged and skipped; it never interrupts playback or the
    remaining subscribers.
    """

    def __init__(self):
        """Initialize event emitter with empty subscriber lists."""
        self._subscribers: dict[SessionEventType, list[Callable[[SessionEvent], None]]] = {}
        self.logger = logging.getLogger(__name__)

    def subscribe(
        self,
        event_type: SessionEventType,
        callback: Callable[[SessionEvent], None]
    ) -> None:
        """Subscribe to a specific event type.

        Args:
            event_type: Type of event to listen for
            callback: Function to call when event occurs (receives SessionEvent)
        """
        callbacks = self._subscribers.setdefault(event_type, [])
        if callback not in callbacks:
            callbacks.append(callback)
            self.logger.debug(f"[events] Subscribed to {event_type.name} (total={len(callbacks)})")

    def unsubscribe(
        self,
        event_type: SessionEventType,
        callback: Callable[[SessionEvent], None]
    ) -> None:
        """Unsubscribe from a specific event type."""
        callbacks = self._subscribers.get(event_type)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)
            self.logger.debug(f"[events] Unsubscribed from {event_type.name} (total={len(callbacks)})")

    def subscriber_count(self, event_type: SessionEventType) -> int:
        return len(self._subscribers.get(event_type, ()))

    def emit(self, event: SessionEvent) -> None:
        """Emit an event to all subscribed callbacks.

        Args:
            event: The event to emit
        """
        if event.timestamp is None:
            event.timestamp = time.time()

        if event.event_type is not SessionEventType.POSITION_CHANGED:
            self.logger.debug(f"[events] Emitting: {event}")

        # Copy so callbacks may unsubscribe themselves while being called
        for callback in list(self._subscribers.get(event.event_type, ())):
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"[events] Callback error for {event.event_type.name}: {e}", exc_info=True)

    def clear_all(self) -> None:
        """Remove all event subscribers (useful for testing/cleanup)."""
        self._subscribers.clear()
        self.logger.debug("[events] Cleared all subscribers")
