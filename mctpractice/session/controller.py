"""
Playback Controller - state machine driving a script through a session.

The PlaybackController owns:
- The playback state machine (IDLE, RUNNING, PAUSED, COMPLETED, STOPPED)
- A reference time from a monotonic clock; elapsed time is always
  ``clock() - start_reference`` so late or skipped ticks cannot drift
- Pause/resume by freezing elapsed time and re-deriving the reference on
  resume (paused intervals never count)
- The InstructionDispatcher (exactly-once announcements)
- Event emission for UI, speech, and persistence collaborators

Architecture:
    tick source fires tick()
    -> elapsed = clock() - start_reference
    -> position = resolve(script, elapsed)       (pure)
    -> dispatcher.dispatch(position)             (fires every crossed boundary)
    -> emit POSITION_CHANGED
    -> if position.is_complete: COMPLETED, emit SESSION_END with SessionResult

Control calls made in a state that does not support them are ignored and
return False/None; UI races such as a double-clicked pause are expected.
"""

from __future__ import annotations
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional
import logging
import time

from ..logging_utils import PerfTracer
from .clock import SessionPosition, format_clock, overall_progress, phase_progress, resolve
from .dispatcher import Announce, DispatchRecord, InstructionDispatcher
from .events import SessionEvent, SessionEventEmitter, SessionEventType
from .result import SessionOutcome, SessionResult, build_result
from .script import Phase, Script, validate_script
from .ticker import ManualTickSource, TickSource


class PlaybackState(Enum):
    """Playback states."""
    IDLE = auto()       # Not started (or reset), can be started
    RUNNING = auto()    # Clock advancing, ticks processed
    PAUSED = auto()     # Elapsed time frozen, can be resumed
    COMPLETED = auto()  # Reached the end of the script
    STOPPED = auto()    # Ended early by the user


class PlaybackController:
    """
    Plays back one script, one session at a time.

    Usage:
        controller = PlaybackController(script, announce=speaker.say,
                                        tick_source=QtTickSource(1000))
        controller.event_emitter.subscribe(SessionEventType.SESSION_END, save_result)
        controller.start()     # Announces phase 0 / instruction 0 immediately
        controller.pause()
        controller.resume()
        controller.stop()      # Returns the SessionResult
        controller.reset()     # Back to IDLE, ready for start()
    """

    def __init__(
        self,
        script: Script,
        *,
        announce: Optional[Announce] = None,
        event_emitter: Optional[SessionEventEmitter] = None,
        tick_source: Optional[TickSource] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize playback controller.

        Args:
            script: Script to play; validated here
            announce: Injected side-effect sink for instruction text (speech, console)
            event_emitter: Event emitter for broadcasting state changes (optional)
            tick_source: Repeating timer calling tick(); defaults to a ManualTickSource
            clock: Monotonic seconds source used for elapsed time
            wall_clock: Timestamp source for SessionResult start/end

        Raises:
            ScriptInvalid: If the script breaks a structural rule
        """
        self.script = validate_script(script)
        self.event_emitter = event_emitter or SessionEventEmitter()
        self.tick_source: TickSource = tick_source or ManualTickSource()
        self.announce = announce
        self._clock = clock
        self._wall_clock = wall_clock

        self.logger = logging.getLogger(__name__)
        self._perf = PerfTracer(f"playback:{script.key or script.name}")

        self.dispatcher = InstructionDispatcher(
            script,
            announce=announce,
            on_instruction=self._on_instruction_dispatched,
            on_phase_entered=self._on_phase_entered,
        )

        # State machine
        self._state = PlaybackState.IDLE

        # Timing
        self._start_reference: Optional[float] = None  # clock() value where elapsed == 0
        self._elapsed: float = 0.0  # Last sampled (RUNNING) or frozen (PAUSED/ended) value
        self._last_position: Optional[SessionPosition] = None
        self._started_at: Optional[datetime] = None
        self._tick_count = 0
        self._run = 0  # Bumped by start(); an older run's dispatch stops reporting
        self._last_result: Optional[SessionResult] = None

    # ===== State Queries =====

    @property
    def state(self) -> PlaybackState:
        """Get current playback state."""
        return self._state

    def is_idle(self) -> bool:
        return self._state == PlaybackState.IDLE

    def is_running(self) -> bool:
        """Check if playback is actively running."""
        return self._state == PlaybackState.RUNNING

    def is_paused(self) -> bool:
        return self._state == PlaybackState.PAUSED

    def is_completed(self) -> bool:
        """Check if the script played to its end."""
        return self._state == PlaybackState.COMPLETED

    def is_stopped(self) -> bool:
        """Check if the session was ended early."""
        return self._state == PlaybackState.STOPPED

    @property
    def elapsed_seconds(self) -> float:
        """Running-state seconds since start (live while RUNNING, frozen otherwise)."""
        if self._state == PlaybackState.RUNNING:
            return self._sample_elapsed()
        return self._elapsed

    @property
    def position(self) -> SessionPosition:
        """Pure projection of the current elapsed time; never dispatches."""
        return resolve(self.script, self.elapsed_seconds)

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def get_status(self) -> Dict[str, Any]:
        """Snapshot for progress bars and phase indicators."""
        position = self.position
        phase = self.script.phases[position.phase_index]
        instruction = phase.get_instruction(position.instruction_index)
        remaining = max(0.0, self.script.total_duration_seconds - position.session_elapsed_seconds)
        return {
            "state": self._state.name.lower(),
            "script": self.script.name,
            "elapsed_seconds": position.session_elapsed_seconds,
            "remaining_seconds": remaining,
            "elapsed_display": format_clock(position.session_elapsed_seconds),
            "remaining_display": format_clock(remaining),
            "phase_index": position.phase_index,
            "phase_name": phase.name,
            "phase_count": len(self.script.phases),
            "instruction_index": position.instruction_index,
            "instruction_text": instruction.text if instruction else "",
            "overall_progress": overall_progress(self.script, position),
            "phase_progress": phase_progress(self.script, position),
        }

    def get_perf_snapshot(self, *, reset: bool = False) -> Optional[dict[str, Any]]:
        """Tick timing spans collected in perf log mode (None when disabled)."""
        if not self._perf.enabled:
            return None
        snapshot = self._perf.snapshot()
        if reset:
            self._perf.clear()
        return snapshot

    # ===== Timing =====

    def _sample_elapsed(self) -> float:
        if self._start_reference is None:
            return self._elapsed
        # Never run backwards, even if the injected clock does
        return max(self._elapsed, self._clock() - self._start_reference)

    # ===== Lifecycle Methods =====

    def start(self) -> bool:
        """Start playback from the beginning of the script.

        Announces phase 0 / instruction 0 before returning.

        Returns:
            True if started, False if not IDLE
        """
        if self._state != PlaybackState.IDLE:
            self.logger.debug(f"[session] Ignoring start(): state is {self._state.name}")
            return False

        self.logger.info(
            f"[session] Starting session: {self.script.name} "
            f"({self.script.total_duration_seconds}s, {len(self.script.phases)} phases)"
        )

        self.dispatcher.reset()
        self._elapsed = 0.0
        self._tick_count = 0
        self._last_position = None
        self._last_result = None
        self._run += 1
        self._started_at = self._wall_clock()
        self._start_reference = self._clock()
        self._state = PlaybackState.RUNNING

        self.event_emitter.emit(SessionEvent(
            SessionEventType.SESSION_START,
            data={"script": self.script.name, "total_duration": self.script.total_duration_seconds}
        ))

        self._advance(0.0)
        if self._state == PlaybackState.RUNNING:
            self.tick_source.start(self.tick)
        return True

    def pause(self) -> bool:
        """Freeze elapsed time.

        Returns:
            True if paused, False if not RUNNING
        """
        if self._state != PlaybackState.RUNNING:
            self.logger.debug(f"[session] Ignoring pause(): state is {self._state.name}")
            return False

        elapsed = self._sample_elapsed()
        if elapsed >= self.script.total_duration_seconds:
            # Past the end before the next tick; finish instead of pausing
            self._advance(elapsed)
            if self._state != PlaybackState.RUNNING:
                return False
        self._elapsed = elapsed
        self._start_reference = None
        self._state = PlaybackState.PAUSED
        self.tick_source.stop()
        self.dispatcher.halt()

        self.logger.info(f"[session] Session paused at {self._elapsed:.1f}s")

        self.event_emitter.emit(SessionEvent(
            SessionEventType.SESSION_PAUSE,
            data={"elapsed_seconds": self._elapsed, "phase_index": self.position.phase_index}
        ))
        return True

    def resume(self) -> bool:
        """Continue from the frozen elapsed time.

        The reference is re-derived so that ``clock() - reference`` equals the
        elapsed time at pause; the paused interval is never counted.

        Returns:
            True if resumed, False if not PAUSED
        """
        if self._state != PlaybackState.PAUSED:
            self.logger.debug(f"[session] Ignoring resume(): state is {self._state.name}")
            return False

        self._start_reference = self._clock() - self._elapsed
        self._state = PlaybackState.RUNNING
        self.tick_source.start(self.tick)

        self.logger.info(f"[session] Session resumed at {self._elapsed:.1f}s")

        self.event_emitter.emit(SessionEvent(
            SessionEventType.SESSION_RESUME,
            data={"elapsed_seconds": self._elapsed, "phase_index": self.position.phase_index}
        ))
        return True

    def stop(self) -> Optional[SessionResult]:
        """End the session early.

        Returns:
            The STOPPED_EARLY SessionResult (COMPLETED if the clock already
            reached the total), or None if not RUNNING/PAUSED
        """
        if self._state not in (PlaybackState.RUNNING, PlaybackState.PAUSED):
            self.logger.debug(f"[session] Ignoring stop(): state is {self._state.name}")
            return None

        if self._state == PlaybackState.RUNNING:
            elapsed = self._sample_elapsed()
            if elapsed >= self.script.total_duration_seconds:
                # Past the end before the next tick; complete rather than stop early
                self._advance(elapsed)
                if self._state in (PlaybackState.COMPLETED, PlaybackState.STOPPED):
                    return self._last_result
            else:
                self._elapsed = elapsed
        self._elapsed = min(self._elapsed, float(self.script.total_duration_seconds))
        self._start_reference = None
        self._state = PlaybackState.STOPPED
        self.tick_source.stop()
        self.dispatcher.halt()

        self.logger.info(f"[session] Session stopped early at {self._elapsed:.1f}s")
        return self._finish(SessionOutcome.STOPPED_EARLY)

    def reset(self) -> bool:
        """Clear all session state and return to IDLE.

        Returns:
            True if reset, False if a session is RUNNING or PAUSED
        """
        if self._state in (PlaybackState.RUNNING, PlaybackState.PAUSED):
            self.logger.debug(f"[session] Ignoring reset(): state is {self._state.name}")
            return False
        if self._state == PlaybackState.IDLE:
            return True

        self.tick_source.stop()
        self.dispatcher.reset()
        self._state = PlaybackState.IDLE
        self._start_reference = None
        self._elapsed = 0.0
        self._last_position = None
        self._started_at = None
        self._tick_count = 0
        self._last_result = None
        self._perf.clear()

        self.logger.info("[session] Controller reset")
        self.event_emitter.emit(SessionEvent(SessionEventType.SESSION_RESET))
        return True

    # ===== Tick =====

    def tick(self) -> Optional[SessionPosition]:
        """Sample the clock and deliver anything newly reached.

        Called by the tick source; safe to call directly. Ticks outside
        RUNNING are ignored.

        Returns:
            The resolved position, or None if not RUNNING
        """
        if self._state != PlaybackState.RUNNING:
            return None
        self._tick_count += 1
        return self._advance(self._sample_elapsed())

    def _advance(self, elapsed: float) -> SessionPosition:
        self._elapsed = elapsed
        run = self._run

        with self._perf.span("resolve", category="clock"):
            position = resolve(self.script, elapsed)

        self.logger.debug(
            f"[session.tick] t={elapsed:.2f}s phase={position.phase_index} "
            f"instruction={position.instruction_index}"
        )

        with self._perf.span("dispatch", category="dispatch", metadata={"t": round(elapsed, 2)}):
            self.dispatcher.dispatch(position, self._last_position)
        if run != self._run:
            # Restarted from a callback; the new run already reported its own position
            return self._last_position or position
        self._last_position = position

        # A subscriber may have paused or stopped us during dispatch
        if self._state != PlaybackState.RUNNING:
            return position

        self.event_emitter.emit(SessionEvent(
            SessionEventType.POSITION_CHANGED,
            data={"position": position}
        ))

        if position.is_complete and self._state == PlaybackState.RUNNING:
            self._complete()
        return position

    def _complete(self) -> None:
        self._elapsed = float(self.script.total_duration_seconds)
        self._start_reference = None
        self._state = PlaybackState.COMPLETED
        self.tick_source.stop()

        self.logger.info(f"[session] Session completed: {self.script.name}")
        self._finish(SessionOutcome.COMPLETED)

    def _finish(self, outcome: SessionOutcome) -> SessionResult:
        result = build_result(
            self.script,
            self._elapsed,
            outcome,
            started_at=self._started_at,
            ended_at=self._wall_clock(),
        )
        self._last_result = result
        self.event_emitter.emit(SessionEvent(
            SessionEventType.SESSION_END,
            data={"result": result, "outcome": outcome.value}
        ))
        return result

    # ===== Dispatcher callbacks =====

    def _on_phase_entered(self, phase_index: int, phase: Phase) -> None:
        self.event_emitter.emit(SessionEvent(
            SessionEventType.PHASE_START,
            data={"phase_index": phase_index, "phase_name": phase.name, "duration": phase.duration_seconds}
        ))

    def _on_instruction_dispatched(self, record: DispatchRecord) -> None:
        self.event_emitter.emit(SessionEvent(
            SessionEventType.INSTRUCTION_DISPATCHED,
            data={
                "phase_index": record.phase_index,
                "instruction_index": record.instruction_index,
                "phase_name": record.phase_name,
                "instruction": record.instruction,
                "text": record.text,
                "announced": record.announced,
            }
        ))
