"""Session clock: pure projection from elapsed time to script position.

Nothing in this module holds state. ``resolve`` can be called any number of
times (from the controller, a UI progress bar, or tests) without affecting
what the dispatcher has already announced.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .script import Script


@dataclass(frozen=True)
class SessionPosition:
    """Where a session is within its script.

    Attributes:
        phase_index: Current phase (last phase once complete)
        phase_elapsed_seconds: Seconds since the current phase began
        instruction_index: Last instruction in the phase whose offset has been reached
        session_elapsed_seconds: Seconds since session start, paused time excluded
        is_complete: True once elapsed time reaches the script's total duration
    """
    phase_index: int
    phase_elapsed_seconds: float
    instruction_index: int
    session_elapsed_seconds: float
    is_complete: bool = False

    @property
    def key(self) -> Tuple[int, int]:
        """Dedupe key of the current instruction."""
        return self.phase_index, self.instruction_index


def _instruction_index(script: Script, phase_index: int, phase_elapsed: float) -> int:
    index = 0
    for i, instruction in enumerate(script.phases[phase_index].instructions):
        # Reaching an offset exactly counts as reached
        if instruction.offset_seconds <= phase_elapsed:
            index = i
        else:
            break
    return index


def resolve(script: Script, session_elapsed_seconds: float) -> SessionPosition:
    """Map elapsed session time onto the script.

    Args:
        script: Validated script
        session_elapsed_seconds: Running-state seconds since start; negative
            values are treated as 0

    Returns:
        SessionPosition; once elapsed reaches the total duration the position
        is pinned to the end of the last phase with ``is_complete=True``
    """
    elapsed = max(0.0, float(session_elapsed_seconds))
    total = script.total_duration_seconds

    if elapsed >= total:
        last_index = len(script.phases) - 1
        last_phase = script.phases[last_index]
        return SessionPosition(
            phase_index=last_index,
            phase_elapsed_seconds=float(last_phase.duration_seconds),
            instruction_index=len(last_phase.instructions) - 1,
            session_elapsed_seconds=float(total),
            is_complete=True,
        )

    phase_start = 0
    for index, phase in enumerate(script.phases):
        phase_end = phase_start + phase.duration_seconds
        if phase_start <= elapsed < phase_end:
            phase_elapsed = elapsed - phase_start
            return SessionPosition(
                phase_index=index,
                phase_elapsed_seconds=phase_elapsed,
                instruction_index=_instruction_index(script, index, phase_elapsed),
                session_elapsed_seconds=elapsed,
                is_complete=False,
            )
        phase_start = phase_end

    # Unreachable for a validated script (phase sum == total)
    raise ValueError(f"Elapsed {elapsed}s not covered by script '{script.name}'")


def phases_reached(script: Script, session_elapsed_seconds: float) -> Tuple[int, ...]:
    """Indices of every phase entered by the given elapsed time."""
    position = resolve(script, session_elapsed_seconds)
    return tuple(range(position.phase_index + 1))


def completed_phase_count(script: Script, session_elapsed_seconds: float) -> int:
    """Number of phases whose cumulative end is at or before the elapsed time."""
    elapsed = max(0.0, float(session_elapsed_seconds))
    count = 0
    phase_end = 0
    for phase in script.phases:
        phase_end += phase.duration_seconds
        if phase_end <= elapsed:
            count += 1
        else:
            break
    return count


def overall_progress(script: Script, position: SessionPosition) -> float:
    """Fraction of the whole session elapsed, in [0, 1]."""
    if position.is_complete:
        return 1.0
    return min(position.session_elapsed_seconds / script.total_duration_seconds, 1.0)


def phase_progress(script: Script, position: SessionPosition) -> float:
    """Fraction of the current phase elapsed, in [0, 1]."""
    phase = script.phases[position.phase_index]
    return min(position.phase_elapsed_seconds / phase.duration_seconds, 1.0)


def format_clock(seconds: float) -> str:
    """Render seconds as ``m:ss`` like the practice timer display."""
    whole = int(max(0.0, seconds))
    return f"{whole // 60}:{whole % 60:02d}"
