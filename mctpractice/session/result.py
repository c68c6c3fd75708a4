"""
Session Result - summary record handed to the persistence collaborator.

Created exactly once when a session completes or is stopped early. The
controller keeps no reference to it after emitting ``SESSION_END``.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
import json
import logging

from .clock import completed_phase_count, phases_reached
from .script import Script

logger = logging.getLogger(__name__)


class SessionOutcome(str, Enum):
    """How a session ended."""
    COMPLETED = "completed"
    STOPPED_EARLY = "stopped_early"


@dataclass(frozen=True)
class SessionResult:
    """
    Outcome of one run-through of a script.

    Attributes:
        script_name: Script display name
        script_key: Registry key reported as script type ("standard", "dm", ...)
        elapsed_seconds: Running time, paused intervals excluded
        outcome: COMPLETED or STOPPED_EARLY
        phases_reached: Indices of every phase entered, in order
        phases_completed: Number of phases played to their end
        total_phases: Number of phases in the script
        started_at: Wall-clock start
        ended_at: Wall-clock end
    """
    script_name: str
    script_key: str
    elapsed_seconds: float
    outcome: SessionOutcome
    phases_reached: Tuple[int, ...]
    phases_completed: int
    total_phases: int
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def completed(self) -> bool:
        return self.outcome is SessionOutcome.COMPLETED

    @property
    def partial_phase_index(self) -> Optional[int]:
        """Phase that was entered but not finished, or None."""
        if self.phases_reached and len(self.phases_reached) > self.phases_completed:
            return self.phases_reached[-1]
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "script_name": self.script_name,
            "script_key": self.script_key,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "outcome": self.outcome.value,
            "phases_reached": list(self.phases_reached),
            "phases_completed": self.phases_completed,
            "partial_phase_index": self.partial_phase_index,
            "total_phases": self.total_phases,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }

    def to_record(self) -> Dict[str, Any]:
        """Payload for the practice-session API.

        Post-session ratings are added by the collaborator that collects them.
        """
        day = self.started_at or self.ended_at or datetime.now()
        return {
            "date": day.date().isoformat(),
            "duration_minutes": int(round(self.elapsed_seconds / 60)),
            "duration_seconds": int(self.elapsed_seconds),
            "completed": self.completed,
            "script_type": self.script_key or self.script_name,
            "notes": f"Completed {self.phases_completed}/{self.total_phases} phases",
        }


def build_result(
    script: Script,
    elapsed_seconds: float,
    outcome: SessionOutcome,
    *,
    started_at: Optional[datetime] = None,
    ended_at: Optional[datetime] = None,
) -> SessionResult:
    """Summarize a finished session.

    A completed session always reports the script's full duration and every
    phase; a stopped one reports the frozen elapsed time, the phases whose end
    was reached, and the partially entered phase.
    """
    if outcome is SessionOutcome.COMPLETED:
        elapsed = float(script.total_duration_seconds)
    else:
        elapsed = min(max(0.0, float(elapsed_seconds)), float(script.total_duration_seconds))

    return SessionResult(
        script_name=script.name,
        script_key=script.key,
        elapsed_seconds=elapsed,
        outcome=outcome,
        phases_reached=phases_reached(script, elapsed),
        phases_completed=completed_phase_count(script, elapsed),
        total_phases=len(script.phases),
        started_at=started_at,
        ended_at=ended_at,
    )


class ResultJournal:
    """Append-only JSON-lines log of session results.

    Each line is ``{"result": SessionResult.to_dict(), "record": to_record()}``.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def append(self, result: SessionResult) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps({"result": result.to_dict(), "record": result.to_record()}, ensure_ascii=False)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(line + "\n")
        logger.info("[result] Journaled %s session (%s) to %s", result.outcome.value, result.script_name, self.path)

    def read_all(self) -> list[Dict[str, Any]]:
        if not self.path.exists():
            return []
        entries = []
        with open(self.path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line:
                    entries.append(json.loads(line))
        return entries
