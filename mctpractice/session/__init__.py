"""
Scripted practice session engine for MCT Practice.

This package plays back guided exercises (Attention Training, Detached
Mindfulness) authored as Scripts of timed Phases and Instructions, with
pause/resume and exactly-once instruction announcements.

Core Components:
- Script / Phase / Instruction: immutable, validated script model
- resolve: pure mapping from elapsed time to SessionPosition
- InstructionDispatcher: exactly-once delivery through an announce sink
- PlaybackController: state machine driven by a tick source
- SessionResult: summary handed to the persistence collaborator
"""

from .script import (
    Instruction,
    Phase,
    Script,
    ScriptInvalid,
    ScriptViolation,
    load_script,
    load_script_file,
    validate_script,
)

from .clock import (
    SessionPosition,
    resolve,
    phases_reached,
    completed_phase_count,
    overall_progress,
    phase_progress,
    format_clock,
)

from .events import (
    SessionEventType,
    SessionEvent,
    SessionEventEmitter,
)

from .dispatcher import DispatchRecord, InstructionDispatcher
from .result import SessionOutcome, SessionResult, ResultJournal, build_result
from .ticker import AsyncioTickSource, ManualTickSource, QtTickSource, TickSource
from .controller import PlaybackController, PlaybackState

__all__ = [
    # Script model
    'Instruction',
    'Phase',
    'Script',
    'ScriptInvalid',
    'ScriptViolation',
    'load_script',
    'load_script_file',
    'validate_script',

    # Clock
    'SessionPosition',
    'resolve',
    'phases_reached',
    'completed_phase_count',
    'overall_progress',
    'phase_progress',
    'format_clock',

    # Event system
    'SessionEventType',
    'SessionEvent',
    'SessionEventEmitter',

    # Dispatch and results
    'DispatchRecord',
    'InstructionDispatcher',
    'SessionOutcome',
    'SessionResult',
    'ResultJournal',
    'build_result',

    # Execution
    'AsyncioTickSource',
    'ManualTickSource',
    'QtTickSource',
    'TickSource',
    'PlaybackController',
    'PlaybackState',
]
