"""
Instruction Dispatcher - exactly-once delivery of instruction side effects.

The dispatcher walks the script in playback order, from the last thing it
fired up to the position the clock reports now. Anything crossed in between
(a delayed tick, a long background-tab stall, a clock jump past several
phases) is delivered in ascending order instead of being skipped:

    tick @ 0s   -> Phase 0 entry, (0, 0)
    tick @ 45s  -> Phase 1 entry, (1, 0)            # phase 0 had one instruction
    tick @ 215s -> (1, 1) ... (1, 5), Phase 2 entry, (2, 0), (2, 1)

Side effects go through an injected ``announce(text)`` sink (speech synthesis,
console, UI toast). A sink that raises is logged and counted; dispatch and the
session clock are unaffected, and the instruction is never retried.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Set, Tuple
import logging

from ..logging_utils import BurstSampler
from .clock import SessionPosition
from .script import Instruction, Phase, Script, iter_instruction_keys

Announce = Callable[[str], None]


@dataclass(frozen=True)
class DispatchRecord:
    """One delivered instruction.

    Attributes:
        phase_index: Owning phase
        instruction_index: Index within the phase
        phase_name: Owning phase name (for display)
        instruction: The instruction that was delivered
        announced: False if the announce sink raised
    """
    phase_index: int
    instruction_index: int
    phase_name: str
    instruction: Instruction
    announced: bool = True

    @property
    def key(self) -> Tuple[int, int]:
        return self.phase_index, self.instruction_index

    @property
    def text(self) -> str:
        return self.instruction.text


class InstructionDispatcher:
    """
    Delivers each phase entry and each instruction of a script exactly once.

    Usage:
        dispatcher = InstructionDispatcher(script, announce=speaker.say)
        dispatcher.dispatch(resolve(script, 0.0))      # Phase 0 entry + first instruction
        dispatcher.dispatch(resolve(script, 35.0))     # Everything crossed since
    """

    def __init__(
        self,
        script: Script,
        announce: Optional[Announce] = None,
        on_instruction: Optional[Callable[[DispatchRecord], None]] = None,
        on_phase_entered: Optional[Callable[[int, Phase], None]] = None,
        failure_log_interval_s: float = 30.0,
    ):
        """
        Args:
            script: Validated script to deliver
            announce: Side-effect sink receiving instruction text
            on_instruction: Notified after each delivered instruction
            on_phase_entered: Notified before a phase's first instruction
            failure_log_interval_s: Window for coalescing sink failure logs
        """
        self.script = script
        self.announce = announce
        self.on_instruction = on_instruction
        self.on_phase_entered = on_phase_entered
        self.logger = logging.getLogger(__name__)

        self._keys: Tuple[Tuple[int, int], ...] = tuple(iter_instruction_keys(script))
        # Flattened index of each phase's first instruction
        self._phase_offsets: Tuple[int, ...] = self._build_phase_offsets(script)

        self._cursor = 0  # Next flattened index to deliver
        self._halted = False
        self._generation = 0  # Bumped by reset(); a batch from an older run stops delivering
        self._dispatched: Set[Tuple[int, int]] = set()
        self._entered_phases: Set[int] = set()
        self._failure_sampler = BurstSampler(failure_log_interval_s)
        self.sink_failures = 0

    @staticmethod
    def _build_phase_offsets(script: Script) -> Tuple[int, ...]:
        offsets = []
        cursor = 0
        for phase in script.phases:
            offsets.append(cursor)
            cursor += len(phase.instructions)
        return tuple(offsets)

    # ===== State =====

    @property
    def dispatched_keys(self) -> Set[Tuple[int, int]]:
        """Copy of the (phase_index, instruction_index) pairs already delivered."""
        return set(self._dispatched)

    @property
    def entered_phases(self) -> Set[int]:
        return set(self._entered_phases)

    def has_dispatched(self, phase_index: int, instruction_index: int) -> bool:
        return (phase_index, instruction_index) in self._dispatched

    def halt(self) -> None:
        """Abandon the rest of the batch being delivered.

        Called when a callback pauses or stops the session mid-dispatch;
        undelivered instructions stay pending for the next dispatch.
        """
        self._halted = True

    def reset(self) -> None:
        """Forget everything delivered; the next dispatch starts from phase 0."""
        self._halted = False
        self._generation += 1
        self._cursor = 0
        self._dispatched.clear()
        self._entered_phases.clear()
        self._failure_sampler.flush()
        self.sink_failures = 0

    # ===== Delivery =====

    def _flat_index(self, position: SessionPosition) -> int:
        return self._phase_offsets[position.phase_index] + position.instruction_index

    def dispatch(
        self,
        current: SessionPosition,
        previous: Optional[SessionPosition] = None,
    ) -> List[DispatchRecord]:
        """Deliver every boundary crossed up to and including ``current``.

        Args:
            current: Position the clock reports now
            previous: Position from the prior tick (used for transition logging only;
                the dispatcher's own cursor decides what is still pending)

        Returns:
            Records delivered by this call, in playback order (empty if nothing new)
        """
        target = self._flat_index(current)
        if target < self._cursor:
            # Position behind what was already delivered; nothing to do
            return []

        if previous is not None and current.phase_index > previous.phase_index + 1:
            self.logger.info(
                "[dispatch] Catching up across %d phase boundaries (phase %d -> %d)",
                current.phase_index - previous.phase_index,
                previous.phase_index,
                current.phase_index,
            )

        self._halted = False
        generation = self._generation
        delivered: List[DispatchRecord] = []
        while self._cursor <= target and not self._halted and generation == self._generation:
            key = self._keys[self._cursor]
            if key in self._dispatched:
                self._cursor += 1
                continue
            phase_index, instruction_index = key
            if phase_index not in self._entered_phases:
                self._enter_phase(phase_index)
                if self._halted or generation != self._generation:
                    break
            self._cursor += 1
            delivered.append(self._deliver(phase_index, instruction_index))

        if len(delivered) > 1:
            self.logger.debug("[dispatch] Delivered %d instructions in one tick", len(delivered))
        return delivered

    def _enter_phase(self, phase_index: int) -> None:
        self._entered_phases.add(phase_index)
        phase = self.script.phases[phase_index]
        self.logger.info("[dispatch] Phase %d entered: %s", phase_index, phase.name)
        if self.on_phase_entered:
            self.on_phase_entered(phase_index, phase)

    def _deliver(self, phase_index: int, instruction_index: int) -> DispatchRecord:
        # Mark first so a re-entrant dispatch from a callback cannot repeat it
        self._dispatched.add((phase_index, instruction_index))
        phase = self.script.phases[phase_index]
        instruction = phase.instructions[instruction_index]

        announced = self._announce(instruction.text, phase_index, instruction_index)
        record = DispatchRecord(
            phase_index=phase_index,
            instruction_index=instruction_index,
            phase_name=phase.name,
            instruction=instruction,
            announced=announced,
        )
        self.logger.debug(
            "[dispatch] (%d, %d) @%ds: %s",
            phase_index,
            instruction_index,
            instruction.offset_seconds,
            instruction.text[:60],
        )
        if self.on_instruction:
            self.on_instruction(record)
        return record

    def _announce(self, text: str, phase_index: int, instruction_index: int) -> bool:
        if self.announce is None:
            return True
        try:
            self.announce(text)
            return True
        except Exception as exc:
            self.sink_failures += 1
            burst = self._failure_sampler.record()
            if burst is not None:
                self.logger.warning(
                    "[dispatch] Announce sink failed for (%d, %d): %s (%d failure(s) since last report)",
                    phase_index,
                    instruction_index,
                    exc,
                    burst,
                )
            return False
