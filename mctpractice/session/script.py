"""
Script Data Model - Authored practice exercise definitions.

A Script is an ordered sequence of Phases, and each Phase holds Instructions
anchored to offsets (in whole seconds) from the start of that phase:

- Instruction: guidance text announced once the phase reaches its offset
- Phase: named, fixed-duration segment; always opens with an instruction at 0
- Script: complete exercise; its total duration equals the sum of its phases

Scripts are immutable once loaded. All structural checks happen in
``load_script`` so that the session clock can treat any Script it is given as
well-formed.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union
import json


class ScriptViolation(Enum):
    """Structural rule a script failed to satisfy."""
    MALFORMED = "malformed"  # Missing keys, wrong types, non-integer numbers
    EMPTY_NAME = "empty_name"
    NO_PHASES = "no_phases"
    NON_POSITIVE_DURATION = "non_positive_duration"
    MISSING_ENTRY_INSTRUCTION = "missing_entry_instruction"  # Nothing at offset 0
    OFFSET_OUT_OF_RANGE = "offset_out_of_range"  # offset >= phase duration
    OFFSETS_OUT_OF_ORDER = "offsets_out_of_order"
    DURATION_MISMATCH = "duration_mismatch"  # Phase sum != declared total


class ScriptInvalid(ValueError):
    """Raised when a script cannot be played back.

    Attributes:
        violation: The rule that was broken
        phase_index: Offending phase (None for script-level violations)
    """

    def __init__(self, violation: ScriptViolation, message: str, phase_index: Optional[int] = None):
        super().__init__(message)
        self.violation = violation
        self.phase_index = phase_index


@dataclass(frozen=True)
class Instruction:
    """
    Single piece of guidance within a phase.

    Attributes:
        offset_seconds: Seconds from the start of the owning phase
        text: Guidance to display/announce
    """
    offset_seconds: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {"offset_seconds": self.offset_seconds, "text": self.text}


@dataclass(frozen=True)
class Phase:
    """
    Named, fixed-duration segment of a script.

    Attributes:
        name: Display name ("Selective Attention", "Refocus", ...)
        duration_seconds: Phase length in whole seconds
        instructions: Instructions ordered by non-decreasing offset
    """
    name: str
    duration_seconds: int
    instructions: Tuple[Instruction, ...] = ()

    def __post_init__(self):
        """Freeze instruction sequence given as a list."""
        if not isinstance(self.instructions, tuple):
            object.__setattr__(self, "instructions", tuple(self.instructions))

    def get_instruction(self, index: int) -> Optional[Instruction]:
        """Get instruction by index, or None if out of range."""
        if 0 <= index < len(self.instructions):
            return self.instructions[index]
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "name": self.name,
            "duration_seconds": self.duration_seconds,
            "instructions": [instr.to_dict() for instr in self.instructions],
        }


@dataclass(frozen=True)
class Script:
    """
    Complete practice exercise definition.

    Build instances through ``load_script`` (or ``Script.load`` for files) so
    the structural rules are enforced; the playback controller re-validates
    whatever it is handed.

    Attributes:
        name: Display name ("Standard ATT")
        total_duration_seconds: Declared length; must equal the sum of phases
        phases: Ordered phases
        key: Short registry key ("standard", "dm", ...) reported as script type
        description: Optional free text
        metadata: Additional authoring metadata
    """
    name: str
    total_duration_seconds: int
    phases: Tuple[Phase, ...] = ()
    key: str = ""
    description: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not isinstance(self.phases, tuple):
            object.__setattr__(self, "phases", tuple(self.phases))
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def phase_starts(self) -> Tuple[int, ...]:
        """Cumulative start offset of each phase within the session."""
        starts = []
        cursor = 0
        for phase in self.phases:
            starts.append(cursor)
            cursor += phase.duration_seconds
        return tuple(starts)

    def get_phase(self, index: int) -> Optional[Phase]:
        """
        Get phase by index.

        Args:
            index: Phase index (0-based)

        Returns:
            Phase or None if index out of range
        """
        if 0 <= index < len(self.phases):
            return self.phases[index]
        return None

    def instruction_count(self) -> int:
        """Total number of instructions across all phases."""
        return sum(len(phase.instructions) for phase in self.phases)

    def validate(self) -> tuple[bool, str]:
        """
        Validate script structure.

        Returns:
            (is_valid, error_message)
        """
        try:
            validate_script(self)
        except ScriptInvalid as exc:
            return False, str(exc)
        return True, ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize script to JSON-compatible dict."""
        data: Dict[str, Any] = {
            "name": self.name,
            "total_duration_seconds": self.total_duration_seconds,
            "phases": [phase.to_dict() for phase in self.phases],
        }
        if self.key:
            data["key"] = self.key
        if self.description:
            data["description"] = self.description
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    def save(self, path: Path) -> None:
        """
        Save script to JSON file.

        Args:
            path: Output file path (typically .script.json)

        Raises:
            ScriptInvalid: If the script fails validation
            IOError: If file cannot be written
        """
        validate_script(self)

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Path) -> Script:
        """
        Load and validate a script from a JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file contains invalid JSON
            ScriptInvalid: If the script breaks a structural rule
        """
        return load_script_file(path)


RawScript = Union[Script, Mapping[str, Any]]


def _pick(data: Mapping[str, Any], *keys: str, where: str) -> Any:
    # First key wins; later keys are the original authoring format
    for key in keys:
        if key in data:
            return data[key]
    raise ScriptInvalid(
        ScriptViolation.MALFORMED,
        f"{where}: missing required field '{keys[0]}'",
    )


def _as_int(value: Any, *, where: str) -> int:
    if isinstance(value, bool):
        raise ScriptInvalid(ScriptViolation.MALFORMED, f"{where}: expected integer seconds, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ScriptInvalid(ScriptViolation.MALFORMED, f"{where}: expected integer seconds, got {value!r}")


def _parse_instruction(data: Any, *, where: str) -> Instruction:
    if not isinstance(data, Mapping):
        raise ScriptInvalid(ScriptViolation.MALFORMED, f"{where}: instruction must be an object")
    offset = _as_int(_pick(data, "offset_seconds", "time", where=where), where=where)
    text = _pick(data, "text", "payload", where=where)
    if not isinstance(text, str):
        raise ScriptInvalid(ScriptViolation.MALFORMED, f"{where}: instruction text must be a string")
    return Instruction(offset_seconds=offset, text=text)


def _parse_phase(data: Any, index: int) -> Phase:
    where = f"Phase {index}"
    if not isinstance(data, Mapping):
        raise ScriptInvalid(ScriptViolation.MALFORMED, f"{where}: phase must be an object", index)
    name = _pick(data, "name", where=where)
    where = f"Phase {index} ('{name}')"
    duration = _as_int(_pick(data, "duration_seconds", "duration", where=where), where=where)
    raw_instructions = data.get("instructions", [])
    if not isinstance(raw_instructions, (list, tuple)):
        raise ScriptInvalid(ScriptViolation.MALFORMED, f"{where}: instructions must be a list", index)
    instructions = tuple(
        _parse_instruction(item, where=f"{where} instruction {i}")
        for i, item in enumerate(raw_instructions)
    )
    return Phase(name=str(name), duration_seconds=duration, instructions=instructions)


def _parse_script(data: Mapping[str, Any]) -> Script:
    name = _pick(data, "name", where="Script")
    total = _as_int(
        _pick(data, "total_duration_seconds", "totalDuration", where="Script"),
        where="Script total duration",
    )
    raw_phases = data.get("phases", [])
    if not isinstance(raw_phases, (list, tuple)):
        raise ScriptInvalid(ScriptViolation.MALFORMED, "Script: phases must be a list")
    return Script(
        name=str(name),
        total_duration_seconds=total,
        phases=tuple(_parse_phase(item, i) for i, item in enumerate(raw_phases)),
        key=str(data.get("key", "")),
        description=str(data.get("description", "")),
        metadata=dict(data.get("metadata", {})),
    )


def _check_phase(phase: Phase, index: int) -> None:
    where = f"Phase {index} ('{phase.name}')"
    if phase.duration_seconds <= 0:
        raise ScriptInvalid(
            ScriptViolation.NON_POSITIVE_DURATION,
            f"{where}: duration must be positive, got {phase.duration_seconds}",
            index,
        )
    if not phase.instructions or phase.instructions[0].offset_seconds != 0:
        raise ScriptInvalid(
            ScriptViolation.MISSING_ENTRY_INSTRUCTION,
            f"{where}: first instruction must be at offset 0",
            index,
        )
    previous: Optional[int] = None
    for i, instruction in enumerate(phase.instructions):
        offset = instruction.offset_seconds
        if not 0 <= offset < phase.duration_seconds:
            raise ScriptInvalid(
                ScriptViolation.OFFSET_OUT_OF_RANGE,
                f"{where}: instruction {i} offset {offset}s outside [0, {phase.duration_seconds})",
                index,
            )
        if previous is not None and offset < previous:
            raise ScriptInvalid(
                ScriptViolation.OFFSETS_OUT_OF_ORDER,
                f"{where}: instruction {i} offset {offset}s comes before {previous}s",
                index,
            )
        previous = offset


def validate_script(script: Script) -> Script:
    """
    Check every structural rule, raising on the first violation.

    Returns:
        The same script, for chaining

    Raises:
        ScriptInvalid: With the violated rule and offending phase index
    """
    if not script.name or not script.name.strip():
        raise ScriptInvalid(ScriptViolation.EMPTY_NAME, "Script name cannot be empty")

    if not script.phases:
        raise ScriptInvalid(ScriptViolation.NO_PHASES, "Script must contain at least one phase")

    for index, phase in enumerate(script.phases):
        _check_phase(phase, index)

    phase_sum = sum(phase.duration_seconds for phase in script.phases)
    if phase_sum != script.total_duration_seconds:
        raise ScriptInvalid(
            ScriptViolation.DURATION_MISMATCH,
            f"Phase durations sum to {phase_sum}s but script declares {script.total_duration_seconds}s",
        )

    return script


def load_script(raw: RawScript) -> Script:
    """
    Build an immutable, validated Script.

    Args:
        raw: Mapping in snake_case form (``total_duration_seconds``,
             ``duration_seconds``, ``offset_seconds``) or the original
             authoring form (``totalDuration``, ``duration``, ``time``);
             an existing Script is re-validated and returned as-is

    Raises:
        ScriptInvalid: If the input is malformed or breaks a structural rule
    """
    if isinstance(raw, Script):
        return validate_script(raw)
    if not isinstance(raw, Mapping):
        raise ScriptInvalid(ScriptViolation.MALFORMED, f"Script must be an object, got {type(raw).__name__}")
    return validate_script(_parse_script(raw))


def load_script_file(path: Union[str, Path]) -> Script:
    """
    Load script from a JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
        ScriptInvalid: If the script breaks a structural rule
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Script file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    return load_script(data)


def iter_instruction_keys(script: Script) -> Iterable[Tuple[int, int]]:
    """Yield every (phase_index, instruction_index) pair in playback order."""
    for phase_index, phase in enumerate(script.phases):
        for instruction_index in range(len(phase.instructions)):
            yield phase_index, instruction_index
