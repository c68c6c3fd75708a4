"""Tests for the script data model and structural validation.

Validates:
- Loading from snake_case and original authoring keys
- Every structural violation is reported with its rule and phase
- Scripts are immutable once loaded
- JSON save/load through files
"""

import dataclasses
import json

import pytest

from mctpractice.session import (
    Instruction,
    InstructionDispatcher,
    Phase,
    Script,
    ScriptInvalid,
    ScriptViolation,
    load_script,
    load_script_file,
    resolve,
    validate_script,
)
from mctpractice.session.script import iter_instruction_keys


def _violation(data):
    with pytest.raises(ScriptInvalid) as excinfo:
        load_script(data)
    return excinfo.value


class TestLoadScript:
    def test_loads_snake_case(self, simple_script_data):
        script = load_script(simple_script_data)
        assert script.name == "Test Script"
        assert script.key == "test"
        assert script.total_duration_seconds == 30
        assert [p.name for p in script.phases] == ["Warmup", "Main"]
        assert script.phases[0].instructions[1] == Instruction(5, "Halfway.")

    def test_loads_original_authoring_keys(self):
        script = load_script({
            "name": "Legacy",
            "totalDuration": 20,
            "phases": [
                {"name": "A", "duration": 12, "instructions": [
                    {"time": 0, "text": "a0"},
                    {"time": 6, "text": "a1"},
                ]},
                {"name": "B", "duration": 8, "instructions": [{"time": 0, "text": "b0"}]},
            ],
        })
        assert script.total_duration_seconds == 20
        assert script.phases[0].duration_seconds == 12
        assert script.phases[0].instructions[1].offset_seconds == 6

    def test_integral_floats_accepted(self, simple_script_data):
        simple_script_data["total_duration_seconds"] = 30.0
        assert load_script(simple_script_data).total_duration_seconds == 30

    def test_existing_script_revalidated(self, simple_script):
        assert load_script(simple_script) is simple_script

    def test_phase_starts(self, simple_script):
        assert simple_script.phase_starts() == (0, 10)

    def test_instruction_count_and_keys(self, simple_script):
        assert simple_script.instruction_count() == 5
        assert list(iter_instruction_keys(simple_script)) == [(0, 0), (0, 1), (1, 0), (1, 1), (1, 2)]

    def test_get_phase_and_instruction_bounds(self, simple_script):
        assert simple_script.get_phase(1).name == "Main"
        assert simple_script.get_phase(2) is None
        assert simple_script.get_phase(-1) is None
        assert simple_script.phases[0].get_instruction(5) is None

    def test_script_is_immutable(self, simple_script):
        with pytest.raises(dataclasses.FrozenInstanceError):
            simple_script.total_duration_seconds = 99  # type: ignore[misc]
        assert isinstance(simple_script.phases, tuple)
        assert isinstance(simple_script.phases[0].instructions, tuple)

    def test_metadata_is_read_only(self, simple_script_data):
        simple_script_data["metadata"] = {"author": "clinic"}
        script = load_script(simple_script_data)
        with pytest.raises(TypeError):
            script.metadata["author"] = "someone else"  # type: ignore[index]
        simple_script_data["metadata"]["author"] = "changed at source"
        assert script.metadata["author"] == "clinic"
        assert script.to_dict()["metadata"] == {"author": "clinic"}
        assert json.loads(json.dumps(script.to_dict()))["metadata"]["author"] == "clinic"


class TestViolations:
    def test_duration_mismatch(self, simple_script_data):
        simple_script_data["total_duration_seconds"] = 40
        exc = _violation(simple_script_data)
        assert exc.violation is ScriptViolation.DURATION_MISMATCH
        assert exc.phase_index is None
        assert "30" in str(exc) and "40" in str(exc)

    def test_phases_sum_870_declared_900(self):
        data = {
            "name": "Short by 30",
            "total_duration_seconds": 900,
            "phases": [
                {"name": "A", "duration_seconds": 870, "instructions": [{"offset_seconds": 0, "text": "go"}]},
            ],
        }
        assert _violation(data).violation is ScriptViolation.DURATION_MISMATCH

    def test_no_phases(self):
        exc = _violation({"name": "Empty", "total_duration_seconds": 0, "phases": []})
        assert exc.violation is ScriptViolation.NO_PHASES

    def test_empty_name(self, simple_script_data):
        simple_script_data["name"] = "   "
        assert _violation(simple_script_data).violation is ScriptViolation.EMPTY_NAME

    def test_non_positive_duration(self, simple_script_data):
        simple_script_data["phases"][1]["duration_seconds"] = 0
        simple_script_data["total_duration_seconds"] = 10
        exc = _violation(simple_script_data)
        assert exc.violation is ScriptViolation.NON_POSITIVE_DURATION
        assert exc.phase_index == 1

    def test_missing_entry_instruction(self, simple_script_data):
        simple_script_data["phases"][0]["instructions"] = [{"offset_seconds": 2, "text": "late"}]
        exc = _violation(simple_script_data)
        assert exc.violation is ScriptViolation.MISSING_ENTRY_INSTRUCTION
        assert exc.phase_index == 0

    def test_phase_without_instructions(self, simple_script_data):
        simple_script_data["phases"][1]["instructions"] = []
        assert _violation(simple_script_data).violation is ScriptViolation.MISSING_ENTRY_INSTRUCTION

    def test_offset_equal_to_duration_rejected(self, simple_script_data):
        simple_script_data["phases"][0]["instructions"].append({"offset_seconds": 10, "text": "too late"})
        exc = _violation(simple_script_data)
        assert exc.violation is ScriptViolation.OFFSET_OUT_OF_RANGE
        assert exc.phase_index == 0

    def test_out_of_order_offsets_rejected(self, simple_script_data):
        simple_script_data["phases"][1]["instructions"] = [
            {"offset_seconds": 0, "text": "a"},
            {"offset_seconds": 12, "text": "b"},
            {"offset_seconds": 8, "text": "c"},
        ]
        exc = _violation(simple_script_data)
        assert exc.violation is ScriptViolation.OFFSETS_OUT_OF_ORDER
        assert exc.phase_index == 1

    def test_equal_offsets_load(self, simple_script_data):
        simple_script_data["phases"][0]["instructions"] = [
            {"offset_seconds": 0, "text": "a"},
            {"offset_seconds": 0, "text": "b"},
            {"offset_seconds": 5, "text": "c"},
            {"offset_seconds": 5, "text": "d"},
        ]
        script = load_script(simple_script_data)
        assert [i.offset_seconds for i in script.phases[0].instructions] == [0, 0, 5, 5]
        assert script.validate() == (True, "")

    def test_equal_offsets_dispatch_once_each_in_order(self, simple_script_data):
        simple_script_data["phases"][0]["instructions"] = [
            {"offset_seconds": 0, "text": "a"},
            {"offset_seconds": 0, "text": "b"},
        ]
        script = load_script(simple_script_data)
        announced = []
        dispatcher = InstructionDispatcher(script, announce=announced.append)

        position = resolve(script, 0)
        assert position.key == (0, 1)
        records = dispatcher.dispatch(position)
        assert [r.key for r in records] == [(0, 0), (0, 1)]
        assert dispatcher.dispatch(resolve(script, 3)) == []
        assert announced == ["a", "b"]

    @pytest.mark.parametrize("bad", [
        "not a mapping",
        {"total_duration_seconds": 10, "phases": []},
        {"name": "x", "total_duration_seconds": "10", "phases": []},
        {"name": "x", "total_duration_seconds": 10.5, "phases": []},
        {"name": "x", "total_duration_seconds": True, "phases": []},
        {"name": "x", "total_duration_seconds": 10, "phases": {"a": 1}},
        {"name": "x", "total_duration_seconds": 10, "phases": [
            {"name": "p", "duration_seconds": 10, "instructions": [{"offset_seconds": 0, "text": 5}]},
        ]},
    ])
    def test_malformed(self, bad):
        assert _violation(bad).violation is ScriptViolation.MALFORMED

    def test_script_invalid_is_value_error(self, simple_script_data):
        simple_script_data["total_duration_seconds"] = 1
        with pytest.raises(ValueError):
            load_script(simple_script_data)

    def test_validate_tuple_form(self):
        broken = Script(name="Broken", total_duration_seconds=5, phases=(
            Phase("Only", 10, (Instruction(0, "go"),)),
        ))
        ok, message = broken.validate()
        assert ok is False
        assert "sum to 10s" in message
        with pytest.raises(ScriptInvalid):
            validate_script(broken)


class TestScriptFiles:
    def test_save_and_load(self, tmp_path, simple_script):
        path = tmp_path / "nested" / "test.script.json"
        simple_script.save(path)
        loaded = Script.load(path)
        assert loaded == simple_script
        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk["phases"][1]["instructions"][2]["offset_seconds"] == 15

    def test_save_refuses_invalid(self, tmp_path):
        broken = Script(name="Broken", total_duration_seconds=5, phases=())
        with pytest.raises(ScriptInvalid):
            broken.save(tmp_path / "broken.json")
        assert not (tmp_path / "broken.json").exists()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_script_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(json.JSONDecodeError):
            load_script_file(path)
