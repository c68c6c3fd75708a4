"""Tests for exactly-once instruction delivery.

Validates:
- Phase 0 / instruction 0 delivered on the first dispatch
- Catch-up across skipped instructions and phase boundaries, in order
- Repeated or backwards positions deliver nothing
- Announce sink failures are counted, never retried, never fatal
"""

import logging
from unittest.mock import Mock

import pytest

from mctpractice.content import get_script
from mctpractice.session import InstructionDispatcher, resolve


@pytest.fixture
def announced():
    return []


@pytest.fixture
def dispatcher(simple_script, announced):
    return InstructionDispatcher(simple_script, announce=announced.append)


def test_first_dispatch_delivers_entry_instruction(dispatcher, simple_script, announced):
    records = dispatcher.dispatch(resolve(simple_script, 0))
    assert [r.key for r in records] == [(0, 0)]
    assert announced == ["Begin."]
    assert dispatcher.entered_phases == {0}


def test_same_position_delivers_once(dispatcher, simple_script, announced):
    dispatcher.dispatch(resolve(simple_script, 0))
    assert dispatcher.dispatch(resolve(simple_script, 0)) == []
    assert dispatcher.dispatch(resolve(simple_script, 4.9)) == []
    assert announced == ["Begin."]


def test_catch_up_across_phase_boundary(dispatcher, simple_script, announced):
    dispatcher.dispatch(resolve(simple_script, 0))
    records = dispatcher.dispatch(resolve(simple_script, 21))
    assert [r.key for r in records] == [(0, 1), (1, 0), (1, 1)]
    assert announced == ["Begin.", "Halfway.", "Main phase.", "Keep going."]


def test_big_jump_from_nothing_delivers_everything_in_order(simple_script, announced):
    phases = []
    dispatcher = InstructionDispatcher(
        simple_script,
        announce=announced.append,
        on_phase_entered=lambda index, phase: phases.append(("phase", index)),
        on_instruction=lambda record: phases.append(record.key),
    )
    dispatcher.dispatch(resolve(simple_script, 30))
    assert phases == [("phase", 0), (0, 0), (0, 1), ("phase", 1), (1, 0), (1, 1), (1, 2)]
    assert len(announced) == simple_script.instruction_count()


def test_backwards_position_ignored(dispatcher, simple_script, announced):
    dispatcher.dispatch(resolve(simple_script, 12))
    assert dispatcher.dispatch(resolve(simple_script, 3)) == []
    assert len(announced) == 3


def test_reset_allows_redelivery(dispatcher, simple_script, announced):
    dispatcher.dispatch(resolve(simple_script, 12))
    dispatcher.reset()
    assert dispatcher.dispatched_keys == set()
    dispatcher.dispatch(resolve(simple_script, 0))
    assert announced == ["Begin.", "Halfway.", "Main phase.", "Begin."]


def test_has_dispatched(dispatcher, simple_script):
    dispatcher.dispatch(resolve(simple_script, 6))
    assert dispatcher.has_dispatched(0, 1)
    assert not dispatcher.has_dispatched(1, 0)


def test_standard_script_delivers_every_instruction_once():
    script = get_script("standard")
    sink = Mock()
    dispatcher = InstructionDispatcher(script, announce=sink)
    previous = None
    for t in range(0, 901, 7):
        current = resolve(script, t)
        dispatcher.dispatch(current, previous)
        previous = current
    dispatcher.dispatch(resolve(script, 900), previous)
    assert sink.call_count == script.instruction_count()
    assert len(dispatcher.dispatched_keys) == script.instruction_count()


def test_sink_failure_is_counted_and_not_retried(simple_script, caplog):
    sink = Mock(side_effect=RuntimeError("speech engine offline"))
    delivered = []
    dispatcher = InstructionDispatcher(simple_script, announce=sink, on_instruction=delivered.append)

    with caplog.at_level(logging.WARNING, logger="mctpractice.session.dispatcher"):
        dispatcher.dispatch(resolve(simple_script, 6))
        dispatcher.dispatch(resolve(simple_script, 6))

    assert sink.call_count == 2
    assert dispatcher.sink_failures == 2
    assert [r.announced for r in delivered] == [False, False]
    # First failure reported immediately, the second coalesced
    warnings = [r for r in caplog.records if "Announce sink failed" in r.getMessage()]
    assert len(warnings) == 1


def test_sink_failure_does_not_block_later_instructions(simple_script):
    calls = []

    def flaky(text):
        calls.append(text)
        if text == "Begin.":
            raise OSError("audio device busy")

    dispatcher = InstructionDispatcher(simple_script, announce=flaky)
    records = dispatcher.dispatch(resolve(simple_script, 10))
    assert calls == ["Begin.", "Halfway.", "Main phase."]
    assert [r.announced for r in records] == [False, True, True]


def test_no_announce_sink(simple_script):
    dispatcher = InstructionDispatcher(simple_script)
    records = dispatcher.dispatch(resolve(simple_script, 0))
    assert records[0].announced is True
    assert records[0].text == "Begin."


def test_halt_leaves_rest_of_batch_pending(simple_script, announced):
    dispatcher = None

    def halt_after_halfway(record):
        if record.text == "Halfway.":
            dispatcher.halt()

    dispatcher = InstructionDispatcher(simple_script, announce=announced.append, on_instruction=halt_after_halfway)
    records = dispatcher.dispatch(resolve(simple_script, 21))
    assert [r.key for r in records] == [(0, 0), (0, 1)]

    records = dispatcher.dispatch(resolve(simple_script, 21))
    assert [r.key for r in records] == [(1, 0), (1, 1)]
    assert announced == ["Begin.", "Halfway.", "Main phase.", "Keep going."]


def test_reset_from_callback_ends_outer_batch(simple_script, announced):
    dispatcher = None

    def restart_after_halfway(record):
        if record.text == "Halfway.":
            dispatcher.reset()
            dispatcher.dispatch(resolve(simple_script, 0))

    dispatcher = InstructionDispatcher(simple_script, announce=announced.append, on_instruction=restart_after_halfway)
    records = dispatcher.dispatch(resolve(simple_script, 21))

    assert [r.key for r in records] == [(0, 0), (0, 1)]
    assert announced == ["Begin.", "Halfway.", "Begin."]
    assert dispatcher.dispatched_keys == {(0, 0)}
    assert dispatcher.entered_phases == {0}
