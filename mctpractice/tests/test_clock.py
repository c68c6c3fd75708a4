"""Tests for the session clock (elapsed time -> script position)."""

import pytest

from mctpractice.content import get_script
from mctpractice.session import (
    completed_phase_count,
    format_clock,
    overall_progress,
    phase_progress,
    phases_reached,
    resolve,
)


@pytest.fixture
def standard():
    return get_script("standard")


def test_start_is_first_instruction(standard):
    position = resolve(standard, 0)
    assert position.key == (0, 0)
    assert position.phase_elapsed_seconds == 0
    assert position.is_complete is False


def test_negative_elapsed_clamped(standard):
    assert resolve(standard, -5) == resolve(standard, 0)


def test_phase_starts_of_standard(standard):
    assert standard.phase_starts() == (0, 30, 210, 450, 690, 870)


def test_inside_selective_attention(standard):
    position = resolve(standard, 35)
    assert position.phase_index == 1
    assert position.phase_elapsed_seconds == pytest.approx(5)
    assert position.instruction_index == 0


def test_one_second_into_rapid_switching(standard):
    position = resolve(standard, 211)
    assert position.phase_index == 2
    assert position.phase_elapsed_seconds == pytest.approx(1)
    assert position.instruction_index == 0


def test_exact_phase_boundary_belongs_to_next_phase(standard):
    position = resolve(standard, 30)
    assert position.key == (1, 0)
    assert position.phase_elapsed_seconds == 0


def test_exact_offset_counts_as_reached(standard):
    # Selective Attention starts at 30; its instruction 1 sits at +30
    assert resolve(standard, 59.999).instruction_index == 0
    assert resolve(standard, 60).instruction_index == 1


def test_complete_pins_to_last_instruction(standard):
    for elapsed in (900, 901, 10_000):
        position = resolve(standard, elapsed)
        assert position.is_complete is True
        assert position.phase_index == 5
        assert position.instruction_index == len(standard.phases[5].instructions) - 1
        assert position.session_elapsed_seconds == 900


def test_just_before_end_not_complete(standard):
    position = resolve(standard, 899.9)
    assert position.is_complete is False
    assert position.phase_index == 5


def test_resolve_is_monotonic(standard):
    previous = resolve(standard, 0)
    t = 0.0
    while t <= 905:
        current = resolve(standard, t)
        assert current.key >= previous.key
        previous = current
        t += 0.5


def test_resolve_is_pure(standard):
    assert resolve(standard, 123.4) == resolve(standard, 123.4)


def test_phases_reached_and_completed_at_500(standard):
    assert phases_reached(standard, 500) == (0, 1, 2, 3)
    assert completed_phase_count(standard, 500) == 3


def test_completed_count_on_boundaries(standard):
    assert completed_phase_count(standard, 0) == 0
    assert completed_phase_count(standard, 30) == 1
    assert completed_phase_count(standard, 900) == 6


def test_progress_helpers(simple_script):
    position = resolve(simple_script, 15)
    assert overall_progress(simple_script, position) == pytest.approx(0.5)
    assert phase_progress(simple_script, position) == pytest.approx(0.25)
    done = resolve(simple_script, 30)
    assert overall_progress(simple_script, done) == 1.0
    assert phase_progress(simple_script, done) == 1.0


@pytest.mark.parametrize("seconds, expected", [
    (0, "0:00"),
    (9.9, "0:09"),
    (65, "1:05"),
    (900, "15:00"),
    (-3, "0:00"),
])
def test_format_clock(seconds, expected):
    assert format_clock(seconds) == expected
