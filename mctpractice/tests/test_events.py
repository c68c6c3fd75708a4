"""Tests for the session event emitter."""

import logging
from unittest.mock import Mock

from mctpractice.session import SessionEvent, SessionEventEmitter, SessionEventType


def test_subscribe_and_emit():
    emitter = SessionEventEmitter()
    callback = Mock()
    emitter.subscribe(SessionEventType.PHASE_START, callback)
    emitter.emit(SessionEvent(SessionEventType.PHASE_START, data={"phase_index": 1}))
    emitter.emit(SessionEvent(SessionEventType.SESSION_END))

    callback.assert_called_once()
    event = callback.call_args[0][0]
    assert event.data == {"phase_index": 1}
    assert event.timestamp is not None


def test_duplicate_subscription_ignored():
    emitter = SessionEventEmitter()
    callback = Mock()
    emitter.subscribe(SessionEventType.SESSION_START, callback)
    emitter.subscribe(SessionEventType.SESSION_START, callback)
    assert emitter.subscriber_count(SessionEventType.SESSION_START) == 1


def test_unsubscribe_during_emit():
    emitter = SessionEventEmitter()
    seen = []

    def once(event):
        seen.append("once")
        emitter.unsubscribe(SessionEventType.SESSION_PAUSE, once)

    emitter.subscribe(SessionEventType.SESSION_PAUSE, once)
    emitter.subscribe(SessionEventType.SESSION_PAUSE, lambda e: seen.append("always"))
    emitter.emit(SessionEvent(SessionEventType.SESSION_PAUSE))
    emitter.emit(SessionEvent(SessionEventType.SESSION_PAUSE))
    assert seen == ["once", "always", "always"]


def test_failing_callback_isolated(caplog):
    emitter = SessionEventEmitter()
    after = Mock()
    emitter.subscribe(SessionEventType.SESSION_END, Mock(side_effect=RuntimeError("db locked")))
    emitter.subscribe(SessionEventType.SESSION_END, after)
    with caplog.at_level(logging.ERROR, logger="mctpractice.session.events"):
        emitter.emit(SessionEvent(SessionEventType.SESSION_END))
    after.assert_called_once()
    assert any("Callback error for SESSION_END" in r.getMessage() for r in caplog.records)


def test_clear_all_and_str():
    emitter = SessionEventEmitter()
    emitter.subscribe(SessionEventType.SESSION_RESET, Mock())
    emitter.clear_all()
    assert emitter.subscriber_count(SessionEventType.SESSION_RESET) == 0
    assert str(SessionEvent(SessionEventType.SESSION_RESET)) == "SessionEvent(SESSION_RESET)"
    assert "phase_index=2" in str(SessionEvent(SessionEventType.PHASE_START, data={"phase_index": 2}))
