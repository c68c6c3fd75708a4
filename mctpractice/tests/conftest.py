"""pytest configuration file."""

import logging

import pytest

from mctpractice.logging_utils import LogMode, set_log_mode


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (may take several seconds)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "qt: marks tests that need a Qt event loop (PyQt6)"
    )


@pytest.fixture(autouse=True, scope="session")
def _quiet_logs():
    logging.getLogger("asyncio").setLevel(logging.ERROR)
    yield


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path, monkeypatch):
    """Keep logs and result journals out of the real user directory."""
    monkeypatch.setenv("MCTPRACTICE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("MCTPRACTICE_TICK_MS", raising=False)
    set_log_mode(LogMode.NORMAL)
    yield
    set_log_mode(LogMode.NORMAL)


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def simple_script_data():
    """Two short phases; phase 0 has instructions at 0 and 5."""
    return {
        "name": "Test Script",
        "key": "test",
        "total_duration_seconds": 30,
        "phases": [
            {
                "name": "Warmup",
                "duration_seconds": 10,
                "instructions": [
                    {"offset_seconds": 0, "text": "Begin."},
                    {"offset_seconds": 5, "text": "Halfway."},
                ],
            },
            {
                "name": "Main",
                "duration_seconds": 20,
                "instructions": [
                    {"offset_seconds": 0, "text": "Main phase."},
                    {"offset_seconds": 10, "text": "Keep going."},
                    {"offset_seconds": 15, "text": "Almost done."},
                ],
            },
        ],
    }


@pytest.fixture
def simple_script(simple_script_data):
    from mctpractice.session import load_script
    return load_script(simple_script_data)
