from pathlib import Path

from mctpractice.platform_paths import ensure_dir, get_results_path, get_user_data_dir


def test_data_dir_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("MCTPRACTICE_DATA_DIR", str(tmp_path / "override"))
    assert get_user_data_dir() == tmp_path / "override"
    assert get_results_path() == tmp_path / "override" / "results.jsonl"


def test_default_data_dir_without_override(monkeypatch):
    monkeypatch.delenv("MCTPRACTICE_DATA_DIR", raising=False)
    path = get_user_data_dir()
    assert isinstance(path, Path)
    assert "mctpractice" in path.name.lower()


def test_ensure_dir(tmp_path):
    target = tmp_path / "a" / "b"
    assert ensure_dir(target) == target
    assert target.is_dir()
