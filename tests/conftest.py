from __future__ import annotations

from pathlib import Path

import pytest

from app.esaj import config, utils


@pytest.fixture(autouse=True)
def _isolated_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point data, logs and downloads at a per-test directory."""

    data_dir = tmp_path / "data"
    log_dir = data_dir / "logs"
    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "LOG_DIR", log_dir)
    monkeypatch.setattr(config, "LOG_FILE", log_dir / "latest.log")
    monkeypatch.setattr(config, "DOWNLOADS_DIR", data_dir / "downloads_esaj")
    monkeypatch.setattr(utils, "_LOGGER_INITIALISED", False)
    monkeypatch.setattr(utils, "_CONSOLE_STREAM", "stdout")
    return data_dir
