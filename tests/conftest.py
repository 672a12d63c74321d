from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("STUDIUM_DATA_DIR", str(tmp_path / "data"))
    for var in (
        "STUDIUM_BACKEND_API_URL",
        "STUDIUM_API_TIMEOUT",
        "STUDIUM_LOG_LEVEL",
        "STUDIUM_STUDY_START_HOUR",
        "STUDIUM_TIMEZONE",
    ):
        monkeypatch.delenv(var, raising=False)
    return tmp_path / "data"
