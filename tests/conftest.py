import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from writeup.app import config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the global JSON config at a throwaway file for every test."""
    path = tmp_path / "writeup_config.json"
    monkeypatch.setattr(config, "GLOBAL_CONFIG", path)
    return path
