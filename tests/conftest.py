# tests/conftest.py
from pathlib import Path

import pytest

from fixtura.config import Settings, reset_settings
from fixtura.registry import reset_default_registry


@pytest.fixture(autouse=True)
def _pinned_settings():
    """Every test starts from packaged defaults and a fresh default registry."""
    reset_settings(Settings())
    reset_default_registry()
    yield
    reset_settings()
    reset_default_registry()


@pytest.fixture()
def config_home(tmp_path: Path, monkeypatch) -> Path:
    """Point every user-level config location into tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.delenv("FIXTURA_CONFIG", raising=False)
    return home
