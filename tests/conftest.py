# tests/conftest.py
from __future__ import annotations

import pytest

from fieldfactor import runtime
from fieldfactor.engine import Engine, set_default_engine


@pytest.fixture(autouse=True)
def isolated_runtime(tmp_path, monkeypatch):
    """Fresh workspace and runtime per test; profiles applied in one test never leak."""
    monkeypatch.setenv("FIELDFACTOR_HOME", str(tmp_path / "workspace"))
    monkeypatch.setattr(runtime, "_last_applied", None)
    token = runtime._current.set(runtime.Runtime())
    set_default_engine(None)
    yield
    set_default_engine(None)
    runtime._current.reset(token)


@pytest.fixture
def engine():
    return Engine()
