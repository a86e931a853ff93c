from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _no_driver_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("CDP_DRIVER_"):
            monkeypatch.delenv(name)
