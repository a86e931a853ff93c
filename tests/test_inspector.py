from __future__ import annotations

from typing import Any

import pytest

import cdp_drivers.headless.inspector as inspector_mod
from cdp_drivers.headless.inspector import Inspector


def test_devtools_url() -> None:
    inspector = Inspector(True, "http://127.0.0.1:9222/")
    assert inspector.url("T1") == "http://127.0.0.1:9222/devtools/inspector.html?ws=127.0.0.1:9222/devtools/page/T1"


def test_default_browser_is_used_for_true(monkeypatch: pytest.MonkeyPatch) -> None:
    opened: list[str] = []
    monkeypatch.setattr(inspector_mod.webbrowser, "open", opened.append)
    url = Inspector(True, "http://127.0.0.1:9222").open("T1")
    assert opened == [url]


def test_command_line_browser(monkeypatch: pytest.MonkeyPatch) -> None:
    launched: list[list[str]] = []

    def popen(cmd: list[str], **_k: Any) -> None:
        launched.append(cmd)

    monkeypatch.setattr(inspector_mod.subprocess, "Popen", popen)
    url = Inspector("firefox --new-tab", "http://127.0.0.1:9222").open("T1")
    assert launched == [["firefox", "--new-tab", url]]
