from __future__ import annotations

import re
from collections import deque
from typing import Any

import pytest

from cdp_drivers.headless.driver import Driver, ModalScope
from cdp_drivers.headless.errors import ModalNotFound


class FakeBrowser:
    current_page_id = "page-1"

    def __init__(self) -> None:
        self.queued: list[tuple[str, Any]] = []
        self.messages: deque[str] = deque()

    def accept_alert(self) -> None:
        self.queued.append(("accept_alert", None))

    def accept_confirm(self) -> None:
        self.queued.append(("accept_confirm", None))

    def dismiss_confirm(self) -> None:
        self.queued.append(("dismiss_confirm", None))

    def accept_prompt(self, text: str | None = None) -> None:
        self.queued.append(("accept_prompt", text))

    def dismiss_prompt(self) -> None:
        self.queued.append(("dismiss_prompt", None))

    def modal_message(self) -> str | None:
        return self.messages.popleft() if self.messages else None


@pytest.fixture
def drv(monkeypatch: pytest.MonkeyPatch) -> tuple[Driver, FakeBrowser]:
    driver = Driver(default_max_wait_time=0.1)
    browser = FakeBrowser()
    monkeypatch.setattr(driver, "browser", lambda: browser)
    return driver, browser


def test_accept_confirm_runs_action_and_returns_message(drv) -> None:
    driver, browser = drv
    msg = driver.accept_modal("confirm", lambda: browser.messages.append("Delete it?"), text="Delete")
    assert msg == "Delete it?"
    assert browser.queued == [("accept_confirm", None)]


def test_accept_prompt_passes_response_text(drv) -> None:
    driver, browser = drv
    driver.accept_modal("prompt", lambda: browser.messages.append("Name?"), with_="Ada")
    assert browser.queued == [("accept_prompt", "Ada")]


def test_dismiss_variants(drv) -> None:
    driver, browser = drv
    browser.messages.extend(["a", "b", "c"])
    driver.dismiss_modal("confirm", lambda: None)
    driver.dismiss_modal("prompt", lambda: None)
    driver.dismiss_modal("alert", lambda: None)
    assert [name for name, _ in browser.queued] == ["dismiss_confirm", "dismiss_prompt", "accept_alert"]


def test_scope_form_finds_modal_on_exit(drv) -> None:
    driver, browser = drv
    scope = driver.accept_modal("alert", text=re.compile(r"saved"))
    assert isinstance(scope, ModalScope)
    with scope:
        browser.messages.append("Record saved")
    assert scope.message == "Record saved"


def test_scope_form_skips_lookup_when_block_fails(drv) -> None:
    driver, browser = drv
    scope = driver.accept_modal("alert")
    with pytest.raises(RuntimeError):
        with scope:
            raise RuntimeError("click failed")
    assert scope.message is None


def test_find_modal_uses_default_max_wait_time(drv) -> None:
    driver, _ = drv
    with pytest.raises(ModalNotFound, match="Timed out waiting for modal dialog"):
        driver.find_modal()


def test_find_modal_reports_mismatch(drv) -> None:
    driver, browser = drv
    browser.messages.append("Hello")
    with pytest.raises(ModalNotFound) as excinfo:
        driver.find_modal(text="Bye", wait=0.05)
    assert excinfo.value.observed == "Hello"


def test_unknown_modal_type(drv) -> None:
    driver, _ = drv
    with pytest.raises(ValueError):
        driver.accept_modal("popup", lambda: None)
