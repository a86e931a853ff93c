from __future__ import annotations

from typing import Any

import pytest

from cdp_drivers.headless.driver import Driver
from cdp_drivers.headless.errors import MouseEventFailed, WrongWorld
from cdp_drivers.headless.node import HIT_TEST_JS, Node


class FakePage:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, tuple[Any, ...]]] = []
        self.blocker: str | None = None
        self.offset = (0.0, 0.0)

    def call_function_on(self, object_id: str, declaration: str, *args: Any, return_by_value: bool = False) -> Any:
        self.calls.append((object_id, declaration, args))
        if declaration == HIT_TEST_JS:
            return self.blocker
        if "tagName.toLowerCase" in declaration:
            return "input"
        if "this === other" in declaration:
            return args[0].object_id == "alias"
        if not return_by_value:
            return {"subtype": "node", "objectId": "child"}
        return None

    def element_rect(self, object_id: str) -> dict[str, float]:
        return {"x": 10.0, "y": 20.0, "width": 100.0, "height": 40.0}

    def frame_offset(self) -> tuple[float, float]:
        return self.offset

    def find(self, method: str, selector: str, *, within: str | None = None) -> list[str]:
        self.calls.append((within or "", f"find:{method}:{selector}", ()))
        return ["c1", "c2"]


class FakeBrowser:
    def __init__(self) -> None:
        self.current_page_id = "page-1"
        self.current_page = FakePage()
        self.clicks: list[tuple[float, float]] = []

    def click_coordinates(self, x: float, y: float) -> None:
        self.clicks.append((x, y))


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> tuple[Driver, FakeBrowser]:
    driver = Driver()
    browser = FakeBrowser()
    monkeypatch.setattr(driver, "browser", lambda: browser)
    return driver, browser


def test_click_hits_center_of_box_plus_frame_offset(env) -> None:
    driver, browser = env
    browser.current_page.offset = (5.0, 7.0)
    Node(driver, "page-1", "n1").click()
    assert browser.clicks == [(65.0, 47.0)]


def test_click_reports_covering_element(env) -> None:
    driver, browser = env
    browser.current_page.blocker = "div#overlay"
    with pytest.raises(MouseEventFailed) as excinfo:
        Node(driver, "page-1", "n1").click()
    assert excinfo.value.selector == "div#overlay"
    assert excinfo.value.position == (60.0, 40.0)
    assert browser.clicks == []


def test_node_from_other_window_is_rejected(env) -> None:
    driver, browser = env
    browser.current_page_id = "page-2"
    with pytest.raises(WrongWorld):
        Node(driver, "page-1", "n1").tag_name


def test_find_within_node(env) -> None:
    driver, browser = env
    found = Node(driver, "page-1", "n1").find_css("li")
    assert [n.object_id for n in found] == ["c1", "c2"]
    assert all(n.page_id == "page-1" for n in found)
    assert ("n1", "find:css:li", ()) in browser.current_page.calls


def test_evaluate_wraps_nodes(env) -> None:
    driver, _ = env
    result = Node(driver, "page-1", "n1").evaluate("this.firstElementChild")
    assert isinstance(result, Node)
    assert result.object_id == "child"


def test_equality_uses_js_identity_and_page(env) -> None:
    driver, _ = env
    a = Node(driver, "page-1", "n1")
    assert a == Node(driver, "page-1", "n1")
    assert a == Node(driver, "page-1", "alias")
    assert a != Node(driver, "page-1", "other")
    assert a != Node(driver, "page-2", "n1")
    assert hash(a) == hash(Node(driver, "page-1", "alias"))


def test_driver_unwrap_binds_nodes_to_current_page(env) -> None:
    driver, _ = env
    result = driver.unwrap({"items": [{"type": "object", "subtype": "node", "objectId": "abc"}], "ref": {"subtype": "node"}})
    node = result["items"][0]
    assert isinstance(node, Node)
    assert (node.driver, node.page_id, node.object_id) == (driver, "page-1", "abc")
    assert result["ref"] == {"subtype": "node"}
