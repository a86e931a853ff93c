from __future__ import annotations

from typing import Any

import pytest

from cdp_drivers.headless.driver import Driver
from cdp_drivers.headless.errors import FrameNotFound, NoSuchWindowError
from cdp_drivers.headless.node import Node


class FakeBrowser:
    current_page_id = "page-1"

    def __init__(self, frames: dict[str, list[str]] | None = None) -> None:
        self.frames = frames or {}
        self.calls: list[tuple[str, Any]] = []
        self.handle = "page-1"
        self.handles = ["page-1", "page-2"]

    def find(self, method: str, selector: str) -> list[str]:
        self.calls.append(("find", (method, selector)))
        return list(self.frames.get(selector, []))

    def switch_to_frame(self, frame: Any) -> None:
        self.calls.append(("switch_to_frame", frame))

    def window_handle(self) -> str:
        return self.handle

    def switch_to_window(self, handle: str) -> None:
        if handle not in self.handles:
            raise NoSuchWindowError(handle)
        self.calls.append(("switch_to_window", handle))
        self.handle = handle

    def resize(self, width: int, height: int) -> None:
        self.calls.append(("resize", (self.handle, width, height)))


@pytest.fixture
def setup(monkeypatch: pytest.MonkeyPatch):
    def make(frames: dict[str, list[str]] | None = None) -> tuple[Driver, FakeBrowser]:
        drv = Driver()
        browser = FakeBrowser(frames)
        monkeypatch.setattr(drv, "browser", lambda: browser)
        return drv, browser

    return make


def _switches(browser: FakeBrowser) -> list[Any]:
    return [arg for name, arg in browser.calls if name == "switch_to_frame"]


def test_node_selector_is_used_directly(setup) -> None:
    drv, browser = setup()
    node = Node(drv, "page-1", "frame-obj")
    with drv.within_frame(node) as frame:
        assert frame is node
        assert _switches(browser) == [node]
    assert _switches(browser) == [node, "parent"]


def test_index_selector_picks_nth_iframe(setup) -> None:
    drv, browser = setup({"iframe": ["f0", "f1"]})
    with drv.within_frame(1) as frame:
        assert frame.object_id == "f1"
    assert ("find", ("css", "iframe")) in browser.calls
    assert _switches(browser)[-1] == "parent"


def test_name_selector_builds_attribute_query(setup) -> None:
    drv, browser = setup({"iframe[name='checkout']": ["f-checkout"]})
    with drv.within_frame("checkout") as frame:
        assert frame.object_id == "f-checkout"
    assert _switches(browser)[-1] == "parent"


def test_parent_is_restored_when_block_raises(setup) -> None:
    drv, browser = setup({"iframe": ["f0"]})
    with pytest.raises(RuntimeError):
        with drv.within_frame(0):
            raise RuntimeError("inside")
    assert _switches(browser)[-1] == "parent"


def test_unknown_selector_type_raises_before_switching(setup) -> None:
    drv, browser = setup()
    with pytest.raises(TypeError, match="Unknown frame selector"):
        with drv.within_frame(3.5):
            pass
    assert _switches(browser) == []


def test_missing_iframe_raises_before_switching(setup) -> None:
    drv, browser = setup()
    with pytest.raises(FrameNotFound):
        with drv.within_frame("nope"):
            pass
    with pytest.raises(FrameNotFound):
        with drv.within_frame(0):
            pass
    assert _switches(browser) == []


def test_within_window_switches_back_on_error(setup) -> None:
    drv, browser = setup()
    with pytest.raises(ValueError):
        with drv.within_window("page-2"):
            assert browser.handle == "page-2"
            raise ValueError("boom")
    assert browser.handle == "page-1"


def test_resize_window_to_runs_inside_target_window(setup) -> None:
    drv, browser = setup()
    drv.resize_window_to("page-2", 800, 600)
    assert ("resize", ("page-2", 800, 600)) in browser.calls
    assert browser.handle == "page-1"


def test_within_unknown_window_raises(setup) -> None:
    drv, browser = setup()
    with pytest.raises(NoSuchWindowError):
        with drv.within_window("missing"):
            pass
    assert browser.handle == "page-1"
