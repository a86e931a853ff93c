from __future__ import annotations

import base64
import logging
import sys
from io import BytesIO
from typing import Any

import pytest

from cdp_drivers.headless.browser import Browser
from cdp_drivers.headless.errors import NoSuchWindowError


class DummyPageConn:
    def __init__(self, target_id: str) -> None:
        self.target_id = target_id
        self.calls: list[tuple[str, dict[str, Any] | None]] = []
        self.handlers: dict[str, list[Any]] = {}
        self.timeout = 5.0
        self.replies: dict[str, dict[str, Any]] = {}
        self.pending_events: list[tuple[str, dict[str, Any]]] = []

    def on(self, name: str, handler) -> None:
        self.handlers.setdefault(name, []).append(handler)

    def emit(self, name: str, params: dict[str, Any]) -> None:
        for handler in self.handlers.get(name, []):
            handler(params)

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.calls.append((method, params))
        if method == "Page.getFrameTree":
            return {"frameTree": {"frame": {"id": f"frame-{self.target_id}"}}}
        if method == "Page.navigate":
            return {"frameId": f"frame-{self.target_id}", "loaderId": "L1"}
        return self.replies.get(method, {})

    def drain_events(self, *, max_messages: int = 50) -> int:
        events, self.pending_events = self.pending_events, []
        for name, params in events:
            self.emit(name, params)
        return len(events)

    def discard_events(self, name: str) -> int:
        return 0

    def wait_for_event(self, name: str, timeout: float = 10.0) -> dict[str, Any]:
        return {}

    def sent(self, method: str) -> list[dict[str, Any] | None]:
        return [p for m, p in self.calls if m == method]


class DummyClient:
    protocol_logger = None

    def __init__(self) -> None:
        self.targets = ["t1"]
        self.conns: dict[str, DummyPageConn] = {}
        self.calls: list[tuple[str, Any]] = []

    def page_targets(self) -> list[dict[str, Any]]:
        return [{"targetId": t, "type": "page"} for t in self.targets]

    def connect_page(self, target_id: str) -> DummyPageConn:
        return self.conns.setdefault(target_id, DummyPageConn(target_id))

    def create_target(self, url: str = "about:blank", *, browser_context_id: str | None = None) -> str:
        target_id = f"t{len(self.targets) + 1}"
        self.targets.append(target_id)
        self.calls.append(("create_target", browser_context_id))
        return target_id

    def close_target(self, target_id: str) -> bool:
        self.targets.remove(target_id)
        self.calls.append(("close_target", target_id))
        return True

    def activate_target(self, target_id: str) -> None:
        self.calls.append(("activate_target", target_id))

    def create_browser_context(self, *, proxy_server: str | None = None, proxy_bypass: str | None = None) -> str:
        self.calls.append(("create_browser_context", proxy_server))
        return "ctx-1"

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.calls.append((method, params))
        return {}


@pytest.fixture
def browser() -> Browser:
    return Browser(DummyClient())


def test_attaches_to_existing_page_on_start(browser: Browser) -> None:
    assert browser.current_page_id == "t1"
    conn = browser.client.conns["t1"]
    assert conn.sent("Page.enable") == [None]
    assert browser.current_page.main_frame_id == "frame-t1"


def test_response_headers_normalize_content_type(browser: Browser) -> None:
    browser.current_page.response_headers = {"content-type": "text/html", "x-powered-by": "y"}
    assert browser.response_headers() == {"Content-Type": "text/html", "x-powered-by": "y"}


def test_temporary_headers_are_dropped_after_visit(browser: Browser) -> None:
    browser.add_header("X-Keep", "1")
    browser.add_header("X-Once", "2", permanent=False)
    assert browser.headers == {"X-Keep": "1", "X-Once": "2"}
    browser.visit("http://app.local/")
    assert browser.headers == {"X-Keep": "1"}
    conn = browser.client.conns["t1"]
    assert conn.sent("Network.setExtraHTTPHeaders")[-1] == {"headers": {"X-Keep": "1"}}


def test_user_agent_header_overrides_user_agent(browser: Browser) -> None:
    browser.headers = {"User-Agent": "robot/1.0"}
    conn = browser.client.conns["t1"]
    assert conn.sent("Network.setUserAgentOverride") == [{"userAgent": "robot/1.0"}]


def test_blacklist_is_pushed_to_every_page(browser: Browser) -> None:
    handle = browser.open_new_window()
    browser.url_blacklist = ["*.ads.example/*"]
    for target in ("t1", handle):
        conn = browser.client.conns[target]
        assert conn.sent("Network.setBlockedURLs")[-1] == {"urls": ["*.ads.example/*"]}
        assert "Fetch.enable" in [m for m, _ in conn.calls]


def test_window_switching(browser: Browser) -> None:
    handle = browser.open_new_window()
    assert browser.window_handles() == ["t1", handle]
    browser.switch_to_window(handle)
    assert browser.window_handle() == handle
    browser.close_window(handle)
    with pytest.raises(NoSuchWindowError):
        browser.current_page_id
    with pytest.raises(NoSuchWindowError):
        browser.switch_to_window("missing")


def test_modal_message_drains_pending_dialog_events(browser: Browser) -> None:
    browser.accept_prompt("Bob")
    conn = browser.client.conns["t1"]
    conn.pending_events.append(("Page.javascriptDialogOpening", {"type": "prompt", "message": "Name?"}))
    assert browser.modal_message() == "Name?"
    assert conn.sent("Page.handleJavaScriptDialog") == [{"accept": True, "promptText": "Bob"}]
    assert browser.modal_message() is None


def test_render_converts_to_formats_the_browser_cannot_capture(browser: Browser, tmp_path) -> None:
    from PIL import Image

    png = BytesIO()
    Image.new("RGBA", (4, 3), (255, 0, 0, 255)).save(png, format="PNG")
    conn = browser.client.conns["t1"]
    conn.replies["Page.captureScreenshot"] = {"data": base64.b64encode(png.getvalue()).decode()}

    out = browser.render(str(tmp_path / "shots" / "page.gif"))
    data = (tmp_path / "shots" / "page.gif").read_bytes()
    assert out.endswith("page.gif")
    assert data[:4] == b"GIF8"
    assert conn.sent("Page.captureScreenshot")[-1]["format"] == "png"


def test_render_jpeg_passes_quality(browser: Browser, tmp_path) -> None:
    conn = browser.client.conns["t1"]
    conn.replies["Page.captureScreenshot"] = {"data": base64.b64encode(b"\xff\xd8jpeg").decode()}
    browser.render(str(tmp_path / "a.jpg"), {"quality": 40})
    assert conn.sent("Page.captureScreenshot")[-1] == {"format": "jpeg", "fromSurface": True, "quality": 40}


def test_render_pdf_uses_paper_size(browser: Browser, tmp_path) -> None:
    conn = browser.client.conns["t1"]
    conn.replies["Page.printToPDF"] = {"data": base64.b64encode(b"%PDF-1.4").decode()}
    browser.render(str(tmp_path / "doc.pdf"), {"paper_size": {"width": 8.5, "height": 11}})
    params = conn.sent("Page.printToPDF")[-1] or {}
    assert params["paperWidth"] == 8.5
    assert (tmp_path / "doc.pdf").read_bytes() == b"%PDF-1.4"


def test_set_proxy_moves_to_a_new_context(browser: Browser) -> None:
    browser.set_proxy("10.0.0.1", 8080, user="u", password="p")
    client = browser.client
    assert ("create_browser_context", "http://10.0.0.1:8080") in client.calls
    assert ("create_target", "ctx-1") in client.calls
    assert ("close_target", "t1") in client.calls
    assert browser.current_page_id == "t2"
    assert browser.settings.proxy_auth == ("u", "p")


def test_reset_closes_extra_windows_and_clears_state(browser: Browser) -> None:
    extra = browser.open_new_window()
    browser.add_header("X-A", "1")
    browser.current_page.network_traffic.append(object())  # type: ignore[arg-type]
    browser.reset()
    assert browser.window_handles() == ["t1"]
    assert ("close_target", extra) in browser.client.calls
    assert browser.headers == {}
    conn = browser.client.conns["t1"]
    assert conn.sent("Network.clearBrowserCookies") == [None]
    assert conn.sent("Page.navigate")[-1] == {"url": "about:blank"}
    assert browser.current_page.network_traffic == []


def test_restart_replaces_every_window_and_keeps_configuration(browser: Browser) -> None:
    extra = browser.open_new_window()
    browser.url_blacklist = ["*.ads.example/*"]
    browser.restart()
    client = browser.client
    assert ("close_target", "t1") in client.calls
    assert ("close_target", extra) in client.calls
    assert browser.window_handles() == [browser.current_page_id]
    fresh = client.conns[browser.current_page_id]
    assert fresh.sent("Page.enable") == [None]
    assert fresh.sent("Network.setBlockedURLs")[-1] == {"urls": ["*.ads.example/*"]}


def test_zoom_factor_is_pushed_to_open_and_new_pages(browser: Browser) -> None:
    conn = browser.client.conns["t1"]
    assert conn.sent("Emulation.setPageScaleFactor") == []
    browser.zoom_factor = 1.5
    assert conn.sent("Emulation.setPageScaleFactor") == [{"pageScaleFactor": 1.5}]
    handle = browser.open_new_window()
    assert browser.client.conns[handle].sent("Emulation.setPageScaleFactor") == [{"pageScaleFactor": 1.5}]


def test_cookies_can_be_disabled(browser: Browser) -> None:
    browser.cookies_enabled = False
    conn = browser.client.conns["t1"]
    assert conn.sent("Emulation.setDocumentCookieDisabled")[-1] == {"disabled": True}
    handle = browser.open_new_window()
    assert browser.client.conns[handle].sent("Emulation.setDocumentCookieDisabled") == [{"disabled": True}]
    browser.cookies_enabled = True
    assert conn.sent("Emulation.setDocumentCookieDisabled")[-1] == {"disabled": False}


def test_stored_paper_size_is_used_for_pdf(browser: Browser, tmp_path) -> None:
    conn = browser.client.conns["t1"]
    conn.replies["Page.printToPDF"] = {"data": base64.b64encode(b"%PDF-1.4").decode()}
    browser.paper_size = {"width": "210mm", "height": "297mm"}
    browser.render(str(tmp_path / "a4.pdf"))
    params = conn.sent("Page.printToPDF")[-1] or {}
    assert params["paperWidth"] == pytest.approx(8.2677, abs=1e-3)
    assert params["paperHeight"] == pytest.approx(11.6929, abs=1e-3)
    with pytest.raises(ValueError):
        browser.paper_size = {"width": "8in"}


def test_debug_without_logger_writes_to_stderr(browser: Browser) -> None:
    cdp_logger = logging.getLogger("cdp_drivers.headless.cdp")
    browser.debug = True
    try:
        handlers = [h for h in cdp_logger.handlers if isinstance(h, logging.StreamHandler)]
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr
        assert cdp_logger.level == logging.DEBUG
        browser.debug = True
        assert len([h for h in cdp_logger.handlers if isinstance(h, logging.StreamHandler)]) == 1
    finally:
        browser.debug = False
    assert not [h for h in cdp_logger.handlers if isinstance(h, logging.StreamHandler)]
