"""Session state: browser-wide configuration plus the set of open pages."""

from __future__ import annotations

import base64
import logging
import sys
from io import BytesIO
from pathlib import Path
from typing import Any, TextIO

from .chrome_client import ChromeClient
from .config import DEFAULT_SCREEN_SIZE, expand_path
from .cookies import Cookie
from .errors import DriverError, NoSuchWindowError
from .network import NetworkRequest
from .page import ModalResponse, Page, PageSettings

logger = logging.getLogger("cdp_drivers.headless.browser")

NATIVE_IMAGE_FORMATS = {"png": "png", "jpg": "jpeg", "jpeg": "jpeg"}


def _normalize_header_name(name: str) -> str:
    if name.lower() == "content-type":
        return "Content-Type"
    return name


def convert_image(data: bytes, fmt: str) -> bytes:
    """Re-encode a PNG capture into a format CDP cannot produce directly."""
    from PIL import Image

    img = Image.open(BytesIO(data))
    if fmt.lower() in ("jpeg", "jpg", "bmp", "gif") and img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGB")
    out = BytesIO()
    img.save(out, format=fmt.upper())
    return out.getvalue()


class Browser:
    """Browser-control object shared by the driver façade.

    Holds the configuration every page reads (js error policy, url
    allow/deny lists, extensions, headers, credentials) and tracks which
    page target is current.
    """

    def __init__(
        self,
        client: ChromeClient,
        browser_logger: TextIO | None = None,
        *,
        screen_size: tuple[int, int] = DEFAULT_SCREEN_SIZE,
    ) -> None:
        self.client = client
        self.settings = PageSettings(browser_logger=browser_logger)
        self.screen_size = screen_size
        self._pages: dict[str, Page] = {}
        self._current_page_id: str | None = None
        self._browser_context_id: str | None = None
        self._ignore_https_errors = False
        self._debug = False
        self._stderr_handler: logging.Handler | None = None
        self._extensions: list[str] = []

        targets = client.page_targets()
        target_id = str(targets[0]["targetId"]) if targets else client.create_target()
        self._attach(target_id)
        self._current_page_id = target_id

    # ─────────────────────────────────────────────────────────────────────────
    # Configuration
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def js_errors(self) -> bool:
        return self.settings.js_errors

    @js_errors.setter
    def js_errors(self, enabled: bool) -> None:
        self.settings.js_errors = bool(enabled)

    @property
    def ignore_https_errors(self) -> bool:
        return self._ignore_https_errors

    @ignore_https_errors.setter
    def ignore_https_errors(self, ignore: bool) -> None:
        self._ignore_https_errors = bool(ignore)
        self.client.send("Security.setIgnoreCertificateErrors", {"ignore": self._ignore_https_errors})

    @property
    def extensions(self) -> list[str]:
        return list(self._extensions)

    @extensions.setter
    def extensions(self, paths: list[str]) -> None:
        self._extensions = [expand_path(str(p)) for p in paths or []]
        sources = [Path(p).read_text(encoding="utf-8") for p in self._extensions]
        self.settings.extension_sources = sources
        for page in self._pages.values():
            for source in sources:
                page.conn.send("Page.addScriptToEvaluateOnNewDocument", {"source": source})

    @property
    def debug(self) -> bool:
        return self._debug

    @debug.setter
    def debug(self, enabled: bool) -> None:
        self._debug = bool(enabled)
        protocol_logger = self.client.protocol_logger or logging.getLogger("cdp_drivers.headless.cdp")
        protocol_logger.setLevel(logging.DEBUG if self._debug else logging.NOTSET)
        # No caller-supplied logger: make the traffic visible on stderr.
        if self._debug and self.client.protocol_logger is None and self._stderr_handler is None:
            self._stderr_handler = logging.StreamHandler(sys.stderr)
            protocol_logger.addHandler(self._stderr_handler)
        elif not self._debug and self._stderr_handler is not None:
            protocol_logger.removeHandler(self._stderr_handler)
            self._stderr_handler = None

    @property
    def zoom_factor(self) -> float:
        return self.settings.zoom_factor

    @zoom_factor.setter
    def zoom_factor(self, factor: float) -> None:
        self.settings.zoom_factor = float(factor)
        self._apply_emulation()

    @property
    def paper_size(self) -> dict[str, Any] | None:
        """Default page size for PDF renders, e.g. ``{"width": "8.5in", "height": "11in"}``."""
        return self.settings.paper_size

    @paper_size.setter
    def paper_size(self, size: dict[str, Any] | None) -> None:
        if size is not None and not {"width", "height"} <= set(size):
            raise ValueError("paper_size needs both width and height")
        self.settings.paper_size = dict(size) if size is not None else None

    @property
    def cookies_enabled(self) -> bool:
        return self.settings.cookies_enabled

    @cookies_enabled.setter
    def cookies_enabled(self, enabled: bool) -> None:
        self.settings.cookies_enabled = bool(enabled)
        self._apply_emulation()

    @property
    def url_blacklist(self) -> list[str]:
        return list(self.settings.url_blacklist)

    @url_blacklist.setter
    def url_blacklist(self, patterns: list[str]) -> None:
        self.settings.url_blacklist = list(patterns or [])
        self._apply_network_settings()

    @property
    def url_whitelist(self) -> list[str]:
        return list(self.settings.url_whitelist)

    @url_whitelist.setter
    def url_whitelist(self, patterns: list[str]) -> None:
        self.settings.url_whitelist = list(patterns or [])
        self._apply_network_settings()

    def _apply_network_settings(self) -> None:
        for page in self._pages.values():
            page.apply_network_settings()

    def _apply_emulation(self) -> None:
        for page in self._pages.values():
            page.apply_emulation()

    # ─────────────────────────────────────────────────────────────────────────
    # Pages / windows
    # ─────────────────────────────────────────────────────────────────────────

    def _attach(self, target_id: str) -> Page:
        page = self._pages.get(target_id)
        if page is None:
            page = Page(self.client.connect_page(target_id), target_id, self.settings).start()
            self._pages[target_id] = page
        return page

    @property
    def current_page_id(self) -> str:
        if self._current_page_id is None:
            raise NoSuchWindowError("No window is currently selected")
        return self._current_page_id

    @property
    def current_page(self) -> Page:
        return self._attach(self.current_page_id)

    def window_handles(self) -> list[str]:
        return [str(t["targetId"]) for t in self.client.page_targets()]

    def window_handle(self) -> str:
        return self.current_page_id

    def open_new_window(self, url: str = "about:blank") -> str:
        target_id = self.client.create_target(url, browser_context_id=self._browser_context_id)
        self._attach(target_id)
        return target_id

    def switch_to_window(self, handle: str) -> None:
        if handle not in self._pages and handle not in self.window_handles():
            raise NoSuchWindowError(f"No window found with handle {handle!r}")
        self._attach(handle)
        self._current_page_id = handle
        self.client.activate_target(handle)

    def close_window(self, handle: str) -> None:
        if handle not in self._pages and handle not in self.window_handles():
            raise NoSuchWindowError(f"No window found with handle {handle!r}")
        self._pages.pop(handle, None)
        self.client.close_target(handle)
        if self._current_page_id == handle:
            self._current_page_id = None

    def resize(self, width: int, height: int) -> None:
        self.current_page.resize(width, height, screen=self.screen_size)

    def maximize(self) -> None:
        self.resize(*self.screen_size)

    def fullscreen(self) -> None:
        self.current_page.fullscreen(screen=self.screen_size)

    def window_size(self) -> list[int]:
        size = self.current_page.eval_value("[window.innerWidth, window.innerHeight]") or [0, 0]
        return [int(size[0]), int(size[1])]

    # ─────────────────────────────────────────────────────────────────────────
    # Frames
    # ─────────────────────────────────────────────────────────────────────────

    def switch_to_frame(self, frame: Any) -> None:
        page = self.current_page
        if frame == "parent":
            page.pop_frame()
        elif frame == "top":
            page.pop_frame(to_top=True)
        else:
            page.push_frame(frame)

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation & page info
    # ─────────────────────────────────────────────────────────────────────────

    def visit(self, url: str) -> int | None:
        return self.current_page.visit(url)

    def current_url(self) -> str:
        return self.current_page.current_url()

    def frame_url(self) -> str:
        return self.current_page.frame_url()

    def title(self) -> str:
        return self.current_page.title()

    def frame_title(self) -> str:
        return self.current_page.frame_title()

    def body(self) -> str:
        return self.current_page.content()

    def source(self) -> str:
        return self.current_page.source()

    def go_back(self) -> bool:
        return self.current_page.go_back()

    def go_forward(self) -> bool:
        return self.current_page.go_forward()

    def refresh(self) -> None:
        self.current_page.refresh()

    def status_code(self) -> int | None:
        return self.current_page.status_code

    def response_headers(self) -> dict[str, str]:
        return {_normalize_header_name(k): v for k, v in self.current_page.response_headers.items()}

    # ─────────────────────────────────────────────────────────────────────────
    # Finding & scripting
    # ─────────────────────────────────────────────────────────────────────────

    def find(self, method: str, selector: str, *, within: str | None = None) -> list[str]:
        return self.current_page.find(method, selector, within=within)

    def evaluate(self, script: str, *args: Any) -> Any:
        return self.current_page.evaluate(script, *args)

    def evaluate_async(self, script: str, wait_time: float, *args: Any) -> Any:
        return self.current_page.evaluate_async(script, wait_time, *args)

    def execute(self, script: str, *args: Any) -> None:
        self.current_page.execute(script, *args)

    def click_coordinates(self, x: float, y: float) -> None:
        self.current_page.click(x, y)

    def scroll_to(self, left: float, top: float) -> None:
        self.current_page.scroll_to(left, top)

    # ─────────────────────────────────────────────────────────────────────────
    # Cookies
    # ─────────────────────────────────────────────────────────────────────────

    def cookies(self) -> dict[str, Cookie]:
        raw = self.current_page.conn.send("Network.getCookies").get("cookies") or []
        return {str(c.get("name")): Cookie(c) for c in raw if isinstance(c, dict)}

    def set_cookie(self, params: dict[str, Any]) -> bool:
        result = self.current_page.conn.send("Network.setCookie", params)
        if result.get("success") is False:
            raise DriverError(f"Browser rejected cookie {params.get('name')!r}")
        return True

    def remove_cookie(self, name: str) -> None:
        params: dict[str, Any] = {"name": name}
        url = self.current_url()
        if url.startswith(("http://", "https://")):
            params["url"] = url
        else:
            cookie = self.cookies().get(name)
            if cookie is None:
                return
            params["domain"] = cookie.domain
        self.current_page.conn.send("Network.deleteCookies", params)

    def clear_cookies(self) -> None:
        self.current_page.conn.send("Network.clearBrowserCookies")

    # ─────────────────────────────────────────────────────────────────────────
    # Headers / network
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def headers(self) -> dict[str, str]:
        return self.settings.headers

    @headers.setter
    def headers(self, headers: dict[str, str]) -> None:
        self.settings.permanent_headers = {str(k): str(v) for k, v in (headers or {}).items()}
        self.settings.temporary_headers = {}
        self._push_headers()

    def add_headers(self, headers: dict[str, str]) -> None:
        self.settings.permanent_headers.update({str(k): str(v) for k, v in headers.items()})
        self._push_headers()

    def add_header(self, name: str, value: str, *, permanent: bool = True) -> None:
        target = self.settings.permanent_headers if permanent else self.settings.temporary_headers
        target[str(name)] = str(value)
        self._push_headers()

    def _push_headers(self) -> None:
        headers = self.settings.headers
        user_agent = next((v for k, v in headers.items() if k.lower() == "user-agent"), None)
        for page in self._pages.values():
            page.conn.send("Network.setExtraHTTPHeaders", {"headers": headers})
            if user_agent is not None:
                page.conn.send("Network.setUserAgentOverride", {"userAgent": user_agent})

    def network_traffic(self, kind: str | None = None) -> list[NetworkRequest]:
        traffic = list(self.current_page.network_traffic)
        if kind == "blocked":
            return [r for r in traffic if r.blocked]
        return traffic

    def clear_network_traffic(self) -> None:
        self.current_page.network_traffic.clear()

    def clear_memory_cache(self) -> None:
        self.current_page.conn.send("Network.clearBrowserCache")

    def console_messages(self, kind: str | None = None) -> list[dict[str, Any]]:
        messages = self.current_page.console_messages
        return [m for m in messages if kind is None or m.get("type") == kind]

    def set_http_auth(self, user: str | None, password: str | None) -> None:
        self.settings.http_auth = (str(user), str(password or "")) if user else None
        self._apply_network_settings()

    def set_proxy(
        self,
        ip: str,
        port: int,
        kind: str = "http",
        user: str | None = None,
        password: str | None = None,
        bypass: str | None = None,
    ) -> None:
        """Route traffic through a proxy by moving to a fresh browser context."""
        previous = self._current_page_id
        self._browser_context_id = self.client.create_browser_context(
            proxy_server=f"{kind}://{ip}:{port}", proxy_bypass=bypass
        )
        self.settings.proxy_auth = (str(user), str(password or "")) if user else None
        handle = self.open_new_window()
        self.switch_to_window(handle)
        if previous is not None and previous != handle:
            self.close_window(previous)
        self._apply_network_settings()

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────

    def _capture(self, fmt: str, options: dict[str, Any]) -> bytes:
        page = self.current_page
        native = NATIVE_IMAGE_FORMATS.get(fmt.lower())
        clip = None
        selector = options.get("selector")
        if selector:
            found = page.find("css", str(selector))
            if not found:
                raise DriverError(f"Unable to find element {selector!r} to render")
            rect = page.element_rect(found[0])
            ox, oy = page.frame_offset()
            scroll = page.eval_value("[window.scrollX, window.scrollY]") or [0, 0]
            clip = {
                "x": rect["x"] + ox + float(scroll[0]),
                "y": rect["y"] + oy + float(scroll[1]),
                "width": rect["width"],
                "height": rect["height"],
            }
        data = page.screenshot(
            format=native or "png",
            quality=options.get("quality"),
            clip=clip,
            full=bool(options.get("full")),
        )
        if native is None:
            data = convert_image(data, fmt)
        return data

    def render(self, path: str, options: dict[str, Any] | None = None) -> str:
        options = dict(options or {})
        target = Path(expand_path(path))
        fmt = str(options.get("format") or target.suffix.lstrip(".") or "png").lower()
        if fmt == "pdf":
            data = self.current_page.print_pdf(paper_size=options.get("paper_size"))
        else:
            data = self._capture(fmt, options)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug("rendered %s (%d bytes)", target, len(data))
        return str(target)

    def render_base64(self, fmt: str = "png", options: dict[str, Any] | None = None) -> str:
        data = self._capture(fmt, dict(options or {}))
        return base64.b64encode(data).decode("ascii")

    # ─────────────────────────────────────────────────────────────────────────
    # Modals
    # ─────────────────────────────────────────────────────────────────────────

    def _queue_modal(self, response: ModalResponse) -> None:
        self.current_page.modal_responses.append(response)

    def accept_alert(self) -> None:
        self._queue_modal(ModalResponse(kind="alert", accept=True))

    def accept_confirm(self) -> None:
        self._queue_modal(ModalResponse(kind="confirm", accept=True))

    def dismiss_confirm(self) -> None:
        self._queue_modal(ModalResponse(kind="confirm", accept=False))

    def accept_prompt(self, text: str | None = None) -> None:
        self._queue_modal(ModalResponse(kind="prompt", accept=True, prompt_text=text))

    def dismiss_prompt(self) -> None:
        self._queue_modal(ModalResponse(kind="prompt", accept=False))

    def modal_message(self) -> str | None:
        page = self.current_page
        if not page.modal_messages:
            page.conn.drain_events()
        return page.modal_messages.popleft() if page.modal_messages else None

    # ─────────────────────────────────────────────────────────────────────────
    # Reset
    # ─────────────────────────────────────────────────────────────────────────

    def restart(self) -> None:
        """Replace every window with one fresh page; configuration carries over."""
        stale = self.window_handles()
        target_id = self.client.create_target(browser_context_id=self._browser_context_id)
        for handle in stale:
            self._pages.pop(handle, None)
            self.client.close_target(handle)
        self._pages.clear()
        self._current_page_id = target_id
        self._attach(target_id)
        logger.debug("restarted on page %s (closed %d)", target_id, len(stale))

    def reset(self) -> None:
        """Return to a single blank window with no cookies, headers or traffic."""
        handles = self.window_handles()
        keep = self._current_page_id if self._current_page_id in handles else (handles[0] if handles else None)
        for handle in handles:
            if handle != keep:
                self.close_window(handle)
        if keep is None:
            keep = self.client.create_target()
        self._attach(keep)
        self._current_page_id = keep
        page = self.current_page
        page.pop_frame(to_top=True)
        page.modal_responses.clear()
        page.modal_messages.clear()
        self.settings.permanent_headers = {}
        self.settings.temporary_headers = {}
        self.settings.http_auth = None
        self._push_headers()
        self.clear_cookies()
        page.visit("about:blank")
        page.network_traffic.clear()
        page.console_messages.clear()
        page.clear_js_errors()


__all__ = ["Browser", "convert_image"]
