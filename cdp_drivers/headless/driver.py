"""Session façade: the synchronous API test code talks to.

The browser process, the CDP client and the browser-control object are
built lazily (each exactly once) and torn down by ``quit()``. Script
results are unwrapped into native values with DOM nodes re-wrapped as
``Node`` handles.
"""

from __future__ import annotations

import logging
import os
import re
import signal
import sys
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, TextIO

from .browser import Browser
from .chrome_client import ChromeClient
from .config import DriverOptions
from .cookies import Cookie, cookie_params, find_option, host_of, parse_raw_cookie
from .errors import (
    DriverError,
    FrameNotFound,
    MouseEventFailed,
    NoSuchWindowError,
    ObsoleteNode,
    WrongWorld,
)
from .inspector import Inspector
from .launcher import BrowserLauncher
from .lazy import LazyHandle
from .modal import wait_for_modal
from .network import NetworkRequest
from .node import Node
from .results import unwrap_script_result

logger = logging.getLogger("cdp_drivers.headless.driver")

DEFAULT_COOKIE_DOMAIN = "127.0.0.1"


class ModalScope:
    """``with driver.accept_modal("confirm"): ...`` form of the modal helpers."""

    def __init__(self, driver: Driver, text: Any, wait: float | None) -> None:
        self.driver = driver
        self.text = text
        self.wait = wait
        self.message: str | None = None

    def __enter__(self) -> ModalScope:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.message = self.driver.find_modal(text=self.text, wait=self.wait)
        return False


class Driver:
    def __init__(
        self,
        options: Mapping[str, Any] | DriverOptions | None = None,
        *,
        app: Any = None,
        **kwargs: Any,
    ) -> None:
        if isinstance(app, (Mapping, DriverOptions)):
            raise TypeError("Driver options go in the first argument or in keywords, not in app=")
        self.app = app
        # CDP_DRIVER_* variables fill whatever the caller left unset.
        self.options = DriverOptions.from_mapping(options, **kwargs).with_defaults(DriverOptions.from_env())
        self.started = False
        self._launcher: LazyHandle[BrowserLauncher] = LazyHandle("launcher", self._build_launcher)
        self._client: LazyHandle[ChromeClient] = LazyHandle("client", self._build_client)
        self._browser: LazyHandle[Browser] = LazyHandle("browser", self._build_browser)

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def logger(self) -> logging.Logger | None:
        """Protocol logger (CDP traffic at DEBUG level)."""
        return self.options.logger

    @property
    def browser_logger(self) -> TextIO:
        """Stream receiving the page's console output."""
        return self.options.browser_logger if self.options.browser_logger is not None else sys.stdout

    def _build_launcher(self) -> BrowserLauncher:
        opts = self.options
        flags = dict(opts.browser_options)
        flags["remote-debugging-port"] = opts.port if opts.port is not None else 0
        if opts.host:
            flags["remote-debugging-address"] = opts.host
        if opts.window_size:
            flags["window-size"] = ",".join(str(int(v)) for v in opts.window_size)
        return BrowserLauncher.start(
            headless=opts.headless is not False,
            browser=flags,
            binary_path=opts.browser_path,
        )

    def _build_client(self) -> ChromeClient:
        launcher = self._launcher.get()
        return ChromeClient.client(
            launcher.ws_url,
            timeout=self.options.effective_timeout,
            protocol_logger=self.logger,
        )

    def _build_browser(self) -> Browser:
        opts = self.options
        browser = Browser(self.client(), self.browser_logger, screen_size=opts.effective_screen_size)
        if opts.is_set("js_errors"):
            browser.js_errors = opts.js_errors
        if opts.is_set("ignore_https_errors"):
            browser.ignore_https_errors = opts.ignore_https_errors
        browser.extensions = opts.extensions or []
        if opts.debug:
            browser.debug = True
        browser.url_blacklist = opts.url_blacklist or []
        browser.url_whitelist = opts.url_whitelist or []
        return browser

    @property
    def launcher(self) -> BrowserLauncher:
        return self._launcher.get()

    def client(self) -> ChromeClient:
        return self._client.get()

    def browser(self) -> Browser:
        return self._browser.get()

    def quit(self) -> None:
        self._browser.stop()
        self._client.stop(lambda client: client.stop())
        self._launcher.stop(lambda launcher: launcher.stop())

    def reset(self) -> None:
        browser = self._browser.peek()
        if browser is not None:
            browser.reset()
            browser.url_blacklist = self.options.url_blacklist or []
            browser.url_whitelist = self.options.url_whitelist or []
        self.started = False

    def restart(self) -> None:
        self.browser().restart()

    @property
    def zoom_factor(self) -> float:
        return self.browser().zoom_factor

    @zoom_factor.setter
    def zoom_factor(self, factor: float) -> None:
        self.browser().zoom_factor = factor

    @property
    def cookies_enabled(self) -> bool:
        return self.browser().cookies_enabled

    @cookies_enabled.setter
    def cookies_enabled(self, enabled: bool) -> None:
        self.browser().cookies_enabled = enabled

    @property
    def needs_server(self) -> bool:
        return True

    @property
    def wait(self) -> bool:
        return True

    @property
    def invalid_element_errors(self) -> tuple[type[Exception], ...]:
        return (ObsoleteNode, MouseEventFailed, WrongWorld)

    @property
    def no_such_window_error(self) -> type[Exception]:
        return NoSuchWindowError

    @property
    def timeout(self) -> float:
        return self.client().timeout

    @timeout.setter
    def timeout(self, seconds: float) -> None:
        self.client().timeout = seconds

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def visit(self, url: str) -> None:
        self.started = True
        self.browser().visit(url)

    def current_url(self) -> str:
        return self.browser().current_url()

    def frame_url(self) -> str:
        return self.browser().frame_url()

    def status_code(self) -> int | None:
        return self.browser().status_code()

    def html(self) -> str:
        return self.browser().body()

    body = html

    def source(self) -> str:
        return self.browser().source()

    def title(self) -> str:
        return self.browser().title()

    def frame_title(self) -> str:
        return self.browser().frame_title()

    def go_back(self) -> None:
        self.browser().go_back()

    def go_forward(self) -> None:
        self.browser().go_forward()

    def refresh(self) -> None:
        self.browser().refresh()

    # ─────────────────────────────────────────────────────────────────────────
    # Finding & scripting
    # ─────────────────────────────────────────────────────────────────────────

    def find(self, method: str, selector: str) -> list[Node]:
        browser = self.browser()
        page_id = browser.current_page_id
        return [Node(self, page_id, oid) for oid in browser.find(method, selector)]

    def find_css(self, selector: str) -> list[Node]:
        return self.find("css", selector)

    def find_xpath(self, selector: str) -> list[Node]:
        return self.find("xpath", selector)

    def native_args(self, args: tuple[Any, ...] | list[Any]) -> list[Any]:
        """Unwrap element wrappers (anything exposing a ``base`` Node) to Nodes."""
        out = []
        for arg in args:
            base = getattr(arg, "base", None)
            out.append(base if isinstance(base, Node) else arg)
        return out

    def unwrap(self, value: Any) -> Any:
        page_id = self.browser().current_page_id
        return unwrap_script_result(value, lambda object_id: Node(self, page_id, object_id))

    def evaluate_script(self, script: str, *args: Any) -> Any:
        result = self.browser().evaluate(script, *self.native_args(args))
        return self.unwrap(result)

    def evaluate_async_script(self, script: str, *args: Any) -> Any:
        wait_time = self.options.effective_max_wait_time
        result = self.browser().evaluate_async(script, wait_time, *self.native_args(args))
        return self.unwrap(result)

    def execute_script(self, script: str, *args: Any) -> None:
        self.browser().execute(script, *self.native_args(args))

    def click(self, x: float, y: float) -> None:
        self.browser().click_coordinates(x, y)

    def scroll_to(self, left: float, top: float) -> None:
        self.browser().scroll_to(left, top)

    # ─────────────────────────────────────────────────────────────────────────
    # Frames
    # ─────────────────────────────────────────────────────────────────────────

    def switch_to_frame(self, frame: Node | str) -> None:
        self.browser().switch_to_frame(frame)

    def _frame_node(self, selector: Any) -> Node:
        if isinstance(selector, Node):
            return selector
        if isinstance(selector, int) and not isinstance(selector, bool):
            frames = self.find_css("iframe")
            if not -len(frames) <= selector < len(frames):
                raise FrameNotFound(f"No iframe at index {selector}")
            return frames[selector]
        if isinstance(selector, str):
            frames = self.find_css(f"iframe[name='{selector}']")
            if not frames:
                raise FrameNotFound(f"No iframe named {selector!r}")
            return frames[0]
        raise TypeError("Unknown frame selector")

    @contextmanager
    def within_frame(self, selector: Any) -> Iterator[Node]:
        frame = self._frame_node(selector)
        self.switch_to_frame(frame)
        try:
            yield frame
        finally:
            self.switch_to_frame("parent")

    # ─────────────────────────────────────────────────────────────────────────
    # Windows
    # ─────────────────────────────────────────────────────────────────────────

    def window_handles(self) -> list[str]:
        return self.browser().window_handles()

    def current_window_handle(self) -> str:
        return self.browser().window_handle()

    def open_new_window(self) -> str:
        return self.browser().open_new_window()

    def switch_to_window(self, handle: str) -> None:
        self.browser().switch_to_window(handle)

    def close_window(self, handle: str) -> None:
        self.browser().close_window(handle)

    @contextmanager
    def within_window(self, handle: str) -> Iterator[str]:
        original = self.current_window_handle()
        self.switch_to_window(handle)
        try:
            yield handle
        finally:
            self.switch_to_window(original)

    def resize(self, width: int, height: int) -> None:
        self.browser().resize(width, height)

    resize_window = resize

    def resize_window_to(self, handle: str, width: int, height: int) -> None:
        with self.within_window(handle):
            self.resize(width, height)

    def maximize_window(self, handle: str) -> None:
        with self.within_window(handle):
            self.browser().maximize()

    def fullscreen_window(self, handle: str) -> None:
        with self.within_window(handle):
            self.browser().fullscreen()

    def window_size(self, handle: str) -> list[int]:
        with self.within_window(handle):
            return self.browser().window_size()

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def paper_size(self) -> dict[str, Any] | None:
        return self.browser().paper_size

    @paper_size.setter
    def paper_size(self, size: dict[str, Any] | None) -> None:
        self.browser().paper_size = size

    def save_screenshot(self, path: str, **options: Any) -> str:
        return self.browser().render(path, options)

    render = save_screenshot

    def render_base64(self, format: str = "png", **options: Any) -> str:
        return self.browser().render_base64(format, options)

    # ─────────────────────────────────────────────────────────────────────────
    # Network
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def headers(self) -> dict[str, str]:
        return self.browser().headers

    @headers.setter
    def headers(self, headers: dict[str, str]) -> None:
        self.browser().headers = headers

    def add_headers(self, headers: dict[str, str]) -> None:
        self.browser().add_headers(headers)

    def add_header(self, name: str, value: str, permanent: bool = True) -> None:
        self.browser().add_header(name, value, permanent=permanent)

    header = add_header

    def response_headers(self) -> dict[str, str]:
        return self.browser().response_headers()

    def network_traffic(self, type: str | None = None) -> list[NetworkRequest]:
        return self.browser().network_traffic(type)

    def clear_network_traffic(self) -> None:
        self.browser().clear_network_traffic()

    def set_proxy(self, ip: str, port: int, type: str = "http", user: str | None = None, password: str | None = None) -> None:
        self.browser().set_proxy(ip, port, type, user, password)

    def basic_authorize(self, user: str, password: str) -> None:
        self.browser().set_http_auth(user, password)

    authenticate = basic_authorize

    def clear_memory_cache(self) -> None:
        self.browser().clear_memory_cache()

    def console_messages(self, type: str | None = None) -> list[dict[str, Any]]:
        return self.browser().console_messages(type)

    # ─────────────────────────────────────────────────────────────────────────
    # Cookies
    # ─────────────────────────────────────────────────────────────────────────

    def cookies(self) -> dict[str, Cookie]:
        return self.browser().cookies()

    def _default_cookie_domain(self) -> str:
        host = host_of(self.browser().current_url()) if self.started else None
        return host or host_of(self.options.app_host) or DEFAULT_COOKIE_DOMAIN

    def set_cookie(self, name: str, value: Any = None, **options: Any) -> bool:
        if value is None:
            name, value, parsed = parse_raw_cookie(name)
            options = {**parsed, **options}
        key, _ = find_option(options, "domain")
        if key is None:
            options["domain"] = self._default_cookie_domain()
        return self.browser().set_cookie(cookie_params(name, value, options))

    def remove_cookie(self, name: str) -> None:
        self.browser().remove_cookie(name)

    def clear_cookies(self) -> None:
        self.browser().clear_cookies()

    # ─────────────────────────────────────────────────────────────────────────
    # Modals
    # ─────────────────────────────────────────────────────────────────────────

    def find_modal(self, text: str | re.Pattern[str] | None = None, wait: float | None = None) -> str:
        deadline = wait if wait is not None else self.options.effective_max_wait_time
        browser = self.browser()
        return wait_for_modal(browser.modal_message, wait=deadline, text=text)

    def _run_modal(self, action: Callable[[], Any] | None, text: Any, wait: float | None) -> str | ModalScope:
        if action is None:
            return ModalScope(self, text, wait)
        action()
        return self.find_modal(text=text, wait=wait)

    def accept_modal(
        self,
        kind: str,
        action: Callable[[], Any] | None = None,
        *,
        text: str | re.Pattern[str] | None = None,
        with_: str | None = None,
        wait: float | None = None,
    ) -> str | ModalScope:
        """Answer the next ``kind`` dialog with OK (``with_`` fills a prompt).

        With ``action`` the action runs and the dialog message is returned;
        without it a ``ModalScope`` context manager is returned.
        """
        browser = self.browser()
        if kind == "alert":
            browser.accept_alert()
        elif kind == "confirm":
            browser.accept_confirm()
        elif kind == "prompt":
            browser.accept_prompt(with_)
        else:
            raise ValueError(f"Unknown modal type: {kind}")
        return self._run_modal(action, text, wait)

    def dismiss_modal(
        self,
        kind: str,
        action: Callable[[], Any] | None = None,
        *,
        text: str | re.Pattern[str] | None = None,
        wait: float | None = None,
    ) -> str | ModalScope:
        browser = self.browser()
        if kind == "alert":
            # Alerts only have an OK button.
            browser.accept_alert()
        elif kind == "confirm":
            browser.dismiss_confirm()
        elif kind == "prompt":
            browser.dismiss_prompt()
        else:
            raise ValueError(f"Unknown modal type: {kind}")
        return self._run_modal(action, text, wait)

    # ─────────────────────────────────────────────────────────────────────────
    # Debugging
    # ─────────────────────────────────────────────────────────────────────────

    def debug(self) -> None:
        if not self.options.inspector:
            raise DriverError(
                "To use the remote debugging, you have to launch the driver with the inspector option enabled"
            )
        inspector = Inspector(self.options.inspector, self.launcher.http_endpoint)
        inspector.open(self.browser().current_page_id)
        self.pause()

    def pause(self, stream: TextIO | None = None) -> None:
        """Block until a line is read from ``stream`` (stdin by default) or SIGCONT arrives."""
        source = stream or sys.stdin
        state = {"resumed": False}

        def on_sigcont(_signum: int, _frame: Any) -> None:
            sys.stderr.write("\nSignal SIGCONT received\n")
            state["resumed"] = True

        def read_line() -> None:
            source.readline()
            state["resumed"] = True

        sigcont = getattr(signal, "SIGCONT", None)
        # Handlers can only be installed from the main thread.
        trap = sigcont is not None and threading.current_thread() is threading.main_thread()
        previous = signal.signal(sigcont, on_sigcont) if trap else None
        try:
            threading.Thread(target=read_line, name="driver-pause", daemon=True).start()
            sys.stderr.write(f"Driver paused. Press enter (or run 'kill -CONT {os.getpid()}') to continue.\n")
            sys.stderr.flush()
            while not state["resumed"]:
                time.sleep(0.05)
        finally:
            if trap:
                signal.signal(sigcont, previous if previous is not None else signal.SIG_DFL)
            sys.stderr.write("Continuing\n")


__all__ = ["DEFAULT_COOKIE_DOMAIN", "Driver", "ModalScope"]
