"""One page target (a browser window/tab) driven over its own CDP connection.

The Page keeps everything the driver needs to observe between commands:
frame stack, execution contexts, dialogs, console output, uncaught
exceptions and network traffic. All of it is fed by CDP events that the
connection dispatches while commands are in flight (or when pollers
drain the socket).
"""

from __future__ import annotations

import base64
import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, TextIO

from .errors import (
    CdpClientError,
    FrameNotFound,
    InvalidSelector,
    JavascriptError,
    ObsoleteNode,
    StatusFailError,
    WrongWorld,
)
from .network import NetworkRequest, NetworkResponse, url_allowed
from .results import ENCODE_RESULT_JS, decode_remote_value
from .session_cdp import CdpConnection

logger = logging.getLogger("cdp_drivers.headless.page")

_STALE_MARKERS = (
    "could not find object with given id",
    "cannot find context with specified id",
    "no node with given id found",
    "node with given id does not belong to the document",
    "execution context was destroyed",
    "inspected target navigated or closed",
)

# printToPDF takes inches.
_PAPER_UNITS = {"in": 1.0, "cm": 1 / 2.54, "mm": 1 / 25.4, "px": 1 / 96}

FIND_CSS_JS = "function(selector) { return Array.from((this === globalThis ? document : this).querySelectorAll(selector)); }"
FIND_XPATH_JS = """
function(selector) {
  const root = this === globalThis ? document : this;
  const doc = root.ownerDocument || root;
  const snapshot = doc.evaluate(selector, root, null, XPathResult.ORDERED_NODE_SNAPSHOT_TYPE, null);
  const out = [];
  for (let i = 0; i < snapshot.snapshotLength; i++) out.push(snapshot.snapshotItem(i));
  return out;
}
"""


@dataclass
class PageSettings:
    """Browser-wide configuration shared by every Page (read on use)."""

    js_errors: bool = False
    url_blacklist: list[str] = field(default_factory=list)
    url_whitelist: list[str] = field(default_factory=list)
    extension_sources: list[str] = field(default_factory=list)
    permanent_headers: dict[str, str] = field(default_factory=dict)
    temporary_headers: dict[str, str] = field(default_factory=dict)
    http_auth: tuple[str, str] | None = None
    proxy_auth: tuple[str, str] | None = None
    browser_logger: TextIO | None = None
    zoom_factor: float = 1.0
    paper_size: dict[str, Any] | None = None
    cookies_enabled: bool = True

    @property
    def headers(self) -> dict[str, str]:
        merged = dict(self.permanent_headers)
        merged.update(self.temporary_headers)
        return merged

    @property
    def needs_interception(self) -> bool:
        return bool(self.url_whitelist or self.url_blacklist or self.http_auth or self.proxy_auth)


@dataclass
class FrameContext:
    frame_id: str
    owner_object_id: str


@dataclass
class ModalResponse:
    kind: str | None
    accept: bool
    prompt_text: str | None = None


def paper_inches(raw: Any) -> float:
    """``8.5`` / ``"8.5in"`` / ``"210mm"`` / ``"21cm"`` / ``"816px"`` -> inches."""
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().lower()
    for unit, factor in _PAPER_UNITS.items():
        if text.endswith(unit):
            return float(text[: -len(unit)]) * factor
    return float(text)


def is_stale_error(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(marker in msg for marker in _STALE_MARKERS)


def _unserializable(raw: str) -> Any:
    if raw.endswith("n"):
        return int(raw[:-1])
    if raw == "-0":
        return -0.0
    return float(raw.replace("Infinity", "inf"))


def _exception_info(details: dict[str, Any]) -> dict[str, Any]:
    exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
    message = exc.get("description") or details.get("text") or "Uncaught exception"
    return {
        "message": str(message),
        "url": details.get("url"),
        "line": details.get("lineNumber"),
        "column": details.get("columnNumber"),
    }


class Page:
    """High-level operations for a single page target."""

    def __init__(self, conn: CdpConnection, target_id: str, settings: PageSettings | None = None) -> None:
        self.conn = conn
        self.target_id = target_id
        self.settings = settings or PageSettings()
        self.main_frame_id: str | None = None
        self.frame_stack: list[FrameContext] = []
        self.modal_responses: deque[ModalResponse] = deque()
        self.modal_messages: deque[str] = deque()
        self.console_messages: list[dict[str, Any]] = []
        self.network_traffic: list[NetworkRequest] = []
        self.status_code: int | None = None
        self.response_headers: dict[str, str] = {}
        self._document_request_id: str | None = None
        self._js_errors: list[dict[str, Any]] = []
        self._frame_contexts: dict[str, int] = {}
        self._requests: dict[str, NetworkRequest] = {}
        self._interception_enabled = False
        self._started = False

    # ─────────────────────────────────────────────────────────────────────────
    # Setup
    # ─────────────────────────────────────────────────────────────────────────

    def start(self) -> Page:
        if self._started:
            return self
        conn = self.conn
        conn.on("Page.javascriptDialogOpening", self._on_dialog)
        conn.on("Page.frameNavigated", self._on_frame_navigated)
        conn.on("Runtime.executionContextCreated", self._on_context_created)
        conn.on("Runtime.executionContextDestroyed", self._on_context_destroyed)
        conn.on("Runtime.executionContextsCleared", self._on_contexts_cleared)
        conn.on("Runtime.consoleAPICalled", self._on_console)
        conn.on("Runtime.exceptionThrown", self._on_exception)
        conn.on("Network.requestWillBeSent", self._on_request)
        conn.on("Network.responseReceived", self._on_response)
        conn.on("Network.loadingFailed", self._on_loading_failed)
        conn.on("Fetch.requestPaused", self._on_request_paused)
        conn.on("Fetch.authRequired", self._on_auth_required)

        conn.send("Page.enable")
        conn.send("Runtime.enable")
        conn.send("Network.enable")
        tree = conn.send("Page.getFrameTree").get("frameTree") or {}
        frame = tree.get("frame") if isinstance(tree, dict) else None
        if isinstance(frame, dict):
            self.main_frame_id = frame.get("id")
        for source in self.settings.extension_sources:
            conn.send("Page.addScriptToEvaluateOnNewDocument", {"source": source})
        self.apply_network_settings()
        self.apply_emulation(initial=True)
        self._started = True
        return self

    def apply_network_settings(self) -> None:
        conn = self.conn
        conn.send("Network.setExtraHTTPHeaders", {"headers": self.settings.headers})
        conn.send("Network.setBlockedURLs", {"urls": list(self.settings.url_blacklist)})
        if self.settings.needs_interception:
            conn.send(
                "Fetch.enable",
                {
                    "patterns": [{"urlPattern": "*"}],
                    "handleAuthRequests": bool(self.settings.http_auth or self.settings.proxy_auth),
                },
            )
            self._interception_enabled = True
        elif self._interception_enabled:
            conn.send("Fetch.disable")
            self._interception_enabled = False

    def apply_emulation(self, *, initial: bool = False) -> None:
        """Push zoom and cookie switches; a fresh page only needs non-defaults."""
        zoom = float(self.settings.zoom_factor)
        if not initial or zoom != 1.0:
            self.conn.send("Emulation.setPageScaleFactor", {"pageScaleFactor": zoom})
        if not initial or not self.settings.cookies_enabled:
            self.conn.send(
                "Emulation.setDocumentCookieDisabled",
                {"disabled": not self.settings.cookies_enabled},
            )

    # ─────────────────────────────────────────────────────────────────────────
    # Event handlers
    # ─────────────────────────────────────────────────────────────────────────

    def _on_dialog(self, params: dict[str, Any]) -> None:
        kind = str(params.get("type") or "alert")
        message = str(params.get("message") or "")
        response = self._next_modal_response(kind)
        if response is None:
            accept, prompt_text = True, params.get("defaultPrompt") or ""
        else:
            accept, prompt_text = response.accept, response.prompt_text
            if prompt_text is None and kind == "prompt":
                prompt_text = params.get("defaultPrompt") or ""
        payload: dict[str, Any] = {"accept": accept}
        if kind == "prompt" and accept:
            payload["promptText"] = str(prompt_text)
        self.modal_messages.append(message)
        logger.debug("dialog %s %r answered accept=%s", kind, message, accept)
        self.conn.send("Page.handleJavaScriptDialog", payload)

    def _next_modal_response(self, kind: str) -> ModalResponse | None:
        for idx, response in enumerate(self.modal_responses):
            if response.kind in (None, kind):
                del self.modal_responses[idx]
                return response
        return None

    def _on_frame_navigated(self, params: dict[str, Any]) -> None:
        frame = params.get("frame") or {}
        if not frame.get("parentId"):
            self.main_frame_id = frame.get("id")
            self.frame_stack.clear()

    def _on_context_created(self, params: dict[str, Any]) -> None:
        ctx = params.get("context") or {}
        aux = ctx.get("auxData") or {}
        if aux.get("isDefault") and aux.get("frameId"):
            self._frame_contexts[str(aux["frameId"])] = int(ctx["id"])

    def _on_context_destroyed(self, params: dict[str, Any]) -> None:
        ctx_id = params.get("executionContextId")
        for frame_id, existing in list(self._frame_contexts.items()):
            if existing == ctx_id:
                del self._frame_contexts[frame_id]

    def _on_contexts_cleared(self, _params: dict[str, Any]) -> None:
        self._frame_contexts.clear()

    def _on_console(self, params: dict[str, Any]) -> None:
        parts = []
        for arg in params.get("args") or []:
            if "value" in arg:
                parts.append(str(arg["value"]))
            else:
                parts.append(str(arg.get("description") or arg.get("type") or ""))
        entry = {"type": params.get("type"), "message": " ".join(parts), "time": params.get("timestamp")}
        self.console_messages.append(entry)
        self._log_to_browser_logger(entry["message"])

    def _on_exception(self, params: dict[str, Any]) -> None:
        info = _exception_info(params.get("exceptionDetails") or {})
        self.console_messages.append({"type": "error", "message": info["message"], "time": params.get("timestamp")})
        self._js_errors.append(info)
        self._log_to_browser_logger(info["message"])

    def _log_to_browser_logger(self, message: str) -> None:
        sink = self.settings.browser_logger
        if sink is not None:
            sink.write(message + "\n")

    def _on_request(self, params: dict[str, Any]) -> None:
        req = params.get("request") or {}
        request_id = str(params.get("requestId") or "")
        record = NetworkRequest(
            request_id=request_id,
            url=str(req.get("url") or ""),
            method=str(req.get("method") or "GET"),
            headers={str(k): str(v) for k, v in (req.get("headers") or {}).items()},
            resource_type=str(params.get("type") or ""),
        )
        self._requests[request_id] = record
        self.network_traffic.append(record)
        if params.get("type") == "Document" and params.get("frameId") in (None, self.main_frame_id):
            self._document_request_id = request_id

    def _on_response(self, params: dict[str, Any]) -> None:
        request_id = str(params.get("requestId") or "")
        response = NetworkResponse.from_cdp(params.get("response") or {})
        record = self._requests.get(request_id)
        if record is not None:
            record.response = response
        if request_id and request_id == self._document_request_id:
            self.status_code = response.status
            self.response_headers = dict(response.headers)

    def _on_loading_failed(self, params: dict[str, Any]) -> None:
        record = self._requests.get(str(params.get("requestId") or ""))
        if record is not None:
            record.error = str(params.get("errorText") or "failed")
            record.blocked = params.get("blockedReason") is not None or record.blocked

    def _on_request_paused(self, params: dict[str, Any]) -> None:
        request_id = params.get("requestId")
        url = str((params.get("request") or {}).get("url") or "")
        if url_allowed(url, blacklist=self.settings.url_blacklist, whitelist=self.settings.url_whitelist):
            self.conn.send("Fetch.continueRequest", {"requestId": request_id})
            return
        logger.debug("blocked request %s", url)
        record = self._requests.get(str(params.get("networkId") or ""))
        if record is not None:
            record.blocked = True
        self.conn.send("Fetch.failRequest", {"requestId": request_id, "errorReason": "BlockedByClient"})

    def _on_auth_required(self, params: dict[str, Any]) -> None:
        challenge = params.get("authChallenge") or {}
        is_proxy = str(challenge.get("source") or "").lower() == "proxy"
        creds = self.settings.proxy_auth if is_proxy else self.settings.http_auth
        if creds:
            response = {"response": "ProvideCredentials", "username": creds[0], "password": creds[1]}
        else:
            response = {"response": "CancelAuth"}
        self.conn.send("Fetch.continueWithAuth", {"requestId": params.get("requestId"), "authChallengeResponse": response})

    # ─────────────────────────────────────────────────────────────────────────
    # Errors
    # ─────────────────────────────────────────────────────────────────────────

    def check_js_errors(self) -> None:
        if not self._js_errors:
            return
        errors, self._js_errors = self._js_errors, []
        if self.settings.js_errors:
            raise JavascriptError(errors)

    def clear_js_errors(self) -> None:
        self._js_errors.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def _wait_load(self, timeout: float | None = None) -> bool:
        wait = self.conn.timeout if timeout is None else timeout
        return self.conn.wait_for_event("Page.loadEventFired", timeout=wait) is not None

    def visit(self, url: str) -> int | None:
        self.conn.discard_events("Page.loadEventFired")
        self.frame_stack.clear()
        self.status_code = None
        self.response_headers = {}
        result = self.conn.send("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if error_text and error_text != "net::ERR_ABORTED":
            raise StatusFailError(url, error_text)
        if result.get("loaderId"):
            self._wait_load()
        self.settings.temporary_headers.clear()
        self.conn.send("Network.setExtraHTTPHeaders", {"headers": self.settings.headers})
        self.check_js_errors()
        return self.status_code

    def refresh(self) -> None:
        self.conn.discard_events("Page.loadEventFired")
        self.frame_stack.clear()
        self.conn.send("Page.reload")
        self._wait_load()

    def _history_step(self, delta: int) -> bool:
        history = self.conn.send("Page.getNavigationHistory")
        entries = history.get("entries") or []
        idx = int(history.get("currentIndex") or 0) + delta
        if not 0 <= idx < len(entries):
            return False
        self.conn.discard_events("Page.loadEventFired")
        self.frame_stack.clear()
        self.conn.send("Page.navigateToHistoryEntry", {"entryId": entries[idx]["id"]})
        self._wait_load()
        return True

    def go_back(self) -> bool:
        return self._history_step(-1)

    def go_forward(self) -> bool:
        return self._history_step(1)

    # ─────────────────────────────────────────────────────────────────────────
    # Frames
    # ─────────────────────────────────────────────────────────────────────────

    def _context_for_frame(self, frame_id: str) -> int:
        ctx = self._frame_contexts.get(frame_id)
        deadline = time.time() + min(self.conn.timeout, 5.0)
        while ctx is None and time.time() < deadline:
            # The frame may still be loading; its context arrives as an event.
            if not self.conn.drain_events():
                time.sleep(0.05)
            ctx = self._frame_contexts.get(frame_id)
        if ctx is None:
            raise FrameNotFound(f"No execution context for frame {frame_id} (cross-origin or detached frame)")
        return ctx

    def current_context_id(self) -> int | None:
        if self.frame_stack:
            return self._context_for_frame(self.frame_stack[-1].frame_id)
        if self.main_frame_id and self.main_frame_id in self._frame_contexts:
            return self._frame_contexts[self.main_frame_id]
        return None

    def push_frame(self, owner: Any) -> FrameContext:
        object_id = self._object_id_of(owner)
        try:
            node = self.conn.send("DOM.describeNode", {"objectId": object_id}).get("node") or {}
        except CdpClientError as exc:
            if is_stale_error(exc):
                raise ObsoleteNode(owner) from exc
            raise
        frame_id = node.get("frameId")
        if not frame_id:
            raise FrameNotFound(f"Element is not a frame: <{str(node.get('nodeName', '?')).lower()}>")
        self._context_for_frame(str(frame_id))
        frame = FrameContext(frame_id=str(frame_id), owner_object_id=object_id)
        self.frame_stack.append(frame)
        return frame

    def pop_frame(self, *, to_top: bool = False) -> None:
        if to_top:
            self.frame_stack.clear()
        elif self.frame_stack:
            self.frame_stack.pop()

    def frame_offset(self) -> tuple[float, float]:
        """Viewport offset of the current frame's content box."""
        x = y = 0.0
        for frame in self.frame_stack:
            rect = self.call_function_on(
                frame.owner_object_id,
                "function() { const r = this.getBoundingClientRect();"
                " return [r.left + this.clientLeft, r.top + this.clientTop]; }",
                return_by_value=True,
            )
            if isinstance(rect, list) and len(rect) == 2:
                x += float(rect[0])
                y += float(rect[1])
        return x, y

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    def _object_id_of(self, arg: Any) -> str:
        object_id = getattr(arg, "object_id", None)
        if not isinstance(object_id, str):
            raise TypeError(f"Expected a node handle, got {type(arg).__name__}")
        if getattr(arg, "page_id", self.target_id) != self.target_id:
            raise WrongWorld(arg)
        return object_id

    def _call_argument(self, arg: Any) -> dict[str, Any]:
        if isinstance(getattr(arg, "object_id", None), str):
            return {"objectId": self._object_id_of(arg)}
        if isinstance(arg, float) and not math.isfinite(arg):
            return {"unserializableValue": "NaN" if math.isnan(arg) else ("Infinity" if arg > 0 else "-Infinity")}
        return {"value": arg}

    def _global_object_id(self) -> str:
        result = self.conn.send("Runtime.evaluate", {"expression": "globalThis"}).get("result") or {}
        object_id = result.get("objectId")
        if not object_id:
            raise CdpClientError("Unable to resolve the page's global object")
        return str(object_id)

    def _call(
        self,
        declaration: str,
        args: tuple[Any, ...] | list[Any] = (),
        *,
        object_id: str | None = None,
        return_by_value: bool = False,
        await_promise: bool = False,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "functionDeclaration": declaration,
            "arguments": [self._call_argument(a) for a in args],
            "returnByValue": return_by_value,
            "awaitPromise": await_promise,
            "userGesture": True,
        }
        if object_id is not None:
            params["objectId"] = object_id
        else:
            ctx = self.current_context_id()
            if ctx is not None:
                params["executionContextId"] = ctx
            else:
                params["objectId"] = self._global_object_id()
        try:
            response = self.conn.send("Runtime.callFunctionOn", params)
        except CdpClientError as exc:
            if object_id is not None and is_stale_error(exc):
                raise ObsoleteNode(None) from exc
            raise
        details = response.get("exceptionDetails")
        if details:
            raise JavascriptError([_exception_info(details)])
        return response.get("result") or {}

    def remote_value(self, remote: dict[str, Any]) -> Any:
        """Turn a CDP RemoteObject into a Remote Value tree."""
        rtype = remote.get("type")
        subtype = remote.get("subtype")
        if rtype in ("undefined", "function", "symbol") or subtype == "null":
            return None
        if "unserializableValue" in remote:
            return _unserializable(str(remote["unserializableValue"]))
        if rtype != "object":
            return remote.get("value")
        object_id = remote.get("objectId")
        if subtype == "node":
            return {"type": "object", "subtype": "node", "objectId": object_id}
        if not object_id:
            return remote.get("value")

        holder = self._call(ENCODE_RESULT_JS, object_id=object_id).get("objectId")
        if not holder:
            return None
        try:
            packed = self._call(
                "function() { return {tree: this.tree, count: this.nodes.length}; }",
                object_id=holder,
                return_by_value=True,
            ).get("value") or {}
            node_ids: list[str] = []
            if packed.get("count"):
                nodes = self._call("function() { return this.nodes; }", object_id=holder)
                node_ids = self.array_object_ids(str(nodes.get("objectId")))
        finally:
            self.conn.send("Runtime.releaseObject", {"objectId": holder})
        return decode_remote_value(packed.get("tree"), node_ids)

    def array_object_ids(self, array_object_id: str) -> list[str]:
        props = self.conn.send(
            "Runtime.getProperties", {"objectId": array_object_id, "ownProperties": True}
        ).get("result") or []
        indexed: list[tuple[int, str]] = []
        for prop in props:
            name = str(prop.get("name", ""))
            value = prop.get("value") or {}
            if name.isdigit() and value.get("objectId"):
                indexed.append((int(name), str(value["objectId"])))
        return [oid for _, oid in sorted(indexed)]

    def evaluate(self, script: str, *args: Any) -> Any:
        remote = self._call(f"function() {{ return {script}\n}}", args)
        value = self.remote_value(remote)
        self.check_js_errors()
        return value

    def evaluate_async(self, script: str, wait_time: float, *args: Any) -> Any:
        declaration = (
            "function() {\n"
            "  const args = Array.prototype.slice.call(arguments);\n"
            "  const self = this;\n"
            "  return new Promise((resolve, reject) => {\n"
            f"    const timer = setTimeout(() => reject(new Error('Timed out waiting for async script after {wait_time}s')), {int(wait_time * 1000)});\n"
            "    args.push((value) => { clearTimeout(timer); resolve(value); });\n"
            f"    try {{ (function() {{ {script}\n }}).apply(self, args); }} catch (e) {{ clearTimeout(timer); reject(e); }}\n"
            "  });\n"
            "}"
        )
        old_timeout = self.conn.timeout
        self.conn.timeout = max(old_timeout, float(wait_time) + 1.0)
        try:
            remote = self._call(declaration, args, await_promise=True)
        finally:
            self.conn.timeout = old_timeout
        value = self.remote_value(remote)
        self.check_js_errors()
        return value

    def execute(self, script: str, *args: Any) -> None:
        self._call(f"function() {{ {script}\n}}", args)
        self.check_js_errors()

    def eval_value(self, expression: str) -> Any:
        """Evaluate a plain expression in the current frame and return it by value."""
        return self._call(f"function() {{ return ({expression}); }}", return_by_value=True).get("value")

    def call_function_on(self, object_id: str, declaration: str, *args: Any, return_by_value: bool = False) -> Any:
        result = self._call(declaration, args, object_id=object_id, return_by_value=return_by_value)
        if return_by_value:
            return result.get("value")
        return self.remote_value(result)

    # ─────────────────────────────────────────────────────────────────────────
    # Finding
    # ─────────────────────────────────────────────────────────────────────────

    def find(self, method: str, selector: str, *, within: str | None = None) -> list[str]:
        if method not in ("css", "xpath"):
            raise ValueError(f"Unsupported selector type: {method}")
        declaration = FIND_CSS_JS if method == "css" else FIND_XPATH_JS
        try:
            result = self._call(declaration, (selector,), object_id=within)
        except JavascriptError as exc:
            raise InvalidSelector(method, selector, str(exc.errors[0].get("message"))) from exc
        object_id = result.get("objectId")
        return self.array_object_ids(str(object_id)) if object_id else []

    # ─────────────────────────────────────────────────────────────────────────
    # Page info
    # ─────────────────────────────────────────────────────────────────────────

    def current_url(self) -> str:
        history = self.conn.send("Page.getNavigationHistory")
        entries = history.get("entries") or []
        idx = history.get("currentIndex")
        if isinstance(idx, int) and 0 <= idx < len(entries):
            return str(entries[idx].get("url") or "")
        return ""

    def frame_url(self) -> str:
        return str(self.eval_value("window.location.href") or "")

    def title(self) -> str:
        if not self.frame_stack:
            return str(self.eval_value("document.title") or "")
        saved, self.frame_stack = self.frame_stack, []
        try:
            return str(self.eval_value("document.title") or "")
        finally:
            self.frame_stack = saved

    def frame_title(self) -> str:
        return str(self.eval_value("document.title") or "")

    def content(self) -> str:
        return str(self.eval_value("document.documentElement ? document.documentElement.outerHTML : ''") or "")

    def source(self) -> str:
        if self.main_frame_id:
            try:
                res = self.conn.send(
                    "Page.getResourceContent", {"frameId": self.main_frame_id, "url": self.current_url()}
                )
                text = res.get("content") or ""
                return base64.b64decode(text).decode("utf-8", "replace") if res.get("base64Encoded") else text
            except CdpClientError:
                logger.debug("resource content unavailable, falling back to DOM", exc_info=True)
        return self.content()

    # ─────────────────────────────────────────────────────────────────────────
    # Input
    # ─────────────────────────────────────────────────────────────────────────

    def click(self, x: float, y: float, button: str = "left", click_count: int = 1) -> None:
        self.conn.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y})
        for event_type in ("mousePressed", "mouseReleased"):
            self.conn.send(
                "Input.dispatchMouseEvent",
                {"type": event_type, "x": x, "y": y, "button": button, "clickCount": click_count},
            )
        self.check_js_errors()

    def scroll_to(self, left: float, top: float) -> None:
        self.eval_value(f"window.scrollTo({float(left)}, {float(top)})")

    # ─────────────────────────────────────────────────────────────────────────
    # Window & rendering
    # ─────────────────────────────────────────────────────────────────────────

    def window_id(self) -> int:
        return int(self.conn.send("Browser.getWindowForTarget", {"targetId": self.target_id})["windowId"])

    def set_window_bounds(self, bounds: dict[str, Any]) -> None:
        self.conn.send("Browser.setWindowBounds", {"windowId": self.window_id(), "bounds": bounds})

    def resize(self, width: int, height: int, *, screen: tuple[int, int]) -> None:
        self.set_window_bounds({"windowState": "normal"})
        self.set_window_bounds({"width": int(width), "height": int(height)})
        self.conn.send(
            "Emulation.setDeviceMetricsOverride",
            {
                "width": int(width),
                "height": int(height),
                "deviceScaleFactor": 1,
                "mobile": False,
                "screenWidth": int(screen[0]),
                "screenHeight": int(screen[1]),
            },
        )

    def fullscreen(self, *, screen: tuple[int, int]) -> None:
        self.set_window_bounds({"windowState": "fullscreen"})
        self.conn.send(
            "Emulation.setDeviceMetricsOverride",
            {
                "width": int(screen[0]),
                "height": int(screen[1]),
                "deviceScaleFactor": 1,
                "mobile": False,
                "screenWidth": int(screen[0]),
                "screenHeight": int(screen[1]),
            },
        )

    def screenshot(
        self,
        *,
        format: str = "png",
        quality: int | None = None,
        clip: dict[str, float] | None = None,
        full: bool = False,
        scale: float = 1.0,
    ) -> bytes:
        params: dict[str, Any] = {"format": format, "fromSurface": True}
        if quality is not None and format == "jpeg":
            params["quality"] = int(quality)
        if full and clip is None:
            metrics = self.conn.send("Page.getLayoutMetrics")
            size = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
            clip = {"x": 0, "y": 0, "width": size.get("width", 0), "height": size.get("height", 0)}
            params["captureBeyondViewport"] = True
        if clip is not None:
            params["clip"] = {**clip, "scale": clip.get("scale", scale)}
        data = self.conn.send("Page.captureScreenshot", params).get("data", "")
        return base64.b64decode(data)

    def print_pdf(self, *, paper_size: dict[str, Any] | None = None, scale: float = 1.0) -> bytes:
        params: dict[str, Any] = {"printBackground": True, "scale": scale}
        paper_size = paper_size or self.settings.paper_size
        if paper_size:
            params["paperWidth"] = paper_inches(paper_size["width"])
            params["paperHeight"] = paper_inches(paper_size["height"])
        data = self.conn.send("Page.printToPDF", params).get("data", "")
        return base64.b64decode(data)

    def element_rect(self, object_id: str) -> dict[str, float]:
        rect = self.call_function_on(
            object_id,
            "function() { this.scrollIntoViewIfNeeded ? this.scrollIntoViewIfNeeded() : this.scrollIntoView();"
            " const r = this.getBoundingClientRect();"
            " return {x: r.left, y: r.top, width: r.width, height: r.height}; }",
            return_by_value=True,
        )
        if not isinstance(rect, dict):
            raise ObsoleteNode(None)
        return {k: float(rect.get(k) or 0.0) for k in ("x", "y", "width", "height")}


__all__ = ["FrameContext", "ModalResponse", "Page", "PageSettings", "is_stale_error", "paper_inches"]
