"""Raw CDP websocket connection.

One CdpConnection talks to one target (the browser endpoint or a page).
Commands are strictly request/response; events that arrive while a
response is pending are queued and handed to subscribed handlers.
Handlers may issue commands themselves: responses that belong to an
outer command are stashed by id until that command collects them.
"""

from __future__ import annotations

import json
import logging
import socket
import time
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import websocket

from .errors import CdpClientError, CdpTimeoutError

logger = logging.getLogger("cdp_drivers.headless.cdp")

EventHandler = Callable[[dict[str, Any]], None]


class CdpConnection:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws_url: str, timeout: float = 5.0, *, protocol_logger: logging.Logger | None = None):
        try:
            self.ws = websocket.create_connection(ws_url, timeout=timeout, suppress_origin=True)
        except (OSError, websocket.WebSocketException) as exc:
            raise CdpClientError(f"Unable to connect to {ws_url}: {exc}") from exc
        self.ws_url = ws_url
        self.timeout = timeout
        self.protocol_logger = protocol_logger or logger
        self._next_id = 1
        # Events must not be dropped while waiting for command responses,
        # otherwise load/dialog waits become flaky.
        self._event_queue: list[dict[str, Any]] = []
        self._max_event_queue = 2000
        self._handlers: dict[str, list[EventHandler]] = {}
        self._responses: dict[int, dict[str, Any]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    # ─────────────────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────────────────

    def on(self, event_name: str, handler: EventHandler) -> None:
        """Call ``handler(params)`` for every received ``event_name``."""
        self._handlers.setdefault(event_name, []).append(handler)

    def off(self, event_name: str, handler: EventHandler | None = None) -> None:
        if handler is None:
            self._handlers.pop(event_name, None)
            return
        with suppress(ValueError):
            self._handlers.get(event_name, []).remove(handler)

    def _dispatch(self, event: dict[str, Any]) -> None:
        params = event.get("params") if isinstance(event.get("params"), dict) else {}
        for handler in list(self._handlers.get(event["method"], ())):
            try:
                handler(params)
            except CdpClientError:
                # A handler losing its target must not break the command in flight.
                self.protocol_logger.warning("event handler for %s failed", event["method"], exc_info=True)

    def _push_event(self, event: dict[str, Any]) -> None:
        """Store an event for later consumption (bounded) and dispatch it."""
        if not isinstance(event, dict) or not isinstance(event.get("method"), str):
            return
        self.protocol_logger.debug("<< event %s", event["method"])
        self._event_queue.append(event)
        if len(self._event_queue) > self._max_event_queue:
            # Drop oldest events to avoid unbounded growth in long sessions.
            del self._event_queue[: len(self._event_queue) - self._max_event_queue]
        self._dispatch(event)

    def pop_event(self, event_name: str) -> dict[str, Any] | None:
        """Pop the oldest queued event params for the given event name."""
        if not event_name:
            return None
        for i, ev in enumerate(self._event_queue):
            if ev.get("method") == event_name:
                self._event_queue.pop(i)
                params = ev.get("params")
                return params if isinstance(params, dict) else {}
        return None

    def discard_events(self, event_name: str) -> int:
        before = len(self._event_queue)
        self._event_queue = [ev for ev in self._event_queue if ev.get("method") != event_name]
        return before - len(self._event_queue)

    def drain_events(self, *, max_messages: int = 50) -> int:
        """Read already-buffered events without blocking.

        Used by pollers (modal waits) so event handlers run even when no
        command is in flight. Stops at the first non-event message, which is
        stashed for whoever is waiting on it.
        """
        drained = 0
        for _ in range(max(0, int(max_messages))):
            try:
                self.ws.settimeout(0.0)
                raw = self.ws.recv()
            except (websocket.WebSocketTimeoutException, TimeoutError, BlockingIOError, OSError):
                break
            except websocket.WebSocketException as exc:
                raise CdpClientError(str(exc)) from exc
            finally:
                with suppress(Exception):
                    self.ws.settimeout(self.timeout)

            data = self._decode(raw)
            if data is None:
                continue
            if self._is_event(data):
                self._push_event(data)
                drained += 1
                continue
            self._stash(data)
            break
        return drained

    # ─────────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────────

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        if self._closed:
            raise CdpClientError(f"Connection to {self.ws_url} is closed")
        msg_id = self._next_id
        self._next_id += 1

        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params

        self.protocol_logger.debug(">> %s", json.dumps(msg)[:2000])
        try:
            self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
            self.ws.send(json.dumps(msg))
        except (OSError, websocket.WebSocketException) as exc:
            raise CdpClientError(str(exc)) from exc

        return self._recv_until(msg_id, method)

    def _recv_until(self, expected_id: int, method: str = "") -> dict[str, Any]:
        """Wait for response with specific ID."""
        deadline = time.time() + self.timeout
        while True:
            stashed = self._responses.pop(expected_id, None)
            if stashed is not None:
                return self._unwrap_response(stashed, method)

            remaining = deadline - time.time()
            if remaining <= 0:
                raise CdpTimeoutError(f"CDP response timed out ({method or expected_id})")

            # recv() blocks forever without a socket timeout; keep it small to honour the deadline.
            try:
                self.ws.settimeout(min(0.5, remaining))
                raw = self.ws.recv()
            except (websocket.WebSocketTimeoutException, TimeoutError):
                continue
            except (OSError, websocket.WebSocketException) as exc:
                raise CdpClientError(str(exc)) from exc

            data = self._decode(raw)
            if data is None:
                continue

            if self._is_event(data):
                self._push_event(data)
                continue

            if data.get("id") == expected_id:
                return self._unwrap_response(data, method)
            self._stash(data)

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict[str, Any] | None:
        """Wait for specific CDP event."""
        queued = self.pop_event(event_name)
        if queued is not None:
            return queued

        deadline = time.time() + timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                return None
            try:
                self.ws.settimeout(min(0.5, remaining))
                raw = self.ws.recv()
            except (websocket.WebSocketTimeoutException, TimeoutError):
                continue
            except (OSError, websocket.WebSocketException) as exc:
                raise CdpClientError(str(exc)) from exc

            data = self._decode(raw)
            if data is None:
                continue
            if self._is_event(data):
                self._push_event(data)
                found = self.pop_event(event_name)
                if found is not None:
                    return found
                continue
            self._stash(data)

    def close(self) -> None:
        """Close the WebSocket connection."""
        if self._closed:
            return
        self._closed = True
        # Prefer a raw socket shutdown: websocket-client close() can hang on a wedged tab.
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(OSError):
                sock.close()
        else:
            with suppress(OSError, websocket.WebSocketException):
                self.ws.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _is_event(data: dict[str, Any]) -> bool:
        return isinstance(data.get("method"), str) and "id" not in data

    def _decode(self, raw: Any) -> dict[str, Any] | None:
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        if "id" in data:
            self.protocol_logger.debug("<< %s", str(raw)[:2000])
        return data

    def _stash(self, data: dict[str, Any]) -> None:
        msg_id = data.get("id")
        if isinstance(msg_id, int):
            self._responses[msg_id] = data

    @staticmethod
    def _unwrap_response(data: dict[str, Any], method: str) -> dict[str, Any]:
        if "error" in data:
            err = data["error"] if isinstance(data["error"], dict) else {"message": str(data["error"])}
            message = str(err.get("message") or err)
            if err.get("data"):
                message = f"{message}: {err['data']}"
            raise CdpClientError(
                f"{method}: {message}" if method else message, code=err.get("code"), data=err.get("data")
            )
        result = data.get("result")
        return result if isinstance(result, dict) else {}


__all__ = ["CdpConnection", "EventHandler"]
