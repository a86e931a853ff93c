"""Transport handle: the browser-level CDP connection plus per-page connections."""

from __future__ import annotations

import logging
from contextlib import suppress
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .config import DEFAULT_TIMEOUT
from .errors import CdpClientError
from .session_cdp import CdpConnection

logger = logging.getLogger("cdp_drivers.headless.client")


class ChromeClient:
    """Browser-level CDP endpoint.

    Page targets get their own websocket (``/devtools/page/<id>``) so each
    Page can wait on its own events without interleaving.
    """

    def __init__(
        self,
        conn: CdpConnection,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        protocol_logger: logging.Logger | None = None,
    ) -> None:
        self.conn = conn
        self.ws_url = conn.ws_url
        self.protocol_logger = protocol_logger
        self._timeout = float(timeout)
        self._page_conns: dict[str, CdpConnection] = {}
        self._stopped = False

    @classmethod
    def client(
        cls,
        ws_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        protocol_logger: logging.Logger | None = None,
    ) -> ChromeClient:
        conn = CdpConnection(ws_url, timeout=timeout, protocol_logger=protocol_logger)
        return cls(conn, timeout=timeout, protocol_logger=protocol_logger)

    @property
    def timeout(self) -> float:
        return self._timeout

    @timeout.setter
    def timeout(self, seconds: float) -> None:
        self._timeout = float(seconds)
        self.conn.timeout = self._timeout
        for conn in self._page_conns.values():
            conn.timeout = self._timeout

    @property
    def stopped(self) -> bool:
        return self._stopped

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.conn.send(method, params)

    # ─────────────────────────────────────────────────────────────────────────
    # Targets
    # ─────────────────────────────────────────────────────────────────────────

    def page_targets(self) -> list[dict[str, Any]]:
        infos = self.send("Target.getTargets").get("targetInfos") or []
        return [t for t in infos if isinstance(t, dict) and t.get("type") == "page"]

    def create_target(self, url: str = "about:blank", *, browser_context_id: str | None = None) -> str:
        params: dict[str, Any] = {"url": url}
        if browser_context_id:
            params["browserContextId"] = browser_context_id
        target_id = self.send("Target.createTarget", params).get("targetId")
        if not target_id:
            raise CdpClientError("Failed to create browser tab")
        return str(target_id)

    def close_target(self, target_id: str) -> bool:
        page_conn = self._page_conns.pop(target_id, None)
        if page_conn is not None:
            page_conn.close()
        return bool(self.send("Target.closeTarget", {"targetId": target_id}).get("success", True))

    def activate_target(self, target_id: str) -> None:
        self.send("Target.activateTarget", {"targetId": target_id})

    def create_browser_context(self, *, proxy_server: str | None = None, proxy_bypass: str | None = None) -> str:
        params: dict[str, Any] = {"disposeOnDetach": True}
        if proxy_server:
            params["proxyServer"] = proxy_server
        if proxy_bypass:
            params["proxyBypassList"] = proxy_bypass
        context_id = self.send("Target.createBrowserContext", params).get("browserContextId")
        if not context_id:
            raise CdpClientError("Failed to create browser context")
        return str(context_id)

    def page_ws_url(self, target_id: str) -> str:
        parts = urlsplit(self.ws_url)
        return urlunsplit((parts.scheme, parts.netloc, f"/devtools/page/{target_id}", "", ""))

    def connect_page(self, target_id: str) -> CdpConnection:
        existing = self._page_conns.get(target_id)
        if existing is not None and not existing.closed:
            return existing
        conn = CdpConnection(self.page_ws_url(target_id), timeout=self._timeout, protocol_logger=self.protocol_logger)
        self._page_conns[target_id] = conn
        return conn

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        for conn in list(self._page_conns.values()):
            with suppress(CdpClientError):
                conn.close()
        self._page_conns.clear()
        self.conn.close()
        logger.debug("client stopped (%s)", self.ws_url)


__all__ = ["ChromeClient"]
