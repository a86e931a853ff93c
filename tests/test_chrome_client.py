from __future__ import annotations

from typing import Any

import pytest

import cdp_drivers.headless.chrome_client as chrome_client_mod
from cdp_drivers.headless.chrome_client import ChromeClient
from cdp_drivers.headless.errors import CdpClientError


class DummyConn:
    def __init__(self, ws_url: str, timeout: float = 5.0, *, protocol_logger: Any = None) -> None:
        self.ws_url = ws_url
        self.timeout = timeout
        self.closed = False
        self.calls: list[tuple[str, dict[str, Any] | None]] = []
        self.replies: dict[str, dict[str, Any]] = {}

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.calls.append((method, params))
        return self.replies.get(method, {})

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> ChromeClient:
    monkeypatch.setattr(chrome_client_mod, "CdpConnection", DummyConn)
    return ChromeClient.client("ws://127.0.0.1:9222/devtools/browser/abc", timeout=9)


def test_page_ws_url_reuses_browser_endpoint(client: ChromeClient) -> None:
    assert client.page_ws_url("T1") == "ws://127.0.0.1:9222/devtools/page/T1"


def test_page_connections_are_cached_and_follow_timeout(client: ChromeClient) -> None:
    first = client.connect_page("T1")
    assert client.connect_page("T1") is first
    assert first.timeout == 9
    client.timeout = 3
    assert first.timeout == 3.0
    assert client.conn.timeout == 3.0


def test_page_targets_filters_non_pages(client: ChromeClient) -> None:
    client.conn.replies["Target.getTargets"] = {
        "targetInfos": [
            {"targetId": "a", "type": "page"},
            {"targetId": "b", "type": "service_worker"},
            {"targetId": "c", "type": "page"},
        ]
    }
    assert [t["targetId"] for t in client.page_targets()] == ["a", "c"]


def test_create_target_requires_an_id(client: ChromeClient) -> None:
    with pytest.raises(CdpClientError):
        client.create_target()
    client.conn.replies["Target.createTarget"] = {"targetId": "new"}
    assert client.create_target("about:blank", browser_context_id="ctx") == "new"
    assert client.conn.calls[-1] == ("Target.createTarget", {"url": "about:blank", "browserContextId": "ctx"})


def test_browser_context_carries_proxy(client: ChromeClient) -> None:
    client.conn.replies["Target.createBrowserContext"] = {"browserContextId": "ctx-9"}
    assert client.create_browser_context(proxy_server="http://p:1") == "ctx-9"
    assert client.conn.calls[-1][1] == {"disposeOnDetach": True, "proxyServer": "http://p:1"}


def test_close_target_closes_its_connection(client: ChromeClient) -> None:
    page_conn = client.connect_page("T1")
    assert client.close_target("T1") is True
    assert page_conn.closed is True
    assert client.connect_page("T1") is not page_conn


def test_stop_is_idempotent(client: ChromeClient) -> None:
    page_conn = client.connect_page("T1")
    client.stop()
    client.stop()
    assert client.stopped is True
    assert page_conn.closed is True
    assert client.conn.closed is True
