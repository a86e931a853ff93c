"""Network traffic records and URL allow/deny matching."""

from __future__ import annotations

import fnmatch
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class NetworkResponse:
    url: str
    status: int
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    mime_type: str = ""

    @classmethod
    def from_cdp(cls, raw: dict[str, Any]) -> NetworkResponse:
        return cls(
            url=str(raw.get("url") or ""),
            status=int(raw.get("status") or 0),
            status_text=str(raw.get("statusText") or ""),
            headers={str(k): str(v) for k, v in (raw.get("headers") or {}).items()},
            mime_type=str(raw.get("mimeType") or ""),
        )


@dataclass
class NetworkRequest:
    request_id: str
    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    resource_type: str = ""
    time: float = field(default_factory=time.time)
    response: NetworkResponse | None = None
    error: str | None = None
    blocked: bool = False


def url_matches(url: str, pattern: str) -> bool:
    """Glob match (``*``/``?``); a pattern without wildcards matches as a substring."""
    if not pattern:
        return False
    if any(ch in pattern for ch in "*?["):
        return fnmatch.fnmatchcase(url, pattern)
    return pattern in url


def url_allowed(url: str, *, blacklist: list[str], whitelist: list[str]) -> bool:
    if url.startswith(("data:", "about:", "blob:")):
        return True
    if any(url_matches(url, p) for p in blacklist):
        return False
    if whitelist:
        return any(url_matches(url, p) for p in whitelist)
    return True


__all__ = ["NetworkRequest", "NetworkResponse", "url_allowed", "url_matches"]
