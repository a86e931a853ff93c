"""Cookie helpers: raw ``Set-Cookie``-style parsing and CDP parameter building."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import urlsplit

_SEGMENT_SPLIT = re.compile(r";\s*")
_SAME_SITE = {"strict": "Strict", "lax": "Lax", "none": "None"}


def parse_raw_cookie(raw: str) -> tuple[str, str | None, dict[str, str | None]]:
    """Split ``"name=value; Attr=val; Flag"`` into (name, value, attributes)."""
    parts = [p for p in _SEGMENT_SPLIT.split(raw.strip()) if p]
    if not parts:
        raise ValueError("Empty cookie string")
    name, _, value = parts[0].partition("=")
    options: dict[str, str | None] = {}
    for part in parts[1:]:
        key, sep, val = part.partition("=")
        options[key] = val if sep else None
    return name, (value if "=" in parts[0] else None), options


def find_option(options: dict[str, Any], key: str) -> tuple[str | None, Any]:
    """Case-insensitive lookup; returns (actual_key, value)."""
    wanted = key.lower()
    for k, v in options.items():
        if str(k).lower() == wanted:
            return k, v
    return None, None


def host_of(url: str | None) -> str | None:
    if not url:
        return None
    return urlsplit(url).hostname or None


def _expires_epoch(raw: Any) -> float | None:
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, datetime):
        return raw.timestamp()
    try:
        return parsedate_to_datetime(str(raw)).timestamp()
    except (TypeError, ValueError):
        return None


def cookie_params(name: str, value: Any, options: dict[str, Any]) -> dict[str, Any]:
    """Translate cookie attributes into ``Network.setCookie`` parameters."""
    params: dict[str, Any] = {"name": str(name), "value": "" if value is None else str(value)}
    for key, raw in options.items():
        k = str(key).lower().replace("_", "").replace("-", "")
        if k in {"name", "value"}:
            continue
        if k == "domain" and raw:
            params["domain"] = str(raw)
        elif k == "path" and raw:
            params["path"] = str(raw)
        elif k == "url" and raw:
            params["url"] = str(raw)
        elif k == "secure":
            params["secure"] = raw is None or bool(raw)
        elif k == "httponly":
            params["httpOnly"] = raw is None or bool(raw)
        elif k == "samesite" and raw:
            params["sameSite"] = _SAME_SITE.get(str(raw).lower(), str(raw))
        elif k == "expires":
            expires = _expires_epoch(raw)
            if expires is not None:
                params["expires"] = expires
        elif k == "maxage" and raw is not None:
            params["expires"] = time.time() + int(raw)
    params.setdefault("path", "/")
    return params


@dataclass(frozen=True)
class Cookie:
    """Read-only view over a CDP ``Network.Cookie``."""

    raw: dict[str, Any]

    @property
    def name(self) -> str:
        return str(self.raw.get("name", ""))

    @property
    def value(self) -> str:
        return str(self.raw.get("value", ""))

    @property
    def domain(self) -> str:
        return str(self.raw.get("domain", ""))

    @property
    def path(self) -> str:
        return str(self.raw.get("path", "/"))

    @property
    def secure(self) -> bool:
        return bool(self.raw.get("secure"))

    @property
    def http_only(self) -> bool:
        return bool(self.raw.get("httpOnly"))

    @property
    def same_site(self) -> str | None:
        return self.raw.get("sameSite")

    @property
    def expires(self) -> datetime | None:
        ts = self.raw.get("expires")
        if self.raw.get("session") or ts is None or ts < 0:
            return None
        return datetime.fromtimestamp(float(ts), tz=timezone.utc)


__all__ = ["Cookie", "cookie_params", "find_option", "host_of", "parse_raw_cookie"]
