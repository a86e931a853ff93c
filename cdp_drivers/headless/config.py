from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

DEFAULT_BINARY_CANDIDATES: list[str] = [
    # Prefer Chromium builds; snap versions ignore --user-data-dir so they go last.
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chromium",
    "/opt/chromium/chromium",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "C:\\Program Files\\Chromium\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Chromium\\Application\\chrome.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/google-chrome-beta",
    "/opt/google/chrome/chrome",
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    "/snap/bin/chromium",
]

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_WAIT_TIME = 2.0
DEFAULT_SCREEN_SIZE = (1366, 768)


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def detect_binary() -> str:
    env_path = os.environ.get("CDP_DRIVER_BROWSER_BINARY")
    if env_path:
        return expand_path(env_path)
    for candidate in DEFAULT_BINARY_CANDIDATES:
        path = Path(candidate)
        if path.exists() and os.access(str(path), os.X_OK):
            return str(path)
    for name in ("chromium", "chromium-browser", "google-chrome"):
        found = shutil.which(name)
        if found:
            return found
    # Last resort: rely on PATH lookup at launch time
    return "google-chrome"


def _env_bool(raw: str | None) -> bool | None:
    if raw is None:
        return None
    v = raw.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return None


def _env_list(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class DriverOptions:
    """Construction-time options.

    Every field is optional; ``None`` means "not supplied", and the driver
    leaves the corresponding browser default untouched.
    """

    debug: bool | None = None
    headless: bool | None = None
    port: int | None = None
    host: str | None = None
    window_size: tuple[int, int] | list[int] | None = None
    js_errors: bool | None = None
    ignore_https_errors: bool | None = None
    extensions: list[str] | None = None
    url_blacklist: list[str] | None = None
    url_whitelist: list[str] | None = None
    logger: Any = None
    browser_logger: Any = None
    screen_size: tuple[int, int] | list[int] | None = None
    inspector: Any = None
    timeout: float | None = None
    default_max_wait_time: float | None = None
    app_host: str | None = None
    browser_path: str | None = None
    browser_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | DriverOptions | None = None, **overrides: Any) -> DriverOptions:
        if isinstance(raw, DriverOptions):
            base = {f.name: getattr(raw, f.name) for f in fields(cls)}
        else:
            base = dict(raw or {})
        base.update(overrides)
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in base if k not in known)
        if unknown:
            raise TypeError(f"Unknown driver option(s): {', '.join(unknown)}")
        return cls(**base)

    @classmethod
    def from_env(cls) -> DriverOptions:
        port_raw = os.environ.get("CDP_DRIVER_PORT")
        size_raw = _env_list(os.environ.get("CDP_DRIVER_WINDOW_SIZE"))
        timeout_raw = os.environ.get("CDP_DRIVER_TIMEOUT")
        wait_raw = os.environ.get("CDP_DRIVER_MAX_WAIT")
        return cls(
            debug=_env_bool(os.environ.get("CDP_DRIVER_DEBUG")),
            headless=_env_bool(os.environ.get("CDP_DRIVER_HEADLESS")),
            port=int(port_raw) if port_raw else None,
            host=os.environ.get("CDP_DRIVER_HOST") or None,
            window_size=tuple(int(v) for v in size_raw[:2]) if size_raw else None,  # type: ignore[arg-type]
            js_errors=_env_bool(os.environ.get("CDP_DRIVER_JS_ERRORS")),
            ignore_https_errors=_env_bool(os.environ.get("CDP_DRIVER_IGNORE_HTTPS_ERRORS")),
            extensions=_env_list(os.environ.get("CDP_DRIVER_EXTENSIONS")),
            url_blacklist=_env_list(os.environ.get("CDP_DRIVER_URL_BLACKLIST")),
            url_whitelist=_env_list(os.environ.get("CDP_DRIVER_URL_WHITELIST")),
            timeout=float(timeout_raw) if timeout_raw else None,
            default_max_wait_time=float(wait_raw) if wait_raw else None,
            app_host=os.environ.get("CDP_DRIVER_APP_HOST") or None,
            browser_path=os.environ.get("CDP_DRIVER_BROWSER_BINARY") or None,
        )

    def with_defaults(self, defaults: DriverOptions) -> DriverOptions:
        """Fill every unset field from ``defaults``; set fields win."""
        merged = {}
        for f in fields(self):
            value = getattr(self, f.name)
            merged[f.name] = getattr(defaults, f.name) if value is None or value == {} else value
        return DriverOptions(**merged)

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not None

    @property
    def effective_screen_size(self) -> tuple[int, int]:
        if self.screen_size:
            w, h = self.screen_size
            return int(w), int(h)
        return DEFAULT_SCREEN_SIZE

    @property
    def effective_timeout(self) -> float:
        return float(self.timeout) if self.timeout is not None else DEFAULT_TIMEOUT

    @property
    def effective_max_wait_time(self) -> float:
        if self.default_max_wait_time is not None:
            return float(self.default_max_wait_time)
        return DEFAULT_MAX_WAIT_TIME


__all__ = [
    "DEFAULT_BINARY_CANDIDATES",
    "DEFAULT_MAX_WAIT_TIME",
    "DEFAULT_SCREEN_SIZE",
    "DEFAULT_TIMEOUT",
    "DriverOptions",
    "detect_binary",
    "expand_path",
]
