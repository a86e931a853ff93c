from __future__ import annotations

import contextlib
import json
import logging
import shutil
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

from .config import detect_binary, expand_path
from .errors import LaunchError

logger = logging.getLogger("cdp_drivers.headless.launcher")

DEFAULT_FLAGS: dict[str, Any] = {
    "remote-allow-origins": "*",
    "no-first-run": None,
    "no-default-browser-check": None,
    "disable-background-networking": None,
    "disable-background-timer-throttling": None,
    "disable-backgrounding-occluded-windows": None,
    "disable-renderer-backgrounding": None,
    "disable-breakpad": None,
    "disable-client-side-phishing-detection": None,
    "disable-default-apps": None,
    "disable-dev-shm-usage": None,
    "disable-extensions": None,
    "disable-hang-monitor": None,
    "disable-popup-blocking": None,
    "disable-prompt-on-repost": None,
    "disable-sync": None,
    "disable-translate": None,
    "metrics-recording-only": None,
    "safebrowsing-disable-auto-update": None,
    "password-store": "basic",
    "use-mock-keychain": None,
    "keep-alive-for-test": None,
}


class BrowserLauncher:
    """Owns one Chromium process started with a remote-debugging port."""

    def __init__(
        self,
        *,
        headless: bool = True,
        browser: dict[str, Any] | None = None,
        binary_path: str | None = None,
        startup_timeout: float = 10.0,
    ) -> None:
        self.headless = headless
        self.browser_options: dict[str, Any] = dict(browser or {})
        self.binary_path = expand_path(binary_path) if binary_path else detect_binary()
        self.startup_timeout = startup_timeout
        self.process: subprocess.Popen | None = None
        self.profile_dir: str | None = None
        self.port: int | None = None
        self.host = str(self.browser_options.get("remote-debugging-address") or "127.0.0.1")
        self._ws_url: str | None = None

    @classmethod
    def start(cls, **kwargs: Any) -> BrowserLauncher:
        launcher = cls(**kwargs)
        launcher.launch()
        return launcher

    @staticmethod
    def find_free_port() -> int:
        with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
            s.bind(("127.0.0.1", 0))
            return s.getsockname()[1]

    def build_launch_command(self) -> list[str]:
        flags: dict[str, Any] = dict(DEFAULT_FLAGS)
        if self.headless:
            flags.update({"headless": "new", "hide-scrollbars": None, "mute-audio": None})
        flags.update(self.browser_options)
        flags["remote-debugging-port"] = self.port if self.port is not None else flags.get("remote-debugging-port", 0)
        if "user-data-dir" not in flags and self.profile_dir:
            flags["user-data-dir"] = self.profile_dir
        # Portable builds and containers need --no-sandbox.
        if "vendor/chromium" in self.binary_path:
            flags.setdefault("no-sandbox", None)

        cmd = [self.binary_path]
        for name, value in flags.items():
            if value is False:
                continue
            cmd.append(f"--{name}" if value is None or value is True else f"--{name}={value}")
        cmd.append("about:blank")
        return cmd

    def launch(self) -> None:
        requested = int(self.browser_options.get("remote-debugging-port") or 0)
        self.port = requested or self.find_free_port()
        self.profile_dir = tempfile.mkdtemp(prefix="cdp-driver-profile-")
        cmd = self.build_launch_command()
        log_path = str(Path(self.profile_dir) / "chrome_launch.log")
        logger.info("launching browser: %s", " ".join(cmd))
        try:
            with open(log_path, "ab", buffering=0) as log_fh:
                self.process = subprocess.Popen(
                    cmd, stdout=log_fh, stderr=log_fh, stdin=subprocess.DEVNULL, start_new_session=True
                )
        except OSError as exc:
            self._remove_profile()
            raise LaunchError(f"Unable to start browser: {exc}", command=cmd) from exc

        deadline = time.time() + self.startup_timeout
        while time.time() < deadline:
            if self.process.poll() is not None:
                break
            version = self._cdp_version(timeout=0.4)
            if version is not None:
                self._ws_url = version.get("webSocketDebuggerUrl")
                if self._ws_url:
                    logger.info("browser ready on %s:%s", self.host, self.port)
                    return
            time.sleep(0.1)

        tail = self._tail_text(log_path)
        self.stop()
        raise LaunchError("Browser launch timed out (CDP endpoint never became ready)", command=cmd, log_tail=tail)

    @property
    def ws_url(self) -> str:
        if not self._ws_url:
            raise LaunchError("Browser is not running")
        return self._ws_url

    @property
    def http_endpoint(self) -> str:
        return f"http://{self.host}:{self.port}"

    def stop(self, *, timeout: float = 2.0) -> bool:
        """Stop the launcher-owned browser process and remove its profile."""
        proc = self.process
        self.process = None
        self._ws_url = None
        if proc is None:
            self._remove_profile()
            return False

        if proc.poll() is None:
            with contextlib.suppress(OSError):
                proc.terminate()
            try:
                proc.wait(timeout=max(0.1, float(timeout)))
            except subprocess.TimeoutExpired:
                with contextlib.suppress(OSError):
                    proc.kill()
                with contextlib.suppress(subprocess.TimeoutExpired):
                    proc.wait(timeout=1.0)
        self._remove_profile()
        return True

    def _cdp_version(self, timeout: float = 0.4) -> dict[str, Any] | None:
        try:
            req = Request(f"{self.http_endpoint}/json/version", headers={"User-Agent": "cdp-driver"})
            with urlopen(req, timeout=timeout) as resp:
                if resp.status != 200:
                    return None
                payload = json.loads(resp.read().decode())
                return payload if isinstance(payload, dict) else None
        except (OSError, URLError, json.JSONDecodeError):
            return None

    def _remove_profile(self) -> None:
        if self.profile_dir:
            shutil.rmtree(self.profile_dir, ignore_errors=True)
            self.profile_dir = None

    @staticmethod
    def _tail_text(path: str, max_chars: int = 4000) -> str | None:
        p = Path(path)
        if not p.exists():
            return None
        raw = p.read_text(encoding="utf-8", errors="replace")
        return raw if len(raw) <= max_chars else raw[-max_chars:]


__all__ = ["DEFAULT_FLAGS", "BrowserLauncher"]
