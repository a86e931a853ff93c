"""Open the DevTools frontend for the current page (used by ``Driver.debug``)."""

from __future__ import annotations

import logging
import shlex
import subprocess
import webbrowser
from urllib.parse import urlsplit

logger = logging.getLogger("cdp_drivers.headless.inspector")


class Inspector:
    """``browser`` is ``True`` for the system default browser, or a command line."""

    def __init__(self, browser: bool | str, http_endpoint: str) -> None:
        self.browser = browser
        self.http_endpoint = http_endpoint.rstrip("/")

    def url(self, target_id: str) -> str:
        netloc = urlsplit(self.http_endpoint).netloc
        return f"{self.http_endpoint}/devtools/inspector.html?ws={netloc}/devtools/page/{target_id}"

    def open(self, target_id: str) -> str:
        url = self.url(target_id)
        logger.info("opening inspector: %s", url)
        if isinstance(self.browser, str) and self.browser.strip():
            subprocess.Popen([*shlex.split(self.browser), url], stdin=subprocess.DEVNULL, start_new_session=True)
        else:
            webbrowser.open(url)
        return url


__all__ = ["Inspector"]
