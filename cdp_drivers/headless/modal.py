from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from typing import Any

from .errors import ModalNotFound

logger = logging.getLogger("cdp_drivers.headless.modal")

POLL_INTERVAL = 0.05


def _expectation(text: Any) -> re.Pattern[str] | None:
    if text is None:
        return None
    if isinstance(text, re.Pattern):
        return text
    return re.compile(re.escape(str(text)))


def wait_for_modal(
    read_message: Callable[[], str | None],
    *,
    wait: float,
    text: str | re.Pattern[str] | None = None,
    interval: float = POLL_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Poll ``read_message`` until a dialog message matches or ``wait`` seconds pass.

    Strings are matched literally (case-sensitive substring); compiled
    patterns are searched as given. Reading a message consumes it, so the
    first message ever seen is the one reported on a mismatch.
    """
    pattern = _expectation(text)
    deadline = clock() + max(0.0, float(wait))
    found_text: str | None = None

    while True:
        message = read_message()
        if message is not None and found_text is None:
            found_text = message
        if message is not None and (pattern is None or pattern.search(message)):
            return message

        if clock() >= deadline:
            if found_text is None:
                raise ModalNotFound(
                    "Timed out waiting for modal dialog. Unable to find modal dialog.",
                    expected=text,
                )
            expected = text.pattern if isinstance(text, re.Pattern) else text
            raise ModalNotFound(
                f"Unable to find modal dialog with {expected}, did find modal with {found_text}",
                expected=text,
                observed=found_text,
            )

        logger.debug("modal not found yet (seen=%r), retrying", found_text)
        sleep(interval)


__all__ = ["POLL_INTERVAL", "wait_for_modal"]
