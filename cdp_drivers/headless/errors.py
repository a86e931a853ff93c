"""Exception taxonomy for the headless driver.

- DriverError: usage/configuration errors and the common base class
- CdpClientError: anything the CDP transport or the browser reports
- ModalNotFound: the only condition retried internally (until a deadline)
"""

from __future__ import annotations

from typing import Any


class DriverError(Exception):
    pass


class LaunchError(DriverError):
    """The browser process could not be started or never exposed CDP."""

    def __init__(self, message: str, *, command: list[str] | None = None, log_tail: str | None = None) -> None:
        super().__init__(message)
        self.command = command or []
        self.log_tail = log_tail


class CdpClientError(DriverError):
    """Protocol-level failure reported by the browser or the websocket."""

    def __init__(self, message: str, *, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class CdpTimeoutError(CdpClientError):
    pass


class JavascriptError(DriverError):
    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = list(errors)
        lines = [str(e.get("message") or e) for e in self.errors]
        super().__init__("One or more errors were raised in the Javascript code on the page:\n" + "\n".join(lines))


class StatusFailError(DriverError):
    def __init__(self, url: str, reason: str | None = None) -> None:
        self.url = url
        self.reason = reason
        msg = f"Request to '{url}' failed to reach server, check DNS and server status"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class InvalidSelector(DriverError):
    def __init__(self, method: str, selector: str, reason: str | None = None) -> None:
        self.method = method
        self.selector = selector
        super().__init__(f"The browser raised a syntax error while evaluating {method} selector {selector!r}" + (f": {reason}" if reason else ""))


class ObsoleteNode(DriverError):
    """The referenced remote object no longer exists (navigation or GC)."""

    def __init__(self, node: Any = None, message: str | None = None) -> None:
        self.node = node
        super().__init__(
            message
            or "The element you are trying to interact with is either not part of the DOM, "
            "or is not currently visible on the page."
        )


class MouseEventFailed(DriverError):
    def __init__(self, node: Any = None, selector: str | None = None, position: tuple[float, float] | None = None) -> None:
        self.node = node
        self.selector = selector
        self.position = position
        where = f" at position {position}" if position else ""
        super().__init__(f"Firing a click{where} failed: another element ({selector or 'unknown'}) would receive it.")


class WrongWorld(DriverError):
    def __init__(self, node: Any = None) -> None:
        self.node = node
        super().__init__("The element you are trying to access is not from the current page")


class NoSuchWindowError(DriverError):
    pass


class FrameNotFound(DriverError):
    pass


class ModalNotFound(DriverError):
    """No matching modal dialog appeared before the deadline."""

    def __init__(self, message: str, *, expected: Any = None, observed: str | None = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.observed = observed


__all__ = [
    "CdpClientError",
    "CdpTimeoutError",
    "DriverError",
    "FrameNotFound",
    "InvalidSelector",
    "JavascriptError",
    "LaunchError",
    "ModalNotFound",
    "MouseEventFailed",
    "NoSuchWindowError",
    "ObsoleteNode",
    "StatusFailError",
    "WrongWorld",
]
