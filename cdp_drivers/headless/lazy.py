"""Once-only construction of stateful handles (browser, client, launcher)."""

from __future__ import annotations

import enum
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

from .errors import DriverError

T = TypeVar("T")


class HandleState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    STOPPED = "stopped"


class LazyHandle(Generic[T]):
    """Build a value on first ``get()`` and hand out the same instance afterwards.

    A failed factory leaves the handle uninitialized. Once stopped the
    handle never builds again.
    """

    def __init__(self, name: str, factory: Callable[[], T]) -> None:
        self.name = name
        self._factory = factory
        self._lock = threading.Lock()
        self._state = HandleState.UNINITIALIZED
        self._value: T | None = None
        self._builder: int | None = None

    @property
    def state(self) -> HandleState:
        return self._state

    def peek(self) -> T | None:
        """Return the value if it was built, without building it."""
        return self._value if self._state is HandleState.READY else None

    def get(self) -> T:
        if self._state is HandleState.READY:
            return self._value  # type: ignore[return-value]
        if self._state is HandleState.INITIALIZING and self._builder == threading.get_ident():
            raise DriverError(f"{self.name} is already being initialized (reentrant access)")

        with self._lock:
            if self._state is HandleState.READY:
                return self._value  # type: ignore[return-value]
            if self._state is HandleState.STOPPED:
                raise DriverError(f"{self.name} has been stopped; create a new driver")
            self._state = HandleState.INITIALIZING
            self._builder = threading.get_ident()
            try:
                value = self._factory()
            except BaseException:
                self._state = HandleState.UNINITIALIZED
                raise
            finally:
                self._builder = None
            self._value = value
            self._state = HandleState.READY
            return value

    def stop(self, closer: Callable[[T], object] | None = None) -> bool:
        """Mark the handle stopped; run ``closer`` on the value if one was built."""
        with self._lock:
            value = self._value if self._state is HandleState.READY else None
            already = self._state is HandleState.STOPPED
            self._state = HandleState.STOPPED
            self._value = None
        if already or value is None:
            return False
        if closer is not None:
            closer(value)
        return True


__all__ = ["HandleState", "LazyHandle"]
