"""A thread-safe key/value cache whose entries expire after a time to live."""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Any, Callable, Hashable, Optional, Union

__all__ = ["ExpiringCache"]

Duration = Union[float, int, timedelta, None]


def _seconds(duration: Duration) -> Optional[float]:
    if duration is None:
        return None
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


class ExpiringCache:
    """Cache with per-entry expiration.

    ``default_expiration`` is the time to live of entries stored with :meth:`set`;
    ``None`` keeps them forever. ``clock`` returns the current time in seconds.
    Expired entries are dropped lazily when they are looked at.
    """

    def __init__(
        self,
        default_expiration: Duration = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._default = _seconds(default_expiration)
        self._clock = clock or time.monotonic
        self._entries: dict[Hashable, tuple[Any, Optional[float]]] = {}
        self._lock = threading.RLock()

    def _deadline(self, ttl: Optional[float]) -> Optional[float]:
        return None if ttl is None else self._clock() + ttl

    def _live(self, key: Hashable) -> Optional[tuple[Any, Optional[float]]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        deadline = entry[1]
        if deadline is not None and self._clock() >= deadline:
            del self._entries[key]
            return None
        return entry

    def set(self, key: Hashable, value: Any) -> None:
        """Store ``value`` under ``key`` with the default expiration."""
        with self._lock:
            self._entries[key] = (value, self._deadline(self._default))

    def set_with_expiration(self, key: Hashable, value: Any, expiration: Duration) -> None:
        """Store ``value`` under ``key``, expiring ``expiration`` from now."""
        with self._lock:
            self._entries[key] = (value, self._deadline(_seconds(expiration)))

    def get(self, key: Hashable) -> Any:
        """Return the value for ``key``, or ``None`` if absent or expired."""
        with self._lock:
            entry = self._live(key)
            return None if entry is None else entry[0]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return self._live(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        with self._lock:
            for key in list(self._entries):
                self._live(key)
            return len(self._entries)