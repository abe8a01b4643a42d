"""
Per-key mutual exclusion for in-process work.

Webhook events for the same external booking id must not interleave, while
events for different ids run in parallel. Entries are reference counted and
dropped once no thread holds or waits on them.
"""

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, Optional


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = Lock()
        self.refs = 0


class KeyedLock:
    """A map of mutexes keyed by string."""

    def __init__(self):
        self._guard = Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, key: Optional[str]) -> Iterator[None]:
        """Hold the mutex for `key`. A None key does not lock."""
        if key is None:
            yield
            return

        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.refs -= 1
                if entry.refs == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# Process-wide lock map for webhook processing
booking_locks = KeyedLock()
