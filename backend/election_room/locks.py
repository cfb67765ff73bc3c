import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLocks:
    """Hand out one re-entrant lock per entity key.

    Keys look like ``election:<id>``, ``user:<username>`` or ``chat:<id>``. Locks are
    created lazily and never evicted; the number of distinct keys is
    bounded by the number of elections and accounts.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def get(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Acquire the locks for ``keys`` in sorted order."""
        ordered = sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                lock = self.get(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def election_key(election_id: str) -> str:
    return f"election:{election_id}"


def user_key(username: str) -> str:
    return f"user:{username}"


def chat_key(election_id: str) -> str:
    return f"chat:{election_id}"
