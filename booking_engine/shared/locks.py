"""
In-process keyed mutexes.

Each key gets its own Lock, created on first use. Entries are reference counted
and dropped once no thread holds or waits on them, so the table does not grow
with every client that ever booked.
"""

from contextlib import contextmanager
from threading import Lock
from typing import Hashable


class KeyedLock:
    """A lock per key"""

    def __init__(self):
        self._guard = Lock()
        self._locks: dict[Hashable, list] = {}  # key -> [Lock, holders_and_waiters]

    @contextmanager
    def hold(self, key: Hashable):
        with self._guard:
            entry = self._locks.setdefault(key, [Lock(), 0])
            entry[1] += 1

        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
