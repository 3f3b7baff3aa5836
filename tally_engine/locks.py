"""Per-key lock table used to serialize mutations on the same logical key."""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class KeyedLock:
    """
    Hands out one lock per key.

    Requests for different keys never wait on each other beyond the short
    table lookup; requests for the same key run one at a time. Entries are
    dropped once no thread holds or waits on them, so the table stays bounded
    by the number of in-flight keys.
    """

    def __init__(self):
        self._mutex = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._mutex:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._waiters[key] = self._waiters.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._mutex:
                self._waiters[key] -= 1
                if not self._waiters[key]:
                    del self._waiters[key]
                    del self._locks[key]

    def active_keys(self) -> List[Hashable]:
        """Keys currently held or waited on."""
        with self._mutex:
            return list(self._locks)
