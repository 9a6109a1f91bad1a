"""In-process locks keyed by entity id"""
from contextlib import contextmanager
from threading import Lock, RLock


class KeyedLock:
    """Hands out one re-entrant lock per key.

    Serialises work on the same entity inside one process. Cross-process
    safety comes from the conditional UPDATE and unique constraints in the
    database, this only keeps threads of one worker from racing each other.
    """

    def __init__(self):
        self._guard = Lock()
        self._locks = {}
        self._holders = {}

    def _acquire_entry(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = RLock()
                self._locks[key] = lock
                self._holders[key] = 0
            self._holders[key] += 1
            return lock

    def _release_entry(self, key):
        with self._guard:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key):
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)

    def __len__(self):
        with self._guard:
            return len(self._locks)


conversion_locks = KeyedLock()
shipment_locks = KeyedLock()
