"""Per-customer mutual exclusion for ledger mutations."""

import threading
from contextlib import contextmanager


class KeyedLock:
    """
    One lock per key, created on demand and dropped when nobody holds it.

    Mutations for the same customer run one at a time; different customers
    never wait on each other. Not reentrant.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [Lock, holders]

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
