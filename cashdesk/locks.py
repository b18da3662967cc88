"""
Member Lock Table

Per-member mutual exclusion. Operations on the same member run one at a
time; operations on different members use different locks.
"""

from contextlib import contextmanager
from typing import Dict, Iterator
import threading


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0  # Threads holding or waiting for the lock


class MemberLockTable:
    """Lazily created locks keyed by member number, dropped when unused"""

    def __init__(self):
        self._entries: Dict[int, _Entry] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, member_number: int) -> Iterator[None]:
        """Hold the lock of one member for the duration of the block"""
        with self._guard:
            entry = self._entries.get(member_number)
            if entry is None:
                entry = self._entries[member_number] = _Entry()
            entry.holders += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[member_number]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
