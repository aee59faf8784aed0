"""
Atomic words and runtime semaphores for the sync primitives.

Python exposes no hardware compare-and-swap, so an AtomicInt guards its
value with a private lock held only for the duration of one operation.
Blocking is always done on a Semaphore, never on that lock.
"""

import threading


class AtomicInt:
    """An integer word updated with load / store / add / compare_and_swap."""

    __slots__ = ("_value", "_guard")

    def __init__(self, value: int = 0):
        self._value = value
        self._guard = threading.Lock()

    def load(self) -> int:
        with self._guard:
            return self._value

    def store(self, value: int) -> None:
        with self._guard:
            self._value = value

    def add(self, delta: int) -> int:
        """Add delta and return the NEW value."""
        with self._guard:
            self._value += delta
            return self._value

    def compare_and_swap(self, old: int, new: int) -> bool:
        with self._guard:
            if self._value != old:
                return False
            self._value = new
            return True

    def __repr__(self) -> str:
        return f"AtomicInt({self.load()})"


class Semaphore:
    """
    Counting semaphore that starts empty.

    acquire() blocks until a token is available; release(count) hands out
    count tokens. This is the only place a sync primitive parks a thread.
    """

    __slots__ = ("_sema",)

    def __init__(self):
        self._sema = threading.Semaphore(0)

    def acquire(self) -> None:
        self._sema.acquire()

    def release(self, count: int = 1) -> None:
        if count > 0:
            self._sema.release(count)
