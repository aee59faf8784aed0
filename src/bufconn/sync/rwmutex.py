"""
=============================================================================
READER/WRITER MUTUAL EXCLUSION LOCK
=============================================================================

Many readers OR one writer. Writers cannot starve: as soon as a writer
announces itself, new readers queue up behind it.

=============================================================================
THE READER-COUNT BIAS
=============================================================================

    reader_count  >= 0   no writer pending, value = active readers
    reader_count  <  0   a writer is pending; value = active - MAX_READERS

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   R R R  (reader_count = 3)                                         │
    │          W arrives: reader_count -= MAX_READERS  → 3 - MAX         │
    │                     reader_wait  += 3                               │
    │                     W parks on writer_sem                           │
    │   R'     arrives:   reader_count += 1 → negative → parks           │
    │   R R R  leave:     each sees a negative count, decrements         │
    │                     reader_wait; the last one wakes W              │
    │          W unlocks: reader_count += MAX_READERS → 1 (R')           │
    │                     releases one reader_sem token per parked R'    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from contextlib import contextmanager
from typing import Iterator

from ..errors import MisuseError
from .atomic import AtomicInt, Semaphore
from .mutex import Locker, Mutex


RWMUTEX_MAX_READERS = 1 << 30


class RWMutex:
    """
    A reader/writer mutual exclusion lock.

    Usage:
        rw = RWMutex()

        with rw.read():
            value = table[key]

        with rw.write():
            table[key] = value
    """

    def __init__(self):
        self._w = Mutex()                     # held if there are pending writers
        self._writer_sem = Semaphore()        # writer waits for readers to finish
        self._reader_sem = Semaphore()        # readers wait for the writer
        self._reader_count = AtomicInt(0)     # number of pending readers
        self._reader_wait = AtomicInt(0)      # readers the writer still waits for

    def rlock(self) -> None:
        """Lock for reading."""
        if self._reader_count.add(1) < 0:
            # A writer is pending, wait for it.
            self._reader_sem.acquire()

    def runlock(self) -> None:
        """
        Undo a single rlock call.

        Raises:
            MisuseError: If the lock is not read-locked.
        """
        r = self._reader_count.add(-1)
        if r < 0:
            if r + 1 == 0 or r + 1 == -RWMUTEX_MAX_READERS:
                self._reader_count.add(1)
                raise MisuseError("sync: runlock of unlocked RWMutex")
            # A writer is pending.
            if self._reader_wait.add(-1) == 0:
                # The last reader unblocks the writer.
                self._writer_sem.release()

    def lock(self) -> None:
        """Lock for writing."""
        # First, resolve competition with other writers.
        self._w.lock()
        # Announce to readers there is a pending writer.
        r = self._reader_count.add(-RWMUTEX_MAX_READERS) + RWMUTEX_MAX_READERS
        # Wait for active readers.
        if r != 0 and self._reader_wait.add(r) != 0:
            self._writer_sem.acquire()

    def unlock(self) -> None:
        """
        Unlock for writing.

        Raises:
            MisuseError: If the lock is not write-locked.
        """
        # Announce to readers there is no active writer.
        r = self._reader_count.add(RWMUTEX_MAX_READERS)
        if r >= RWMUTEX_MAX_READERS:
            self._reader_count.add(-RWMUTEX_MAX_READERS)
            raise MisuseError("sync: unlock of unlocked RWMutex")
        # Unblock blocked readers, if any.
        self._reader_sem.release(r)
        # Allow other writers to proceed.
        self._w.unlock()

    def rlocker(self) -> Locker:
        """Return a Locker whose lock/unlock map to rlock/runlock."""
        return _ReadLocker(self)

    @contextmanager
    def read(self) -> Iterator[None]:
        self.rlock()
        try:
            yield
        finally:
            self.runlock()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.lock()
        try:
            yield
        finally:
            self.unlock()


class _ReadLocker:
    __slots__ = ("_rw",)

    def __init__(self, rw: RWMutex):
        self._rw = rw

    def lock(self) -> None:
        self._rw.rlock()

    def unlock(self) -> None:
        self._rw.runlock()
