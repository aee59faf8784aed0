"""
=============================================================================
MUTUAL EXCLUSION LOCK
=============================================================================

A Mutex whose whole state lives in ONE atomic word:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        MUTEX STATE WORD                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │     ... waiter count ...   │ woken │ locked │                        │
    │     bits 2 and up          │ bit 1 │ bit 0  │                        │
    │                                                                      │
    │   locked  - someone holds the mutex                                 │
    │   woken   - a waiter has been released and is about to retry,      │
    │             so unlock() must not wake another one                   │
    │   waiters - threads parked on the backing semaphore                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LOCK / UNLOCK FLOW
=============================================================================

    lock():
        fast path:  CAS 0 → LOCKED                     (uncontended)
        slow path:  loop
                      if unlocked  → set LOCKED, done
                      else         → waiters += 1, park on semaphore
                      after a wake → clear WOKEN on the next CAS

    unlock():
        clear LOCKED (unlocking an unlocked mutex is fatal)
        if waiters > 0 and neither LOCKED nor WOKEN:
            waiters -= 1, set WOKEN, release one semaphore token

A Mutex is not bound to a thread: one thread may lock it and another
unlock it.

=============================================================================
"""

from typing import Protocol, runtime_checkable

from ..errors import MisuseError
from .atomic import AtomicInt, Semaphore


MUTEX_LOCKED = 1
MUTEX_WOKEN = 2
MUTEX_WAITER_SHIFT = 2


@runtime_checkable
class Locker(Protocol):
    """Anything that can be locked and unlocked."""

    def lock(self) -> None:
        ...

    def unlock(self) -> None:
        ...


class Mutex:
    """
    A mutual exclusion lock. The zero state is unlocked.

    Usage:
        mu = Mutex()

        mu.lock()
        try:
            counter += 1
        finally:
            mu.unlock()

        # or
        with mu:
            counter += 1
    """

    __slots__ = ("_state", "_sema")

    def __init__(self):
        self._state = AtomicInt(0)
        self._sema = Semaphore()

    def lock(self) -> None:
        """Lock the mutex, blocking until it is available."""
        # Fast path: grab unlocked mutex.
        if self._state.compare_and_swap(0, MUTEX_LOCKED):
            return

        awoke = False
        while True:
            old = self._state.load()
            new = old | MUTEX_LOCKED
            if old & MUTEX_LOCKED:
                new = old + (1 << MUTEX_WAITER_SHIFT)
            if awoke:
                # This thread was woken from sleep, so we must reset the flag
                # in either case.
                new &= ~MUTEX_WOKEN
            if self._state.compare_and_swap(old, new):
                if old & MUTEX_LOCKED == 0:
                    break
                self._sema.acquire()
                awoke = True

    def unlock(self) -> None:
        """
        Unlock the mutex.

        Raises:
            MisuseError: If the mutex is not locked.
        """
        new = self._state.add(-MUTEX_LOCKED)
        if (new + MUTEX_LOCKED) & MUTEX_LOCKED == 0:
            # Restore so the word stays consistent for a post-mortem.
            self._state.add(MUTEX_LOCKED)
            raise MisuseError("sync: unlock of unlocked mutex")

        old = new
        while True:
            # No waiters, or someone has already been woken or grabbed the lock.
            if old >> MUTEX_WAITER_SHIFT == 0 or old & (MUTEX_LOCKED | MUTEX_WOKEN):
                return
            new = (old - (1 << MUTEX_WAITER_SHIFT)) | MUTEX_WOKEN
            if self._state.compare_and_swap(old, new):
                self._sema.release()
                return
            old = self._state.load()

    def locked(self) -> bool:
        """Return True if the mutex is held (a snapshot, for diagnostics)."""
        return bool(self._state.load() & MUTEX_LOCKED)

    # threading-style aliases so a Mutex can stand in for threading.Lock
    def acquire(self) -> bool:
        self.lock()
        return True

    def release(self) -> None:
        self.unlock()

    def __enter__(self) -> "Mutex":
        self.lock()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unlock()
        return False

    def __repr__(self) -> str:
        state = self._state.load()
        return (
            f"Mutex(locked={bool(state & MUTEX_LOCKED)}, "
            f"waiters={state >> MUTEX_WAITER_SHIFT})"
        )
