"""
=============================================================================
CONDITION VARIABLE
=============================================================================

A rendezvous point for threads waiting for, or announcing, an event.

=============================================================================
WHY TWO GENERATIONS?
=============================================================================

A naive condition variable keeps one counter and one semaphore. A token
released by signal() can then be grabbed by a thread that started waiting
AFTER the signal, while a thread that was already waiting keeps sleeping:
a lost wakeup.

Waiters are therefore split into cohorts:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   new generation   ← wait() always joins here                       │
    │   old generation   ← signal() only ever wakes from here             │
    │                                                                      │
    │   signal():                                                          │
    │     if old is empty and new is not:   old ← new,  new ← empty      │
    │     if old has waiters:               old.waiters -= 1             │
    │                                       release 1 token on old.sema  │
    │                                                                      │
    │   broadcast():                                                       │
    │     release old.waiters tokens on old.sema                          │
    │     release new.waiters tokens on new.sema                          │
    │     clear both                                                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Each generation has its OWN semaphore, so a token released for the old
generation can only be consumed by a thread that was waiting when the
signal happened.

The internal mutex protects only this bookkeeping, never the caller's
critical section (that is what the bound Locker is for).

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .atomic import Semaphore
from .mutex import Locker, Mutex


@dataclass
class _Generation:
    waiters: int = 0
    sema: Optional[Semaphore] = None


class Cond:
    """
    Condition variable bound to a Locker.

    The locker must be held when calling wait(). signal() and broadcast()
    may be called with or without it.

    Usage:
        mu = Mutex()
        ready = Cond(mu)

        # waiter
        mu.lock()
        while not condition():
            ready.wait()
        ...
        mu.unlock()

        # notifier
        mu.lock()
        make_condition_true()
        ready.signal()
        mu.unlock()
    """

    def __init__(self, locker: Locker):
        self.locker = locker
        self._m = Mutex()
        self._old = _Generation()
        self._new = _Generation()

    def wait(self) -> None:
        """
        Atomically unlock the locker and suspend; re-lock it before returning.

        Wait cannot return unless awoken by signal() or broadcast(), so
        callers loop on their condition.
        """
        self._m.lock()
        if self._new.sema is None:
            self._new.sema = Semaphore()
        self._new.waiters += 1
        sema = self._new.sema
        self._m.unlock()

        self.locker.unlock()
        sema.acquire()
        self.locker.lock()

    def wait_for(self, predicate: Callable[[], bool]) -> None:
        """Wait until predicate() is true. The locker must be held."""
        while not predicate():
            self.wait()

    def signal(self) -> None:
        """Wake one thread that was waiting at the time of the call."""
        self._m.lock()
        try:
            if self._old.waiters == 0 and self._new.waiters > 0:
                self._old = self._new
                self._new = _Generation()
            if self._old.waiters > 0:
                self._old.waiters -= 1
                self._old.sema.release()
        finally:
            self._m.unlock()

    def broadcast(self) -> None:
        """Wake all threads currently waiting."""
        self._m.lock()
        try:
            if self._old.waiters > 0:
                self._old.sema.release(self._old.waiters)
                self._old = _Generation()
            if self._new.waiters > 0:
                self._new.sema.release(self._new.waiters)
                self._new = _Generation()
        finally:
            self._m.unlock()

    def waiting(self) -> int:
        """Number of threads currently blocked in wait() (diagnostic)."""
        self._m.lock()
        try:
            return self._old.waiters + self._new.waiters
        finally:
            self._m.unlock()
