"""
=============================================================================
SYNCHRONIZATION PRIMITIVES
=============================================================================

The low-level concurrency toolkit the rest of bufconn is built on.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  Mutex      lock / unlock          one holder at a time             │
    │  RWMutex    rlock / lock           many readers OR one writer       │
    │  Cond       wait / signal          generation-based wakeups         │
    │  Once       do                     run an action exactly once       │
    │  WaitGroup  add / done / wait      wait for N threads to finish     │
    └─────────────────────────────────────────────────────────────────────┘

Every primitive parks threads on a counting Semaphore and keeps its
bookkeeping in AtomicInt words (see atomic.py).
"""

from .atomic import AtomicInt, Semaphore
from .mutex import Locker, Mutex
from .rwmutex import RWMutex, RWMUTEX_MAX_READERS
from .cond import Cond
from .once import Once
from .waitgroup import WaitGroup

__all__ = [
    "AtomicInt",
    "Semaphore",
    "Locker",
    "Mutex",
    "RWMutex",
    "RWMUTEX_MAX_READERS",
    "Cond",
    "Once",
    "WaitGroup",
]
