"""
=============================================================================
WAIT GROUP
=============================================================================

Waits for a collection of threads to finish.

=============================================================================
PACKED STATE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         64-bit state                                 │
    ├──────────────────────────────────┬──────────────────────────────────┤
    │   counter (signed, high 32 bits) │  waiters (unsigned, low 32 bits) │
    └──────────────────────────────────┴──────────────────────────────────┘

    add(delta):  state += delta << 32
                 counter < 0                 → fatal
                 counter > 0 or waiters == 0 → return
                 otherwise                   → state = 0, wake every waiter

    wait():      counter == 0                → return immediately
                 otherwise CAS waiters += 1, park on the semaphore
                 on wake, state must be 0 (else the group was reused early)

=============================================================================
USAGE
=============================================================================

    wg = WaitGroup()

    for job in jobs:
        wg.add(1)
        threading.Thread(target=run, args=(job, wg)).start()

    wg.wait()          # returns once every run() called wg.done()

=============================================================================
"""

from ..errors import MisuseError
from .atomic import AtomicInt, Semaphore


_WAITER_MASK = 0xFFFFFFFF


def _unpack(state: int) -> tuple[int, int]:
    """Split a packed state into (counter, waiters)."""
    return state >> 32, state & _WAITER_MASK


class WaitGroup:
    """Counting barrier: wait() blocks until the counter drops to zero."""

    __slots__ = ("_state", "_sema")

    def __init__(self):
        self._state = AtomicInt(0)
        self._sema = Semaphore()

    def add(self, delta: int) -> None:
        """
        Add delta (may be negative) to the counter.

        Raises:
            MisuseError: If the counter goes negative, or a positive add
                races with a wait() that is about to return.
        """
        state = self._state.add(delta << 32)
        v, w = _unpack(state)
        if v < 0:
            raise MisuseError("sync: negative WaitGroup counter")
        if w != 0 and delta > 0 and v == delta:
            raise MisuseError("sync: WaitGroup misuse: add called concurrently with wait")
        if v > 0 or w == 0:
            return
        # Counter is 0 and there are waiters. Nothing may change the state
        # now: adds must not run concurrently with wait, and wait does not
        # increment waiters once it has seen a zero counter.
        if not self._state.compare_and_swap(state, 0):
            raise MisuseError("sync: WaitGroup misuse: add called concurrently with wait")
        self._sema.release(w)

    def done(self) -> None:
        """Decrement the counter by one."""
        self.add(-1)

    def wait(self) -> None:
        """Block until the counter is zero."""
        while True:
            state = self._state.load()
            v, _ = _unpack(state)
            if v == 0:
                return
            # Increment waiters count.
            if self._state.compare_and_swap(state, state + 1):
                self._sema.acquire()
                if self._state.load() != 0:
                    raise MisuseError(
                        "sync: WaitGroup is reused before previous wait has returned"
                    )
                return

    @property
    def counter(self) -> int:
        """Current counter value (a snapshot, for diagnostics)."""
        return _unpack(self._state.load())[0]
