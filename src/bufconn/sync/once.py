"""
One-shot action guard.

Once.do(action) runs action at most once for the lifetime of the Once,
no matter how many threads call it concurrently. Every caller returns only
after the one running action has finished, so side effects of action are
visible to all of them.

Flag policy: the done flag is set when action RETURNS, whether it returned
normally or raised. The exception propagates to the caller that ran it;
later do() calls are no-ops. This keeps a failing initializer from being
retried (and failing) on every call.
"""

from typing import Callable

from .atomic import AtomicInt
from .mutex import Mutex


class Once:
    """
    Performs exactly one action.

    Usage:
        once = Once()

        def setup():
            ...

        once.do(setup)   # runs setup
        once.do(setup)   # no-op
    """

    __slots__ = ("_m", "_done")

    def __init__(self):
        self._m = Mutex()
        self._done = AtomicInt(0)

    def do(self, action: Callable[[], object]) -> None:
        if self._done.load() == 1:
            return
        # Slow path.
        self._m.lock()
        try:
            if self._done.load() == 0:
                try:
                    action()
                finally:
                    self._done.store(1)
        finally:
            self._m.unlock()

    @property
    def done(self) -> bool:
        return self._done.load() == 1
