"""
=============================================================================
PIPELINE SEQUENCING
=============================================================================

A Pipeline manages a pipelined in-order request/response sequence on a
single connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   id = pipe.next()                                                   │
    │                                                                      │
    │   pipe.start_request(id)    ← waits until requests 0..id-1 sent     │
    │   ... send request ...                                               │
    │   pipe.end_request(id)      → lets request id+1 go                  │
    │                                                                      │
    │   pipe.start_response(id)   ← waits until responses 0..id-1 read    │
    │   ... read response ...                                              │
    │   pipe.end_response(id)     → lets response id+1 go                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The request side and the response side advance independently, so a
writer thread can be several requests ahead of a reader thread while both
keep FIFO order.

=============================================================================
"""

import logging

from ..errors import MisuseError
from ..sync import Cond, Mutex


logger = logging.getLogger(__name__)


class Sequencer:
    """
    Schedules a sequence of numbered events that must happen in order,
    one after the other.

    A call to start(id) blocks until all the events before id have ended.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._mu = Mutex()
        self._turn = Cond(self._mu)
        self._id = 0

    def start(self, id: int) -> None:
        """Wait until it is time for the event numbered id to begin."""
        with self._mu:
            if self._id != id:
                logger.debug(f"sequencer {self.name}: {id} waits for {self._id}")
            while self._id != id:
                self._turn.wait()

    def end(self, id: int) -> None:
        """
        Notify that the event numbered id has completed.

        Raises:
            MisuseError: If id is not the event currently in progress.
        """
        with self._mu:
            if self._id != id:
                raise MisuseError(f"sequencer {self.name}: end({id}) out of sync, current is {self._id}")
            self._id = id + 1
            self._turn.broadcast()

    @property
    def current(self) -> int:
        """The id of the event allowed to run now."""
        with self._mu:
            return self._id


class Pipeline:
    """Allocates pipeline ids and orders the request and response phases."""

    def __init__(self):
        self._mu = Mutex()
        self._id = 0
        self.request = Sequencer("request")
        self.response = Sequencer("response")

    def next(self) -> int:
        """Return the next id for a request/response pair."""
        with self._mu:
            id = self._id
            self._id += 1
            return id

    def start_request(self, id: int) -> None:
        """Block until the given id can start its request."""
        self.request.start(id)

    def end_request(self, id: int) -> None:
        """Notify that the request with the given id has been sent."""
        self.request.end(id)

    def start_response(self, id: int) -> None:
        """Block until the given id can start its response."""
        self.response.start(id)

    def end_response(self, id: int) -> None:
        """Notify that the response with the given id has been received."""
        self.response.end(id)
