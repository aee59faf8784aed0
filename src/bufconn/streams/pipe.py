"""
=============================================================================
SYNCHRONOUS IN-MEMORY PIPE
=============================================================================

pipe() connects code expecting a Reader with code expecting a Writer.
There is no internal buffering: each write blocks until readers have
consumed all of its bytes, so one write may be handed out across several
reads.

    ┌──────────────┐    write(b)     ┌───────────┐    readinto(p)   ┌──────────────┐
    │  producer    │ ──────────────► │   _Pipe   │ ───────────────► │  consumer    │
    │ (PipeWriter) │ ◄── returns ─── │  data ─┐  │                  │ (PipeReader) │
    └──────────────┘  when drained   └────────┴──┘                  └──────────────┘

Closing one half wakes the other:

    writer.close()                 reads drain, then report end of stream
    writer.close_with_error(e)     reads drain, then raise e
    reader.close()                 writes raise ClosedPipeError
    reader.close_with_error(e)     writes raise e

duplex_pipe() joins two pipes into a pair of connected PipeStream ends,
an in-memory stand-in for a socket pair.

=============================================================================
"""

import logging
from typing import Optional

from ..errors import ClosedPipeError, StreamError
from ..sync import Cond, Mutex
from .interfaces import Buffer, BytesLike


logger = logging.getLogger(__name__)


class _Pipe:
    """Shared state of both pipe halves."""

    def __init__(self):
        self._rl = Mutex()          # gates readers one at a time
        self._wl = Mutex()          # gates writers one at a time
        self._l = Mutex()           # protects the fields below
        self._data: Optional[memoryview] = None  # rest of the pending write
        self._rwait = Cond(self._l)  # waiting reader
        self._wwait = Cond(self._l)  # waiting writer
        self._rerr: Optional[BaseException] = None  # reader closed: given to writes
        self._werr: Optional[BaseException] = None  # writer closed: given to reads
        self._wclosed = False

    def read(self, b: Buffer) -> int:
        with self._rl, self._l:
            while True:
                if self._rerr is not None:
                    raise ClosedPipeError()
                if self._data is not None:
                    break
                if self._wclosed:
                    if self._werr is None:
                        return 0
                    raise self._werr.with_traceback(None)
                self._rwait.wait()

            n = min(len(b), len(self._data))
            b[:n] = self._data[:n]
            self._data = self._data[n:]
            if len(self._data) == 0:
                self._data = None
                self._wwait.signal()
            return n

    def write(self, b: BytesLike) -> int:
        if len(b) == 0:
            return 0
        with self._wl, self._l:
            if self._wclosed:
                raise ClosedPipeError()
            view = memoryview(b)
            self._data = view
            self._rwait.signal()
            err: Optional[BaseException] = None
            while True:
                if self._data is None:
                    break
                if self._rerr is not None:
                    err = self._rerr
                    break
                if self._wclosed:
                    err = ClosedPipeError()
                    break
                self._wwait.wait()
            n = len(view) - (len(self._data) if self._data is not None else 0)
            self._data = None  # in case of rerr or wclosed
        if err is not None:
            if isinstance(err, StreamError):
                raise err.with_progress(n=n)
            raise err.with_traceback(None)
        return n

    def close_read(self, err: Optional[BaseException]) -> None:
        with self._l:
            self._rerr = err if err is not None else ClosedPipeError()
            self._rwait.signal()
            self._wwait.signal()
        logger.debug(f"pipe: read half closed ({self._rerr!r})")

    def close_write(self, err: Optional[BaseException]) -> None:
        with self._l:
            self._wclosed = True
            self._werr = err
            self._rwait.signal()
            self._wwait.signal()
        logger.debug(f"pipe: write half closed ({err!r})")


class PipeReader:
    """The read half of a pipe."""

    def __init__(self, p: _Pipe):
        self._p = p

    def readinto(self, b: Buffer) -> int:
        """
        Read data from the pipe, blocking until a writer arrives or the
        write half is closed.

        Raises:
            ClosedPipeError: If this half was closed.
            Exception: The error passed to the writer's close_with_error().
        """
        return self._p.read(b)

    def close(self) -> None:
        """Close the reader; subsequent writes raise ClosedPipeError."""
        self._p.close_read(None)

    def close_with_error(self, err: Optional[BaseException]) -> None:
        """Close the reader; subsequent writes raise err."""
        self._p.close_read(err)


class PipeWriter:
    """The write half of a pipe."""

    def __init__(self, p: _Pipe):
        self._p = p

    def write(self, b: BytesLike) -> int:
        """
        Write b to the pipe, blocking until one or more readers have
        consumed all of it or the read half is closed.
        """
        return self._p.write(b)

    def close(self) -> None:
        """Close the writer; reads drain and then report end of stream."""
        self._p.close_write(None)

    def close_with_error(self, err: Optional[BaseException]) -> None:
        """Close the writer; reads drain and then raise err (None means end of stream)."""
        self._p.close_write(err)


def pipe() -> tuple[PipeReader, PipeWriter]:
    """Create a synchronous in-memory pipe."""
    p = _Pipe()
    return PipeReader(p), PipeWriter(p)


class PipeStream:
    """
    One end of a duplex in-memory connection.

    Reads come from the peer's writes and writes go to the peer's reads.
    """

    def __init__(self, reader: PipeReader, writer: PipeWriter, name: str = ""):
        self._reader = reader
        self._writer = writer
        self.name = name

    def readinto(self, b: Buffer) -> int:
        return self._reader.readinto(b)

    def write(self, b: BytesLike) -> int:
        return self._writer.write(b)

    def close_write(self) -> None:
        """Half-close: the peer reads end of stream once it drains."""
        self._writer.close()

    def close(self) -> None:
        self._writer.close()
        self._reader.close()

    def __repr__(self) -> str:
        return f"PipeStream({self.name!r})"


def duplex_pipe() -> tuple[PipeStream, PipeStream]:
    """Create two connected PipeStream ends."""
    r1, w1 = pipe()
    r2, w2 = pipe()
    return PipeStream(r1, w2, "a"), PipeStream(r2, w1, "b")
