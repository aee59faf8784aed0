"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure condition in bufconn is an exception class defined here.
Errors are raised, never returned, and callers catch by class.

=============================================================================
ERROR KINDS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR KINDS                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   PRECONDITION (bad argument or bad read-state)                     │
    │      NegativeCountError, InvalidUnreadByteError,                    │
    │      InvalidUnreadRuneError, ShortBufferError                       │
    │                                                                      │
    │   TRANSIENT BUFFERING (caller decides what to do)                   │
    │      BufferFullError                                                 │
    │                                                                      │
    │   TERMINAL STREAM                                                    │
    │      EndOfStream, UnexpectedEOFError, NoProgressError,              │
    │      ShortWriteError, ClosedPipeError                               │
    │                                                                      │
    │   STICKY HALF-CLOSE (persistent connections)                        │
    │      PersistentEOFError, ClosedByUserError, PipelineError,          │
    │      ClosedConnectionError                                           │
    │                                                                      │
    │   FRAMING                                                            │
    │      FrameError                                                      │
    │                                                                      │
    │   PROGRAMMING ERRORS (fatal, never caught by the library)           │
    │      MisuseError                                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARTIAL SUCCESS
=============================================================================

An operation may move some bytes and THEN fail. The exception carries the
progress so nothing is lost:

    try:
        line = reader.read_bytes(b"\\n")
    except EndOfStream as e:
        line = e.partial        # bytes read before the stream ended

    try:
        read_full(source, buf)
    except UnexpectedEOFError as e:
        filled = e.n            # buf[:e.n] is valid

=============================================================================
"""

from typing import Optional


class StreamError(Exception):
    """
    Base class for bufconn stream errors.

    Attributes:
        n: Number of bytes transferred before the error.
        partial: Bytes returned to the caller before the error.
    """

    default_message = "stream error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        n: int = 0,
        partial: bytes = b"",
    ):
        super().__init__(message or self.default_message)
        self.n = n
        self.partial = partial

    def with_progress(self, n: int = 0, partial: bytes = b"") -> "StreamError":
        """Return a fresh copy of this error carrying the given progress."""
        return type(self)(str(self), n=n, partial=partial)


# =============================================================================
# PRECONDITION ERRORS
# =============================================================================

class NegativeCountError(StreamError, ValueError):
    default_message = "bufio: negative count"


class InvalidUnreadByteError(StreamError):
    default_message = "bufio: invalid use of unread_byte"


class InvalidUnreadRuneError(StreamError):
    default_message = "bufio: invalid use of unread_rune"


class ShortBufferError(StreamError):
    default_message = "short buffer"


# =============================================================================
# BUFFERING
# =============================================================================

class BufferFullError(StreamError):
    """
    The buffered reader cannot satisfy the request within its capacity.

    The caller may retry with a bigger buffer or switch to an
    accumulating variant (read_bytes / read_string).
    """

    default_message = "bufio: buffer full"


# =============================================================================
# TERMINAL STREAM ERRORS
# =============================================================================

class EndOfStream(StreamError, EOFError):
    """Normal end of input. No more bytes will arrive."""

    default_message = "EOF"


class UnexpectedEOFError(StreamError, EOFError):
    """The stream ended in the middle of a fixed-size block or message."""

    default_message = "unexpected EOF"


class NoProgressError(StreamError):
    """The source kept returning no data and no error."""

    default_message = "multiple read calls return no data or error"


class ShortWriteError(StreamError):
    """The sink accepted fewer bytes than offered without raising."""

    default_message = "short write"


class ClosedPipeError(StreamError):
    default_message = "io: read/write on closed pipe"


# =============================================================================
# PERSISTENT CONNECTION ERRORS
# =============================================================================

class ProtocolError(StreamError):
    """Base class for errors reported by persistent connection endpoints."""

    default_message = "protocol error"


class PersistentEOFError(ProtocolError):
    """The remote side gracefully ended the keep-alive message stream."""

    default_message = "persistent connection closed"


class ClosedByUserError(ProtocolError):
    """The local side hijacked or closed the endpoint."""

    default_message = "connection closed by user"


class PipelineError(ProtocolError):
    """A read/write was issued with no matching pipelined counterpart."""

    default_message = "pipeline error"


class ClosedConnectionError(StreamError):
    default_message = "i/o operation on closed connection"


class FrameError(StreamError):
    """A framed message could not be parsed or serialized."""

    default_message = "malformed message frame"


# =============================================================================
# PROGRAMMING ERRORS
# =============================================================================

class MisuseError(RuntimeError):
    """
    Raised on API misuse that indicates a bug in the caller.

    Examples: unlocking an unlocked mutex, a negative wait-group counter,
    a source reporting a negative byte count. These are never retried.
    """


__all__ = [
    "StreamError",
    "NegativeCountError",
    "InvalidUnreadByteError",
    "InvalidUnreadRuneError",
    "ShortBufferError",
    "BufferFullError",
    "EndOfStream",
    "UnexpectedEOFError",
    "NoProgressError",
    "ShortWriteError",
    "ClosedPipeError",
    "ProtocolError",
    "PersistentEOFError",
    "ClosedByUserError",
    "PipelineError",
    "ClosedConnectionError",
    "FrameError",
    "MisuseError",
]
