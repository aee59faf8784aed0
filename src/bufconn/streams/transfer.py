"""
=============================================================================
COPY AND FULL-READ HELPERS
=============================================================================

    copy(dst, src)              move everything; end of stream is success
    copy_buffer(dst, src, buf)  same, with a caller-provided scratch buffer
    copy_n(dst, src, n)         move exactly n bytes or raise EndOfStream
    read_at_least(r, b, min)    fill b with at least min bytes
    read_full(r, b)             fill all of b
    write_string(w, s)          write a str, using w.write_string if present

=============================================================================
FAST PATHS
=============================================================================

copy() never allocates a scratch buffer when one side can do better:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   src has write_to(dst)?   → src.write_to(dst)                      │
    │          │ no                                                        │
    │          ▼                                                           │
    │   dst has read_from(src)?  → dst.read_from(src)                     │
    │          │ no                                                        │
    │          ▼                                                           │
    │   loop: readinto(scratch) → write(scratch[:n])                      │
    │         short write → ShortWriteError                               │
    │         end of stream → return total                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from typing import Optional

from ..config import DEFAULT_COPY_BUFFER_SIZE, MAX_CONSECUTIVE_EMPTY_READS
from ..errors import (
    EndOfStream,
    NoProgressError,
    ShortBufferError,
    ShortWriteError,
    StreamError,
    UnexpectedEOFError,
)
from .interfaces import (
    Buffer,
    Reader,
    ReaderFrom,
    StringWriter,
    Writer,
    WriterTo,
    read_some,
    write_full,
    write_some,
)
from .readers import LimitedReader


def copy(dst: Writer, src: Reader) -> int:
    """
    Copy from src to dst until end of stream or an error.

    Returns:
        Number of bytes copied. Reaching the end of src is success.

    Raises:
        ShortWriteError: If dst accepted fewer bytes than offered.
        NoProgressError: If src keeps returning empty reads.
    """
    return copy_buffer(dst, src, None)


def copy_buffer(dst: Writer, src: Reader, buf: Optional[Buffer]) -> int:
    """
    Like copy(), but stages through buf instead of a fresh scratch buffer.

    buf is ignored when a write_to / read_from fast path applies.

    Raises:
        ValueError: If buf is empty.
    """
    if buf is not None and len(buf) == 0:
        raise ValueError("empty buffer in copy_buffer")

    # If the reader has a write_to method, use it to do the copy.
    # Avoids an allocation and a copy.
    if isinstance(src, WriterTo):
        return src.write_to(dst)
    # Similarly, if the writer has a read_from method, use it to do the copy.
    if isinstance(dst, ReaderFrom):
        return dst.read_from(src)

    if buf is None:
        buf = bytearray(DEFAULT_COPY_BUFFER_SIZE)
    view = memoryview(buf)

    written = 0
    empty_reads = 0
    while True:
        try:
            nr = read_some(src, view)
        except StreamError as e:
            raise e.with_progress(n=written, partial=e.partial)
        if nr is None:
            empty_reads += 1
            if empty_reads >= MAX_CONSECUTIVE_EMPTY_READS:
                raise NoProgressError(n=written)
            continue
        if nr == 0:
            return written
        empty_reads = 0

        try:
            nw = write_some(dst, view[:nr])
        except StreamError as e:
            raise e.with_progress(n=written + e.n, partial=e.partial)
        written += nw
        if nw != nr:
            raise ShortWriteError(n=written)


def copy_n(dst: Writer, src: Reader, n: int) -> int:
    """
    Copy exactly n bytes from src to dst.

    Returns:
        n, when src had at least n bytes.

    Raises:
        EndOfStream: If src ended early; .n holds the bytes copied.
    """
    written = copy(dst, LimitedReader(src, n))
    if written < n:
        raise EndOfStream(n=written)
    return written


def read_at_least(r: Reader, b: Buffer, min: int) -> int:
    """
    Read from r into b until at least min bytes are in.

    Returns:
        Number of bytes stored in b (>= min).

    Raises:
        ShortBufferError: If min > len(b).
        EndOfStream: If the stream ended before any byte was read.
        UnexpectedEOFError: If the stream ended after k < min bytes; .n == k.
    """
    if len(b) < min:
        raise ShortBufferError()

    view = memoryview(b)
    n = 0
    empty_reads = 0
    while n < min:
        nn = read_some(r, view[n:])
        if nn is None:
            empty_reads += 1
            if empty_reads >= MAX_CONSECUTIVE_EMPTY_READS:
                raise NoProgressError(n=n)
            continue
        if nn == 0:
            break
        empty_reads = 0
        n += nn

    if n >= min:
        return n
    if n == 0:
        raise EndOfStream()
    raise UnexpectedEOFError(n=n)


def read_full(r: Reader, b: Buffer) -> int:
    """
    Read exactly len(b) bytes from r into b.

    Same errors as read_at_least(r, b, len(b)).
    """
    return read_at_least(r, b, len(b))


def write_string(w: Writer, s: str) -> int:
    """Write the UTF-8 encoding of s to w; returns bytes written."""
    if isinstance(w, StringWriter):
        return w.write_string(s)
    return write_full(w, s.encode("utf-8"))
