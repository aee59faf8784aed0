"""
=============================================================================
BYTE-STREAM CAPABILITY INTERFACES
=============================================================================

Each capability is a tiny Protocol with one or two methods. Combinators
ask for the smallest set they need, and probe for optional fast paths
(write_to / read_from) at runtime.

=============================================================================
THE READ / WRITE CONTRACT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  Reader.readinto(b) -> int | None                                   │
    │  ─────────────────────────────────────────────────────────────────  │
    │     n > 0     n bytes were stored in b[:n]                          │
    │     0         end of stream (for a non-empty b)                     │
    │     None      no bytes available right now (an "empty read")       │
    │     raises    any other failure                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │  Writer.write(b) -> int | None                                      │
    │  ─────────────────────────────────────────────────────────────────  │
    │     n == len(b)   everything was accepted                           │
    │     n <  len(b)   short write (callers raise ShortWriteError)       │
    │     None          treated as 0                                      │
    │     raises        any other failure                                 │
    └─────────────────────────────────────────────────────────────────────┘

This is the same contract as io.RawIOBase, so io.BytesIO, files and
socket wrappers plug straight in.

=============================================================================
"""

from typing import Optional, Protocol, Union, runtime_checkable

from ..errors import MisuseError, ShortWriteError


SEEK_SET = 0  # seek relative to the origin of the stream
SEEK_CUR = 1  # seek relative to the current offset
SEEK_END = 2  # seek relative to the end

Buffer = Union[bytearray, memoryview]
BytesLike = Union[bytes, bytearray, memoryview]


# =============================================================================
# SINGLE CAPABILITIES
# =============================================================================

@runtime_checkable
class Reader(Protocol):
    def readinto(self, b: Buffer) -> Optional[int]:
        ...


@runtime_checkable
class Writer(Protocol):
    def write(self, b: BytesLike) -> Optional[int]:
        ...


@runtime_checkable
class Closer(Protocol):
    def close(self) -> None:
        ...


@runtime_checkable
class Seeker(Protocol):
    def seek(self, offset: int, whence: int = SEEK_SET) -> int:
        ...


@runtime_checkable
class ReaderAt(Protocol):
    def read_at(self, b: Buffer, off: int) -> int:
        """Read into b starting at absolute offset off; a short count means the data ended."""
        ...


@runtime_checkable
class WriterAt(Protocol):
    def write_at(self, b: BytesLike, off: int) -> int:
        ...


@runtime_checkable
class ReaderFrom(Protocol):
    def read_from(self, src: Reader) -> int:
        """Read from src until end of stream; return the number of bytes read."""
        ...


@runtime_checkable
class WriterTo(Protocol):
    def write_to(self, dst: Writer) -> int:
        """Write everything to dst; return the number of bytes written."""
        ...


@runtime_checkable
class ByteReader(Protocol):
    def read_byte(self) -> int:
        ...


@runtime_checkable
class ByteScanner(ByteReader, Protocol):
    def unread_byte(self) -> None:
        ...


@runtime_checkable
class ByteWriter(Protocol):
    def write_byte(self, c: int) -> None:
        ...


@runtime_checkable
class RuneReader(Protocol):
    def read_rune(self) -> tuple[str, int]:
        ...


@runtime_checkable
class RuneScanner(RuneReader, Protocol):
    def unread_rune(self) -> None:
        ...


@runtime_checkable
class StringWriter(Protocol):
    def write_string(self, s: str) -> int:
        ...


# =============================================================================
# COMPOSITES
# =============================================================================

@runtime_checkable
class ReadWriter(Reader, Writer, Protocol):
    pass


@runtime_checkable
class ReadCloser(Reader, Closer, Protocol):
    pass


@runtime_checkable
class WriteCloser(Writer, Closer, Protocol):
    pass


@runtime_checkable
class ReadWriteCloser(Reader, Writer, Closer, Protocol):
    pass


@runtime_checkable
class ReadSeeker(Reader, Seeker, Protocol):
    pass


# =============================================================================
# CONTRACT HELPERS
# =============================================================================

def read_some(r: Reader, b: Buffer) -> Optional[int]:
    """
    Call r.readinto(b) and check the result against the contract.

    Raises:
        MisuseError: If the reader reports a count outside 0..len(b).
    """
    n = r.readinto(b)
    if n is None:
        return None
    if n < 0 or n > len(b):
        raise MisuseError(f"reader returned invalid count {n} from readinto")
    return n


def write_some(w: Writer, b: BytesLike) -> int:
    """Call w.write(b); None counts as zero bytes."""
    n = w.write(b)
    if n is None:
        return 0
    if n < 0 or n > len(b):
        raise MisuseError(f"writer returned invalid count {n} from write")
    return n


def write_full(w: Writer, b: BytesLike) -> int:
    """
    Write all of b, treating a short count as an error.

    Raises:
        ShortWriteError: If w accepted fewer bytes without raising.
    """
    n = write_some(w, b)
    if n < len(b):
        raise ShortWriteError(n=n)
    return n
