"""
=============================================================================
COMPOSABLE READER AND WRITER ADAPTERS
=============================================================================

Small wrappers that change what a stream looks like without copying it:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  LimitedReader(r, n)        at most n bytes from r, then EOF        │
    │  SectionReader(r, off, n)   a window [off, off+n) of a ReaderAt     │
    │  TeeReader(r, w)            everything read from r is written to w  │
    │  MultiReader(r1, r2, ...)   r1 then r2 then ...                     │
    │  MultiWriter(w1, w2, ...)   every write goes to all of them         │
    │  discard                    a Writer that accepts and drops bytes   │
    │  NopCloser(r)               r with a no-op close()                  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from typing import Optional

from ..config import MAX_CONSECUTIVE_EMPTY_READS
from ..errors import MisuseError, NoProgressError, ShortWriteError
from .interfaces import (
    SEEK_CUR,
    SEEK_END,
    SEEK_SET,
    Buffer,
    BytesLike,
    Reader,
    ReaderAt,
    StringWriter,
    Writer,
    read_some,
    write_full,
    write_some,
)


class LimitedReader:
    """
    Reads from r but limits the amount of data returned to n bytes.

    Each call to readinto updates n to reflect the new amount remaining.
    Once n <= 0 every read reports end of stream.
    """

    def __init__(self, r: Reader, n: int):
        self.r = r
        self.n = n

    def readinto(self, b: Buffer) -> Optional[int]:
        if self.n <= 0:
            return 0
        if len(b) > self.n:
            b = memoryview(b)[: self.n]
        nr = read_some(self.r, b)
        if nr:
            self.n -= nr
        return nr


def limit_reader(r: Reader, n: int) -> LimitedReader:
    return LimitedReader(r, n)


class SectionReader:
    """
    Read, seek and read_at on a section of an underlying ReaderAt.

    The section starts at offset off and is n bytes long. Offsets given to
    seek() and read_at() are relative to the start of the section.
    """

    def __init__(self, r: ReaderAt, off: int, n: int):
        self._r = r
        self._base = off
        self._off = off
        self._limit = off + n

    def readinto(self, b: Buffer) -> int:
        if self._off >= self._limit:
            return 0
        remaining = self._limit - self._off
        if len(b) > remaining:
            b = memoryview(b)[:remaining]
        n = self._checked_read_at(b, self._off)
        self._off += n
        return n

    def _checked_read_at(self, b: Buffer, off: int) -> int:
        n = self._r.read_at(b, off)
        if n < 0 or n > len(b):
            raise MisuseError(f"reader returned invalid count {n} from read_at")
        return n

    def seek(self, offset: int, whence: int = SEEK_SET) -> int:
        """
        Set the offset for the next readinto.

        Raises:
            ValueError: For an unknown whence or an offset before the section.
        """
        if whence == SEEK_SET:
            offset += self._base
        elif whence == SEEK_CUR:
            offset += self._off
        elif whence == SEEK_END:
            offset += self._limit
        else:
            raise ValueError("seek: invalid whence")
        if offset < self._base:
            raise ValueError("seek: invalid offset")
        self._off = offset
        return offset - self._base

    def read_at(self, b: Buffer, off: int) -> int:
        """
        Read at section-relative offset off without moving the cursor.

        Reads are clipped to the section; 0 means off is at or past its end.
        """
        if off < 0 or off >= self.size():
            return 0
        off += self._base
        remaining = self._limit - off
        if len(b) > remaining:
            b = memoryview(b)[:remaining]
        return self._checked_read_at(b, off)

    def size(self) -> int:
        """Size of the section in bytes."""
        return self._limit - self._base


class TeeReader:
    """
    A Reader that writes to w what it reads from r.

    All reads from r are mirrored to w before being returned. A failed or
    short write to w is raised from readinto.
    """

    def __init__(self, r: Reader, w: Writer):
        self._r = r
        self._w = w

    def readinto(self, b: Buffer) -> Optional[int]:
        n = read_some(self._r, b)
        if n:
            write_full(self._w, memoryview(b)[:n])
        return n


def tee_reader(r: Reader, w: Writer) -> TeeReader:
    return TeeReader(r, w)


class MultiReader:
    """
    The logical concatenation of several readers, read sequentially.

    End of stream is reported once all of them are exhausted. Any other
    error from the current reader is raised.
    """

    def __init__(self, *readers: Reader):
        self._readers = list(readers)

    def readinto(self, b: Buffer) -> Optional[int]:
        if len(b) == 0:
            return 0
        while self._readers:
            # Flatten a nested MultiReader in last position.
            if len(self._readers) == 1 and isinstance(self._readers[0], MultiReader):
                self._readers = self._readers[0]._readers
                continue
            n = read_some(self._readers[0], b)
            if n != 0:
                # Data, or an empty read: either way the current reader
                # is not done yet.
                return n
            self._readers.pop(0)
        return 0


def multi_reader(*readers: Reader) -> MultiReader:
    return MultiReader(*readers)


class MultiWriter:
    """
    Duplicates each write to all the writers, like the Unix tee(1) command.

    The first failing writer aborts the write; a short write raises
    ShortWriteError.
    """

    def __init__(self, *writers: Writer):
        self._writers = list(writers)

    def write(self, b: BytesLike) -> int:
        for w in self._writers:
            write_full(w, b)
        return len(b)

    def write_string(self, s: str) -> int:
        p = s.encode("utf-8")
        for w in self._writers:
            if isinstance(w, StringWriter):
                n = w.write_string(s)
            else:
                n = write_some(w, p)
            if n != len(p):
                raise ShortWriteError(n=n)
        return len(p)


def multi_writer(*writers: Writer) -> MultiWriter:
    return MultiWriter(*writers)


class _Discard:
    """A Writer on which all writes succeed without doing anything."""

    _SCRATCH_SIZE = 8192

    def write(self, b: BytesLike) -> int:
        return len(b)

    def write_string(self, s: str) -> int:
        return len(s.encode("utf-8"))

    def read_from(self, src: Reader) -> int:
        scratch = memoryview(bytearray(self._SCRATCH_SIZE))
        total = 0
        empty_reads = 0
        while True:
            n = read_some(src, scratch)
            if n is None:
                empty_reads += 1
                if empty_reads >= MAX_CONSECUTIVE_EMPTY_READS:
                    raise NoProgressError(n=total)
                continue
            if n == 0:
                return total
            empty_reads = 0
            total += n

    def __repr__(self) -> str:
        return "discard"


discard = _Discard()


class NopCloser:
    """Wrap a Reader with a close() that does nothing."""

    def __init__(self, r: Reader):
        self._r = r

    def readinto(self, b: Buffer) -> Optional[int]:
        return read_some(self._r, b)

    def close(self) -> None:
        pass
