"""
In-memory byte streams.

BytesReader is a read-only, seekable view over a bytes value. BytesBuffer
is a growable FIFO of bytes: writes append at the end, reads consume from
the front.
"""

from typing import Optional

from ..config import MAX_CONSECUTIVE_EMPTY_READS
from ..errors import (
    EndOfStream,
    InvalidUnreadByteError,
    InvalidUnreadRuneError,
    NoProgressError,
    ShortWriteError,
)
from .interfaces import (
    SEEK_CUR,
    SEEK_END,
    SEEK_SET,
    Buffer,
    BytesLike,
    Reader,
    Writer,
    read_some,
    write_some,
)
from .utf8 import RUNE_SELF, UTF_MAX, decode_rune, encode_rune


class BytesReader:
    """
    Reads from a bytes value.

    Implements readinto, read_at, seek, read_byte / unread_byte,
    read_rune / unread_rune and write_to. Unlike BytesBuffer it is
    read-only and supports seeking.
    """

    def __init__(self, data: BytesLike = b""):
        self._s = bytes(data)
        self._i = 0
        self._prev_rune = -1  # index of the previous rune, or < 0

    def __len__(self) -> int:
        """Number of bytes of the unread portion."""
        if self._i >= len(self._s):
            return 0
        return len(self._s) - self._i

    def size(self) -> int:
        """Original length of the underlying bytes; unaffected by reads."""
        return len(self._s)

    def readinto(self, b: Buffer) -> int:
        if self._i >= len(self._s):
            return 0
        self._prev_rune = -1
        n = min(len(b), len(self._s) - self._i)
        b[:n] = self._s[self._i:self._i + n]
        self._i += n
        return n

    def read_at(self, b: Buffer, off: int) -> int:
        if off < 0:
            raise ValueError("BytesReader.read_at: negative offset")
        if off >= len(self._s):
            return 0
        n = min(len(b), len(self._s) - off)
        b[:n] = self._s[off:off + n]
        return n

    def read_byte(self) -> int:
        self._prev_rune = -1
        if self._i >= len(self._s):
            raise EndOfStream()
        c = self._s[self._i]
        self._i += 1
        return c

    def unread_byte(self) -> None:
        if self._i <= 0:
            raise InvalidUnreadByteError("BytesReader.unread_byte: at beginning of data")
        self._prev_rune = -1
        self._i -= 1

    def read_rune(self) -> tuple[str, int]:
        if self._i >= len(self._s):
            self._prev_rune = -1
            raise EndOfStream()
        self._prev_rune = self._i
        c = self._s[self._i]
        if c < RUNE_SELF:
            self._i += 1
            return chr(c), 1
        ch, size = decode_rune(self._s[self._i:self._i + UTF_MAX])
        self._i += size
        return ch, size

    def unread_rune(self) -> None:
        if self._i <= 0:
            raise InvalidUnreadRuneError("BytesReader.unread_rune: at beginning of data")
        if self._prev_rune < 0:
            raise InvalidUnreadRuneError("BytesReader.unread_rune: previous operation was not read_rune")
        self._i = self._prev_rune
        self._prev_rune = -1

    def seek(self, offset: int, whence: int = SEEK_SET) -> int:
        self._prev_rune = -1
        if whence == SEEK_SET:
            pos = offset
        elif whence == SEEK_CUR:
            pos = self._i + offset
        elif whence == SEEK_END:
            pos = len(self._s) + offset
        else:
            raise ValueError("BytesReader.seek: invalid whence")
        if pos < 0:
            raise ValueError("BytesReader.seek: negative position")
        self._i = pos
        return pos

    def write_to(self, dst: Writer) -> int:
        self._prev_rune = -1
        if self._i >= len(self._s):
            return 0
        rest = memoryview(self._s)[self._i:]
        m = write_some(dst, rest)
        self._i += m
        if m != len(rest):
            raise ShortWriteError(n=m)
        return m

    def reset(self, data: BytesLike) -> None:
        """Start reading from data, discarding any current state."""
        self._s = bytes(data)
        self._i = 0
        self._prev_rune = -1


class BytesBuffer:
    """
    A variable-sized buffer of bytes with readinto and write methods.

    The zero value (BytesBuffer()) is an empty buffer ready to use.
    Reading an empty buffer reports end of stream.
    """

    _MIN_READ = 512

    def __init__(self, initial: BytesLike = b""):
        self._buf = bytearray(initial)
        self._off = 0

    def __len__(self) -> int:
        """Number of unread bytes."""
        return len(self._buf) - self._off

    def getvalue(self) -> bytes:
        """The unread portion of the buffer."""
        return bytes(self._buf[self._off:])

    def reset(self) -> None:
        """Empty the buffer."""
        self._buf.clear()
        self._off = 0

    # ── writing ──────────────────────────────────────────────────────────

    def write(self, b: BytesLike) -> int:
        self._buf += b
        return len(b)

    def write_string(self, s: str) -> int:
        return self.write(s.encode("utf-8"))

    def write_byte(self, c: int) -> None:
        self._buf.append(c)

    def write_rune(self, ch: str) -> int:
        return self.write(encode_rune(ch))

    def read_from(self, src: Reader) -> int:
        scratch = bytearray(self._MIN_READ)
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
            self._buf += scratch[:n]
            total += n
            if n == len(scratch):
                # The source keeps up; read bigger chunks.
                scratch = bytearray(len(scratch) * 2)

    # ── reading ──────────────────────────────────────────────────────────

    def readinto(self, b: Buffer) -> int:
        if len(self) == 0:
            self.reset()
            return 0
        n = min(len(b), len(self))
        b[:n] = self._buf[self._off:self._off + n]
        self._off += n
        return n

    def read_byte(self) -> int:
        if len(self) == 0:
            self.reset()
            raise EndOfStream()
        c = self._buf[self._off]
        self._off += 1
        return c

    def write_to(self, dst: Writer) -> int:
        if len(self) == 0:
            return 0
        data = bytes(self._buf[self._off:])
        m = write_some(dst, data)
        self._off += m
        if m != len(data):
            raise ShortWriteError(n=m)
        self.reset()
        return m

    def __repr__(self) -> str:
        return f"BytesBuffer({self.getvalue()!r})"
