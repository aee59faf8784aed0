"""
=============================================================================
BUFFERED READER
=============================================================================

BufferedReader adds lookahead, delimiter scanning, line reading and
single byte / rune unread to any Reader.

=============================================================================
BUFFER LAYOUT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   0            r                     w                      cap     │
    │   ├────────────┼─────────────────────┼────────────────────────┤     │
    │   │  consumed  │  unread (buffered)  │  free                  │     │
    │   └────────────┴─────────────────────┴────────────────────────┘     │
    │                                                                      │
    │   buffered() == w - r                                                │
    │                                                                      │
    │   fill():  slide buf[r:w] to the front (r = 0), then read once     │
    │            into buf[w:]. Filling a full buffer is a bug.            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ERRORS FROM THE SOURCE
=============================================================================

An error from the source is parked in a sticky slot and reported once, at
the next call that has no buffered bytes left to return (read-and-clear).
Bytes that arrived before the error are always delivered first:

    source: "world" then end of stream

    read_string(0)
        └── raises EndOfStream with e.partial == b"world"
    read_string(0)
        └── the source is asked again

Errors that are StreamError subclasses carry the partial result in
e.partial / e.n. Other exceptions (OSError and friends) propagate as they
are.

=============================================================================
ALIASING
=============================================================================

peek() and read_slice() return memoryview slices of the internal buffer.
They are only valid until the next read; copy them (bytes(view)) to keep
them. read_bytes() / read_string() / read_line() always return copies.

=============================================================================
"""

import logging
from typing import Optional, Union

from ..config import DEFAULT_BUFFER_SIZE, MAX_CONSECUTIVE_EMPTY_READS, MIN_READ_BUFFER_SIZE
from ..errors import (
    BufferFullError,
    EndOfStream,
    InvalidUnreadByteError,
    InvalidUnreadRuneError,
    MisuseError,
    NegativeCountError,
    NoProgressError,
    ShortWriteError,
    StreamError,
)
from ..streams.interfaces import Buffer, Reader, ReaderFrom, Writer, WriterTo, read_some, write_some
from ..streams.memory import BytesBuffer
from ..streams.utf8 import RUNE_SELF, UTF_MAX, decode_rune, full_rune


logger = logging.getLogger(__name__)

Delimiter = Union[int, bytes, str]


def _delim_byte(delim: Delimiter) -> int:
    """Normalize a one-byte delimiter given as int, bytes or str."""
    if isinstance(delim, int):
        if not 0 <= delim <= 0xFF:
            raise ValueError(f"delimiter {delim} is not a byte value")
        return delim
    if isinstance(delim, str):
        delim = delim.encode("utf-8")
    if len(delim) != 1:
        raise ValueError(f"delimiter must be a single byte, got {delim!r}")
    return delim[0]


def _fail(err: BaseException, n: int = 0, partial: bytes = b"") -> BaseException:
    """Attach progress to a stream error; other exceptions pass through."""
    if isinstance(err, StreamError):
        return err.with_progress(n=n, partial=partial)
    return err


class BufferedReader:
    """
    Buffering for a Reader.

    Not safe for concurrent use.

    Args:
        rd: The underlying source. It is not owned: closing it is the
            caller's business.
        size: Buffer capacity; raised to MIN_READ_BUFFER_SIZE if smaller.
        max_empty_reads: Consecutive empty reads tolerated before the
            sticky error becomes NoProgressError.
    """

    def __init__(
        self,
        rd: Reader,
        size: int = DEFAULT_BUFFER_SIZE,
        *,
        max_empty_reads: int = MAX_CONSECUTIVE_EMPTY_READS,
    ):
        if size < MIN_READ_BUFFER_SIZE:
            size = MIN_READ_BUFFER_SIZE
        if max_empty_reads < 1:
            raise ValueError("max_empty_reads must be at least 1")
        self._buf = bytearray(size)
        self._view = memoryview(self._buf)
        self._max_empty_reads = max_empty_reads
        self._reset(rd)

    def _reset(self, rd: Reader) -> None:
        self._rd = rd
        self._r = 0                    # read position in _buf
        self._w = 0                    # write position in _buf
        self._err: Optional[BaseException] = None
        self._last_byte = -1           # last byte read, for unread_byte; -1 means invalid
        self._last_rune_size = -1      # size of last rune read, for unread_rune; -1 means invalid

    def reset(self, rd: Reader) -> None:
        """Discard any buffered data and sticky error, and read from rd."""
        self._reset(rd)

    def size(self) -> int:
        """Size of the underlying buffer in bytes."""
        return len(self._buf)

    def buffered(self) -> int:
        """Number of bytes that can be read from the current buffer."""
        return self._w - self._r

    def __repr__(self) -> str:
        return f"BufferedReader(size={self.size()}, buffered={self.buffered()})"

    # =========================================================================
    # FILLING
    # =========================================================================

    def _fill(self) -> None:
        """Read a new chunk into the buffer."""
        # Slide existing data to beginning.
        if self._r > 0:
            self._buf[0:self._w - self._r] = self._buf[self._r:self._w]
            self._w -= self._r
            self._r = 0

        if self._w >= len(self._buf):
            raise MisuseError("bufio: tried to fill full buffer")

        # Read new data: try a limited number of times.
        for _ in range(self._max_empty_reads):
            try:
                n = read_some(self._rd, self._view[self._w:])
            except MisuseError:
                raise
            except Exception as e:
                logger.debug(f"bufio: source raised {e!r}, holding it")
                self._err = e
                return
            if n is None:
                continue
            if n == 0:
                self._err = EndOfStream()
                return
            self._w += n
            return
        self._err = NoProgressError()

    def _read_err(self) -> Optional[BaseException]:
        err, self._err = self._err, None
        return err

    # =========================================================================
    # LOOKAHEAD
    # =========================================================================

    def peek(self, n: int) -> memoryview:
        """
        Return the next n bytes without advancing the reader.

        The view is valid until the next read call.

        Raises:
            NegativeCountError: If n < 0.
            BufferFullError: If n is larger than the buffer size.
            EndOfStream, ...: If fewer than n bytes could be buffered; the
                available bytes are in e.partial and stay buffered.
        """
        if n < 0:
            raise NegativeCountError()

        self._last_byte = -1
        self._last_rune_size = -1

        while self._w - self._r < n and self._w - self._r < len(self._buf) and self._err is None:
            self._fill()  # self._w - self._r < len(self._buf) => buffer is not full

        if n > len(self._buf):
            raise BufferFullError(n=self.buffered(), partial=bytes(self._view[self._r:self._w]))

        # 0 <= n <= len(self._buf)
        avail = self._w - self._r
        if avail < n:
            # not enough data in buffer
            err = self._read_err()
            if err is None:
                err = BufferFullError()
            raise _fail(err, avail, bytes(self._view[self._r:self._w]))

        return self._view[self._r:self._r + n]

    def discard(self, n: int) -> int:
        """
        Skip the next n bytes, returning the number of bytes discarded.

        If 0 <= n <= buffered(), discard is guaranteed to succeed without
        reading from the underlying source.

        Raises:
            NegativeCountError: If n < 0.
            EndOfStream, ...: If fewer than n bytes were available;
                e.n is the number of bytes discarded.
        """
        if n < 0:
            raise NegativeCountError()
        if n == 0:
            return 0

        self._last_byte = -1
        self._last_rune_size = -1

        remain = n
        while True:
            skip = self.buffered()
            if skip == 0:
                self._fill()
                skip = self.buffered()
            if skip > remain:
                skip = remain
            self._r += skip
            remain -= skip
            if remain == 0:
                return n
            if self._err is not None:
                raise _fail(self._read_err(), n - remain)

    # =========================================================================
    # READING
    # =========================================================================

    def readinto(self, b: Buffer) -> Optional[int]:
        """
        Read data into b, returning the number of bytes read.

        The bytes are taken from at most one read on the underlying
        source, so the count may be less than len(b). 0 means end of
        stream; None means the source had nothing to offer right now.
        """
        n = len(b)
        if n == 0:
            if self.buffered() > 0:
                return 0
            err = self._read_err()
            if err is not None:
                raise err
            return 0

        if self._r == self._w:
            err = self._read_err()
            if err is not None:
                if isinstance(err, EndOfStream):
                    return 0
                raise err
            if len(b) >= len(self._buf):
                # Large read, empty buffer.
                # Read directly into b to avoid copy.
                n = read_some(self._rd, b)
                if n:
                    self._last_byte = b[n - 1]
                    self._last_rune_size = -1
                return n
            # One read.
            self._r = 0
            self._w = 0
            n = read_some(self._rd, self._view)
            if not n:
                return n
            self._w += n

        # copy as much as we can
        n = min(len(b), self._w - self._r)
        b[:n] = self._view[self._r:self._r + n]
        self._r += n
        self._last_byte = self._buf[self._r - 1]
        self._last_rune_size = -1
        return n

    def read(self, size: int = -1) -> Optional[bytes]:
        """
        Read up to size bytes and return them; a negative size reads to
        end of stream. b"" means end of stream.
        """
        if size < 0:
            out = BytesBuffer()
            self.write_to(out)
            return out.getvalue()
        buf = bytearray(size)
        n = self.readinto(buf)
        if n is None:
            return None
        return bytes(buf[:n])

    def read_byte(self) -> int:
        """
        Read and return a single byte.

        Raises:
            EndOfStream: If no byte is available.
        """
        self._last_rune_size = -1
        while self._r == self._w:
            if self._err is not None:
                raise self._read_err()
            self._fill()  # buffer is empty
        c = self._buf[self._r]
        self._r += 1
        self._last_byte = c
        return c

    def unread_byte(self) -> None:
        """
        Unread the last byte. Only the most recently read byte can be unread.

        Raises:
            InvalidUnreadByteError: If the most recent call was not a read
                that delivered at least one byte.
        """
        if self._last_byte < 0 or (self._r == 0 and self._w > 0):
            raise InvalidUnreadByteError()
        # self._r > 0 or self._w == 0
        if self._r > 0:
            self._r -= 1
        else:
            # self._r == 0 and self._w == 0
            self._w = 1
        self._buf[self._r] = self._last_byte
        self._last_byte = -1
        self._last_rune_size = -1

    def read_rune(self) -> tuple[str, int]:
        """
        Read a single UTF-8 encoded character.

        Returns:
            (rune, size). An invalid encoding consumes one byte and
            returns (RUNE_ERROR, 1).

        Raises:
            EndOfStream: If no byte is available.
        """
        while (
            self._r + UTF_MAX > self._w
            and not full_rune(self._view[self._r:self._w])
            and self._err is None
            and self._w - self._r < len(self._buf)
        ):
            self._fill()  # self._w - self._r < len(buf) => buffer is not full
        self._last_rune_size = -1
        if self._r == self._w:
            err = self._read_err()
            raise err if err is not None else EndOfStream()
        c = self._buf[self._r]
        if c < RUNE_SELF:
            ch, size = chr(c), 1
        else:
            ch, size = decode_rune(self._view[self._r:self._w])
        self._r += size
        self._last_byte = self._buf[self._r - 1]
        self._last_rune_size = size
        return ch, size

    def unread_rune(self) -> None:
        """
        Unread the last rune.

        Stricter than unread_byte: only legal right after read_rune.

        Raises:
            InvalidUnreadRuneError: If the most recent call was not read_rune.
        """
        if self._last_rune_size < 0 or self._r < self._last_rune_size:
            raise InvalidUnreadRuneError()
        self._r -= self._last_rune_size
        self._last_byte = -1
        self._last_rune_size = -1

    # =========================================================================
    # DELIMITER SCANNING
    # =========================================================================

    def _read_slice(self, delim: int) -> tuple[memoryview, Optional[BaseException]]:
        """Scan for delim; returns the consumed view and the error, if any."""
        search_start = 0  # search start index into buf[r:w]
        err: Optional[BaseException] = None
        while True:
            # Search buffer.
            i = self._buf.find(delim, self._r + search_start, self._w)
            if i >= 0:
                line = self._view[self._r:i + 1]
                self._r = i + 1
                break

            # Pending error?
            if self._err is not None:
                line = self._view[self._r:self._w]
                self._r = self._w
                err = self._read_err()
                break

            # Buffer full?
            if self.buffered() >= len(self._buf):
                self._r = self._w
                line = self._view[:]
                err = BufferFullError()
                break

            search_start = self._w - self._r  # do not rescan area we scanned before

            self._fill()  # buffer is not full

        # Handle last byte, if any.
        if len(line) > 0:
            self._last_byte = line[-1]
            self._last_rune_size = -1

        return line, err

    def read_slice(self, delim: Delimiter) -> memoryview:
        """
        Read until the first occurrence of delim in the input.

        Returns a view of the buffer, delimiter included. The view is
        only valid until the next read.

        Raises:
            BufferFullError: If the buffer fills without a delimiter;
                e.partial holds the whole buffer.
            EndOfStream, ...: If the input ends before the delimiter;
                e.partial holds the bytes read.
        """
        line, err = self._read_slice(_delim_byte(delim))
        if err is not None:
            if not isinstance(err, StreamError):
                # Leave the bytes buffered for the next call.
                self._r -= len(line)
            raise _fail(err, len(line), bytes(line))
        return line

    def read_line(self) -> tuple[bytes, bool]:
        """
        Low-level line reading primitive.

        Returns:
            (line, is_prefix). The line does not include "\\r\\n" or "\\n".
            If the line was too long for the buffer, is_prefix is True and
            the rest of the line comes from the following calls.

        Raises:
            EndOfStream, ...: Only when no bytes at all were available. A
                final line without a newline is returned normally.
        """
        line, err = self._read_slice(ord("\n"))
        if isinstance(err, BufferFullError):
            # Handle the case where "\r\n" straddles the buffer.
            if len(line) > 0 and line[-1] == ord("\r"):
                # Put the '\r' back on buf and drop it from line.
                # Let the next call to read_line check for "\r\n".
                if self._r == 0:
                    # should be unreachable
                    raise MisuseError("bufio: tried to rewind past start of buffer")
                self._r -= 1
                line = line[:-1]
            return bytes(line), True

        if len(line) == 0:
            if err is not None:
                raise err
            return b"", False

        if err is not None and not isinstance(err, StreamError):
            self._r -= len(line)
            raise err

        if line[-1] == ord("\n"):
            drop = 1
            if len(line) > 1 and line[-2] == ord("\r"):
                drop = 2
            line = line[:len(line) - drop]
        return bytes(line), False

    def _collect_fragments(self, delim: int) -> tuple[list[bytes], Optional[BaseException]]:
        """
        Read until the first occurrence of delim.

        Returns the copied fragments (the last one ends with delim unless
        an error stopped the scan) and the error, if any.
        """
        fragments: list[bytes] = []
        while True:
            frag, err = self._read_slice(delim)
            fragments.append(bytes(frag))
            if not isinstance(err, BufferFullError):
                return fragments, err

    def read_bytes(self, delim: Delimiter) -> bytes:
        """
        Read until the first occurrence of delim, delimiter included.

        The result is a fresh copy; it never aliases the buffer.

        Raises:
            EndOfStream, ...: If the input ends before the delimiter;
                e.partial holds the bytes read.
        """
        fragments, err = self._collect_fragments(_delim_byte(delim))
        data = b"".join(fragments)
        if err is not None:
            raise _fail(err, len(data), data)
        return data

    def read_string(self, delim: Delimiter) -> str:
        """
        Like read_bytes, but decodes the result as UTF-8.

        Invalid sequences decode to U+FFFD. On error, e.partial holds the
        raw bytes.
        """
        return self.read_bytes(delim).decode("utf-8", errors="replace")

    # =========================================================================
    # DRAINING
    # =========================================================================

    def _write_buf(self, w: Writer) -> int:
        """Write the buffered bytes to w."""
        pending = self._view[self._r:self._w]
        n = write_some(w, pending)
        self._r += n
        if n < len(pending):
            raise ShortWriteError(n=n)
        return n

    def write_to(self, w: Writer) -> int:
        """
        Write everything, buffered bytes first, to w until end of stream.

        Uses the source's write_to or w's read_from when available.
        Reaching the end of the source is success.
        """
        self._last_byte = -1
        self._last_rune_size = -1

        n = self._write_buf(w)
        try:
            if isinstance(self._rd, WriterTo):
                return n + self._rd.write_to(w)
            if isinstance(w, ReaderFrom):
                return n + w.read_from(self._rd)

            if self._w - self._r < len(self._buf):
                self._fill()  # buffer not full

            while self._r < self._w:
                # self._r < self._w => buffer is not empty
                n += self._write_buf(w)
                self._fill()  # buffer is empty
        except StreamError as e:
            raise e.with_progress(n=n + e.n, partial=e.partial)

        if isinstance(self._err, EndOfStream):
            self._err = None
        err = self._read_err()
        if err is not None:
            raise _fail(err, n)
        return n


def new_reader_size(rd: Reader, size: int) -> BufferedReader:
    """
    Return a BufferedReader whose buffer has at least the given size.

    If rd is already a BufferedReader with a large enough buffer, it is
    returned as is.
    """
    if isinstance(rd, BufferedReader) and rd.size() >= size:
        return rd
    return BufferedReader(rd, size)


def new_reader(rd: Reader) -> BufferedReader:
    """Return a BufferedReader with the default buffer size."""
    return new_reader_size(rd, DEFAULT_BUFFER_SIZE)
