"""
=============================================================================
BUFFERED WRITER
=============================================================================

BufferedWriter collects small writes and hands them to the underlying
Writer in buffer-sized chunks.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   write(p), len(p) <= available()   → copy into buffer, no I/O      │
    │   write(p), buffer empty, p large   → write p straight through      │
    │   write(p), buffer partly full      → top up buffer, flush, repeat  │
    │                                                                      │
    │   flush()                                                            │
    │     └── one write of buf[:n]                                        │
    │     └── short write: keep the unwritten tail at the front,          │
    │         record ShortWriteError                                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STICKY ERRORS
=============================================================================

Once a write to the underlying Writer fails, the error is kept and every
later write / flush raises it again without touching the Writer. Only
reset() clears it (observe-only, unlike BufferedReader).

After all data has been written, call flush() to make sure it reached
the underlying Writer.

=============================================================================
"""

import logging
from typing import Optional

from ..config import DEFAULT_BUFFER_SIZE, MAX_CONSECUTIVE_EMPTY_READS
from ..errors import MisuseError, NoProgressError, ShortWriteError, StreamError
from ..streams.interfaces import Buffer, BytesLike, Reader, ReaderFrom, StringWriter, Writer, read_some, write_some
from ..streams.utf8 import RUNE_SELF, UTF_MAX, encode_rune
from .reader import BufferedReader


logger = logging.getLogger(__name__)


class BufferedWriter:
    """
    Buffering for a Writer.

    Not safe for concurrent use.

    Args:
        wr: The underlying sink. It is not owned.
        size: Buffer capacity; zero or negative means DEFAULT_BUFFER_SIZE.
    """

    def __init__(self, wr: Writer, size: int = DEFAULT_BUFFER_SIZE):
        if size <= 0:
            size = DEFAULT_BUFFER_SIZE
        self._buf = bytearray(size)
        self._view = memoryview(self._buf)
        self._n = 0
        self._wr = wr
        self._err: Optional[BaseException] = None

    def reset(self, wr: Writer) -> None:
        """Discard unflushed data, clear any error and write to wr."""
        self._err = None
        self._n = 0
        self._wr = wr

    def size(self) -> int:
        """Size of the underlying buffer in bytes."""
        return len(self._buf)

    def available(self) -> int:
        """How many bytes are unused in the buffer."""
        return len(self._buf) - self._n

    def buffered(self) -> int:
        """Number of bytes written into the current buffer."""
        return self._n

    def __repr__(self) -> str:
        return f"BufferedWriter(size={self.size()}, buffered={self.buffered()})"

    # =========================================================================
    # ERROR HELPERS
    # =========================================================================

    def _record(self, err: BaseException) -> None:
        self._err = err
        logger.debug(f"bufio: writer error recorded: {err!r}")

    def _raise_err(self, n: int = 0):
        err = self._err
        if isinstance(err, StreamError):
            raise err.with_progress(n=n, partial=err.partial)
        raise err.with_traceback(None)

    # =========================================================================
    # FLUSHING
    # =========================================================================

    def _flush(self) -> None:
        """Flush, recording (not raising) any error."""
        if self._err is not None or self._n == 0:
            return
        try:
            n = write_some(self._wr, self._view[:self._n])
        except MisuseError:
            raise
        except Exception as e:
            self._record(e)
            return
        if n < self._n:
            if n > 0:
                self._buf[0:self._n - n] = self._buf[n:self._n]
            self._n -= n
            self._record(ShortWriteError(n=n))
            return
        self._n = 0

    def flush(self) -> None:
        """
        Write any buffered data to the underlying Writer.

        Raises:
            ShortWriteError: If the Writer took only part of the data; the
                rest stays at the front of the buffer.
            Exception: Any error raised by the Writer, now or earlier.
        """
        self._flush()
        if self._err is not None:
            self._raise_err()

    # =========================================================================
    # WRITING
    # =========================================================================

    def write(self, p: BytesLike) -> int:
        """
        Write the contents of p into the buffer.

        Returns len(p). If not all of p could be accepted the sticky error
        is raised with e.n set to the bytes that were.
        """
        p = memoryview(p)
        nn = 0
        while len(p) > self.available() and self._err is None:
            if self.buffered() == 0:
                # Large write, empty buffer.
                # Write directly from p to avoid copy.
                try:
                    n = write_some(self._wr, p)
                except MisuseError:
                    raise
                except Exception as e:
                    self._record(e)
                    break
                if n == 0:
                    self._record(ShortWriteError())
                    break
            else:
                n = self.available()
                self._buf[self._n:self._n + n] = p[:n]
                self._n += n
                self._flush()
            nn += n
            p = p[n:]
        if self._err is not None:
            self._raise_err(nn)
        n = len(p)
        self._buf[self._n:self._n + n] = p
        self._n += n
        nn += n
        return nn

    def write_byte(self, c: int) -> None:
        """Write a single byte."""
        if self._err is not None:
            self._raise_err()
        if self.available() <= 0:
            self._flush()
            if self._err is not None:
                self._raise_err()
        self._buf[self._n] = c
        self._n += 1

    def write_rune(self, ch: str) -> int:
        """Write a single character as UTF-8, returning the bytes written."""
        cp = ord(ch)
        if cp < RUNE_SELF:
            self.write_byte(cp)
            return 1
        if self._err is not None:
            self._raise_err()
        n = self.available()
        if n < UTF_MAX:
            self._flush()
            if self._err is not None:
                self._raise_err()
            n = self.available()
            if n < UTF_MAX:
                # Can only happen if buffer is silly small.
                return self.write_string(ch)
        encoded = encode_rune(ch)
        self._buf[self._n:self._n + len(encoded)] = encoded
        self._n += len(encoded)
        return len(encoded)

    def write_string(self, s: str) -> int:
        """
        Write the UTF-8 encoding of s, returning the bytes written.

        A large string on an empty buffer goes straight to the underlying
        Writer's write_string when it has one.
        """
        p = s.encode("utf-8")
        if (
            len(p) > self.available()
            and self.buffered() == 0
            and self._err is None
            and isinstance(self._wr, StringWriter)
        ):
            # Large write, empty buffer, and the underlying writer supports
            # write_string: forward the write to it.
            try:
                n = self._wr.write_string(s)
            except MisuseError:
                raise
            except Exception as e:
                self._record(e)
                self._raise_err()
            if n < len(p):
                self._record(ShortWriteError(n=n))
                self._raise_err(n)
            return n
        return self.write(p)

    def read_from(self, r: Reader) -> int:
        """
        Read from r until end of stream, writing through the buffer.

        If the buffer is empty and the underlying Writer has read_from, the
        whole transfer is delegated to it.
        """
        if self._err is not None:
            self._raise_err()
        reader_from = isinstance(self._wr, ReaderFrom)
        n = 0
        while True:
            if self.available() == 0:
                self._flush()
                if self._err is not None:
                    self._raise_err(n)
            if reader_from and self.buffered() == 0:
                # Errors from the delegate leave this writer usable.
                try:
                    return n + self._wr.read_from(r)
                except StreamError as e:
                    raise e.with_progress(n=n + e.n, partial=e.partial)

            nr = 0
            m = None
            while nr < MAX_CONSECUTIVE_EMPTY_READS:
                try:
                    m = read_some(r, self._view[self._n:])
                except StreamError as e:
                    raise e.with_progress(n=n, partial=e.partial)
                if m is not None:
                    break
                nr += 1
            if nr == MAX_CONSECUTIVE_EMPTY_READS:
                raise NoProgressError(n=n)
            if m == 0:
                break
            self._n += m
            n += m

        # If we filled the buffer exactly, flush preemptively.
        if self.available() == 0:
            self._flush()
            if self._err is not None:
                self._raise_err(n)
        return n


def new_writer_size(w: Writer, size: int) -> BufferedWriter:
    """
    Return a BufferedWriter whose buffer has at least the given size.

    If w is already a BufferedWriter with a large enough buffer, it is
    returned as is.
    """
    if isinstance(w, BufferedWriter) and w.size() >= size:
        return w
    if size <= 0:
        size = DEFAULT_BUFFER_SIZE
    return BufferedWriter(w, size)


def new_writer(w: Writer) -> BufferedWriter:
    """Return a BufferedWriter with the default buffer size."""
    return new_writer_size(w, DEFAULT_BUFFER_SIZE)


class ReadWriter:
    """
    Pairs a BufferedReader with a BufferedWriter.

    Reads go to the reader, writes to the writer.
    """

    def __init__(self, reader: BufferedReader, writer: BufferedWriter):
        self.reader = reader
        self.writer = writer

    def readinto(self, b: Buffer) -> Optional[int]:
        return self.reader.readinto(b)

    def read_byte(self) -> int:
        return self.reader.read_byte()

    def unread_byte(self) -> None:
        self.reader.unread_byte()

    def read_rune(self) -> tuple[str, int]:
        return self.reader.read_rune()

    def unread_rune(self) -> None:
        self.reader.unread_rune()

    def peek(self, n: int) -> memoryview:
        return self.reader.peek(n)

    def read_line(self) -> tuple[bytes, bool]:
        return self.reader.read_line()

    def read_bytes(self, delim) -> bytes:
        return self.reader.read_bytes(delim)

    def read_string(self, delim) -> str:
        return self.reader.read_string(delim)

    def write_to(self, w: Writer) -> int:
        return self.reader.write_to(w)

    def write(self, p: BytesLike) -> int:
        return self.writer.write(p)

    def write_byte(self, c: int) -> None:
        self.writer.write_byte(c)

    def write_rune(self, ch: str) -> int:
        return self.writer.write_rune(ch)

    def write_string(self, s: str) -> int:
        return self.writer.write_string(s)

    def read_from(self, r: Reader) -> int:
        return self.writer.read_from(r)

    def flush(self) -> None:
        self.writer.flush()


def new_read_writer(reader: BufferedReader, writer: BufferedWriter) -> ReadWriter:
    return ReadWriter(reader, writer)
