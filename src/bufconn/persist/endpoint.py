"""
=============================================================================
PERSISTENT CONNECTION ENDPOINT (shared machinery)
=============================================================================

ServerConn and ClientConn are mirror images. Both own:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   stream        duplex byte stream (read / write / close)           │
    │   reader        BufferedReader over the stream's read side          │
    │   _re / _we     sticky read-side / write-side errors                │
    │   _lastbody     body of the last message read, closed before the    │
    │                 next read so the stream sits on a message boundary  │
    │   _nread        messages read                                        │
    │   _nwritten     messages written                                     │
    │   _pipereq      message -> pipeline id, pairs reads with writes     │
    │   _pipe         Pipeline keeping both halves in FIFO order          │
    │   _mu           one coarse lock over all of the above               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

I/O always happens OUTSIDE _mu. The lock only guards bookkeeping, so one
thread can read while another writes.

=============================================================================
READ-SIDE STATE
=============================================================================

    IDLE ──read()──► READING_HEADER ──► BODY_OUTSTANDING ──read()──► ...
      │                    │                    │
      └────────────────────┴────────────────────┴──► TERMINAL (sticky error)

TERMINAL is entered on end of stream at a message boundary
(PersistentEOFError), on a message marked close, or on any read failure.

=============================================================================
HIJACK
=============================================================================

hijack() hands the stream and reader to the caller and forgets them, all
under _mu. Afterwards every read and write fails with ClosedByUserError.

=============================================================================
"""

import logging
import uuid
from enum import Enum
from typing import Any, Optional

from ..bufio import BufferedReader
from ..config import StreamConfig
from ..errors import ClosedByUserError, EndOfStream, PersistentEOFError, PipelineError
from ..streams import ReadWriteCloser
from ..sync import Mutex
from .framing import FramingCodec, LineCodec
from .pipeline import Pipeline


logger = logging.getLogger(__name__)


class ReadState(Enum):
    """Read-side lifecycle of an endpoint."""
    IDLE = "idle"                          # between messages
    READING_HEADER = "reading_header"      # codec is reading a message
    BODY_OUTSTANDING = "body_outstanding"  # message returned, body not yet closed
    TERMINAL = "terminal"                  # sticky read error, no more messages


class Endpoint:
    """
    Base class of ServerConn and ClientConn.

    Args:
        stream: A duplex byte stream providing readinto, write and close.
        reader: Buffered reader over stream; built from config if None.
        codec: Message framing; LineCodec if None.
        config: Buffer sizing for the reader and default codec built here.
    """

    def __init__(
        self,
        stream: ReadWriteCloser,
        reader: Optional[BufferedReader] = None,
        codec: Optional[FramingCodec] = None,
        config: Optional[StreamConfig] = None,
    ):
        config = config or StreamConfig()
        if codec is None:
            codec = LineCodec(write_buffer_size=config.writer_buffer_size)
        if reader is None:
            reader = BufferedReader(
                stream,
                config.reader_buffer_size,
                max_empty_reads=config.max_consecutive_empty_reads,
            )
        self.id = str(uuid.uuid4())[:8]
        self._mu = Mutex()
        self._stream: Optional[ReadWriteCloser] = stream
        self._reader: Optional[BufferedReader] = reader
        self._codec = codec
        self._re: Optional[BaseException] = None
        self._we: Optional[BaseException] = None
        self._lastbody: Any = None
        self._nread = 0
        self._nwritten = 0
        self._pipereq: dict[int, tuple[Any, int]] = {}
        self._pipe = Pipeline()
        self._state = ReadState.IDLE

    # =========================================================================
    # BOOKKEEPING (call with _mu held)
    # =========================================================================

    def _register(self, msg: Any, pid: int) -> None:
        # Keyed by identity: the same object must come back to pair up.
        self._pipereq[id(msg)] = (msg, pid)

    def _take_pipeline_id(self, msg: Any) -> int:
        """
        Remove and return the pipeline id registered for msg.

        Raises:
            PipelineError: If msg has no outstanding counterpart.
        """
        entry = self._pipereq.get(id(msg))
        if entry is None or entry[0] is not msg:
            raise PipelineError()
        del self._pipereq[id(msg)]
        return entry[1]

    def _set_read_err(self, err: BaseException) -> BaseException:
        self._re = err
        self._state = ReadState.TERMINAL
        logger.debug(f"[{self.id}] Read side closed: {err!r}")
        return err

    def _set_write_err(self, err: BaseException) -> BaseException:
        self._we = err
        logger.warning(f"[{self.id}] Write failed: {err!r}")
        return err

    @staticmethod
    def _sticky(err: BaseException) -> BaseException:
        return err.with_traceback(None)

    # =========================================================================
    # READ SIDE
    # =========================================================================

    def _begin_read(self, check_write_err: bool) -> tuple[BufferedReader, Any]:
        """
        Check the read side and take the reader and the last body.

        Raises the sticky error, or ClosedByUserError after hijack.
        """
        with self._mu:
            if check_write_err and self._we is not None:
                # no point receiving if write-side broken or closed
                raise self._sticky(self._we)
            if self._re is not None:
                raise self._sticky(self._re)
            if self._reader is None:
                # connection closed by user in the meantime
                raise ClosedByUserError()
            reader = self._reader
            lastbody, self._lastbody = self._lastbody, None
            return reader, lastbody

    def _read_message(self, reader: BufferedReader, lastbody: Any, read_fn) -> Any:
        """
        Close the previous body, then read one message with read_fn.

        End of stream at a message boundary becomes a sticky
        PersistentEOFError; any other failure becomes the sticky read error.
        """
        if lastbody is not None:
            try:
                lastbody.close()
            except Exception as e:
                with self._mu:
                    self._set_read_err(e)
                raise

        with self._mu:
            self._state = ReadState.READING_HEADER
        try:
            msg = read_fn(reader)
        except EndOfStream:
            with self._mu:
                err = self._set_read_err(PersistentEOFError())
            raise err from None
        except Exception as e:
            with self._mu:
                self._set_read_err(e)
            raise

        with self._mu:
            body = getattr(msg, "body", None)
            if body is not None and hasattr(body, "close"):
                self._lastbody = body
                self._state = ReadState.BODY_OUTSTANDING
            else:
                self._state = ReadState.IDLE
            self._nread += 1
            if getattr(msg, "close", False):
                self._set_read_err(PersistentEOFError())
        return msg

    @property
    def state(self) -> ReadState:
        with self._mu:
            if self._re is not None:
                return ReadState.TERMINAL
            return self._state

    # =========================================================================
    # OWNERSHIP
    # =========================================================================

    def hijack(self) -> tuple[Optional[ReadWriteCloser], Optional[BufferedReader]]:
        """
        Detach the endpoint from its stream.

        Returns the stream and the buffered reader, which may still hold
        unread data. The endpoint no longer uses either; they belong to the
        caller from now on.
        """
        with self._mu:
            stream, reader = self._stream, self._reader
            self._stream = None
            self._reader = None
        logger.debug(f"[{self.id}] Hijacked after {self._nread} reads, {self._nwritten} writes")
        return stream, reader

    def close(self) -> None:
        """Hijack the endpoint and close the stream."""
        stream, _ = self.hijack()
        if stream is not None:
            stream.close()
            logger.debug(f"[{self.id}] Connection closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
