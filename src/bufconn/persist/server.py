"""
=============================================================================
SERVER SIDE OF A PERSISTENT CONNECTION
=============================================================================

ServerConn reads pipelined requests off one connection and writes the
responses back in the same order.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   reader thread                       writer thread                 │
    │   ─────────────                       ─────────────                 │
    │   a = conn.read()    ─── id 0 ───►    conn.write(a, resp_a)         │
    │   b = conn.read()    ─── id 1 ───►    conn.write(b, resp_b)         │
    │   c = conn.read()    ─── id 2 ───►    conn.write(c, resp_c)         │
    │                                                                      │
    │   The i-th read produces the request that the i-th write answers.  │
    │   write(x, ...) for a request x that read() never returned raises   │
    │   PipelineError.                                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Usage:
    with ServerConn(stream) as conn:
        while True:
            try:
                req = conn.read()
            except PersistentEOFError:
                break
            conn.write(req, Response(body=b"ok"))

=============================================================================
"""

import logging
from typing import Any, Optional

from ..bufio import BufferedReader
from ..config import StreamConfig
from ..errors import ClosedByUserError, MisuseError, PersistentEOFError
from ..streams import ReadWriteCloser
from .endpoint import Endpoint
from .framing import FramingCodec


logger = logging.getLogger(__name__)


class ServerConn(Endpoint):
    """
    Reads requests and sends responses over an underlying connection
    until the client signals the end of the connection.

    Read and write may be called concurrently by one reader and one
    writer; two concurrent reads (or writes) are not allowed.
    """

    def read(self) -> Any:
        """
        Return the next request on the wire.

        A request marked close is returned normally; every later read
        raises PersistentEOFError.

        Raises:
            PersistentEOFError: The client closed the connection gracefully.
            ClosedByUserError: The endpoint was hijacked or closed.
            Exception: Any framing or I/O error (sticky from then on).
        """
        req = None
        pid = self._pipe.next()
        self._pipe.start_request(pid)
        try:
            reader, lastbody = self._begin_read(check_write_err=True)
            req = self._read_message(reader, lastbody, self._codec.read_request)
            return req
        finally:
            self._pipe.end_request(pid)
            if req is None:
                # Nothing to answer: let later responses go past this id.
                self._pipe.start_response(pid)
                self._pipe.end_response(pid)
            else:
                with self._mu:
                    self._register(req, pid)

    def pending(self) -> int:
        """Number of requests that have been read but not yet answered."""
        with self._mu:
            return self._nread - self._nwritten

    def write(self, req: Any, resp: Any) -> None:
        """
        Write resp in response to req.

        To close the connection gracefully, set resp.close; the read side
        is then terminal as well.

        Raises:
            PipelineError: req was not returned by read(), or was already
                answered.
            ClosedByUserError: The endpoint was hijacked or closed.
            Exception: The sticky write error, or a new I/O error.
        """
        with self._mu:
            pid = self._take_pipeline_id(req)

        self._pipe.start_response(pid)
        try:
            with self._mu:
                if self._we is not None:
                    raise self._sticky(self._we)
                if self._stream is None:
                    # connection closed by user in the meantime
                    raise ClosedByUserError()
                stream = self._stream
                if self._nread <= self._nwritten:
                    raise MisuseError("persist server pipe count")
                if getattr(resp, "close", False):
                    logger.debug(f"[{self.id}] Response closes the connection")
                    self._set_read_err(PersistentEOFError())

            try:
                self._codec.write_response(stream, resp)
            except Exception as e:
                with self._mu:
                    self._set_write_err(e)
                raise

            with self._mu:
                self._nwritten += 1
        finally:
            self._pipe.end_response(pid)


def new_server_conn(
    stream: ReadWriteCloser,
    reader: Optional[BufferedReader] = None,
    codec: Optional[FramingCodec] = None,
    config: Optional[StreamConfig] = None,
) -> ServerConn:
    return ServerConn(stream, reader, codec, config)
