"""
=============================================================================
CLIENT SIDE OF A PERSISTENT CONNECTION
=============================================================================

ClientConn sends pipelined requests over one connection and reads the
responses in the order the requests went out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   conn.write(a)          ─── id 0 ───►                              │
    │   conn.write(b)          ─── id 1 ───►                              │
    │   conn.read(a) → resp_a  ◄── id 0 ───                               │
    │   conn.read(b) → resp_b  ◄── id 1 ───                               │
    │   conn.read(c)           PipelineError: c was never written         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

ProxyClientConn writes the absolute target ("http://host/path") so the
request can go to a proxy.

=============================================================================
"""

import logging
from typing import Any, Optional

from ..bufio import BufferedReader
from ..config import StreamConfig
from ..errors import ClosedByUserError, PersistentEOFError
from ..streams import ReadWriteCloser, Writer
from .endpoint import Endpoint
from .framing import FramingCodec


logger = logging.getLogger(__name__)


class ClientConn(Endpoint):
    """
    Sends requests and receives responses over an underlying connection,
    while respecting the keep-alive state of the connection.

    Write and read may be called concurrently by one writer and one
    reader; two concurrent writes (or reads) are not allowed.
    """

    def _write_request(self, stream: Writer, req: Any) -> None:
        self._codec.write_request(stream, req)

    def write(self, req: Any) -> None:
        """
        Write req to the connection.

        A request marked close is sent, after which further writes raise
        PersistentEOFError; responses to requests already sent can still
        be read.

        Raises:
            PersistentEOFError: The connection is closing.
            ClosedByUserError: The endpoint was hijacked or closed.
            Exception: The sticky read or write error, or a new I/O error.
        """
        ok = False
        pid = self._pipe.next()
        self._pipe.start_request(pid)
        try:
            with self._mu:
                if self._re is not None:
                    # no point sending if read-side closed or broken
                    raise self._sticky(self._re)
                if self._we is not None:
                    raise self._sticky(self._we)
                if self._stream is None:
                    # connection closed by user in the meantime
                    raise ClosedByUserError()
                stream = self._stream
                if getattr(req, "close", False):
                    logger.debug(f"[{self.id}] Request closes the connection")
                    self._we = PersistentEOFError()

            try:
                self._write_request(stream, req)
            except Exception as e:
                with self._mu:
                    self._set_write_err(e)
                raise

            with self._mu:
                self._nwritten += 1
            ok = True
        finally:
            self._pipe.end_request(pid)
            if not ok:
                # Nothing will come back: let later responses go past this id.
                self._pipe.start_response(pid)
                self._pipe.end_response(pid)
            else:
                with self._mu:
                    self._register(req, pid)

    def pending(self) -> int:
        """Number of requests that have been sent but not yet answered."""
        with self._mu:
            return self._nwritten - self._nread

    def read(self, req: Any) -> Any:
        """
        Read the response to req, which must have been written already.

        A response marked close is returned normally; every later read
        and write raises PersistentEOFError.

        Raises:
            PipelineError: req was never written, or was already answered.
            PersistentEOFError: The server closed the connection gracefully.
            ClosedByUserError: The endpoint was hijacked or closed.
            Exception: Any framing or I/O error (sticky from then on).
        """
        with self._mu:
            pid = self._take_pipeline_id(req)

        self._pipe.start_response(pid)
        try:
            reader, lastbody = self._begin_read(check_write_err=False)
            return self._read_message(
                reader, lastbody, lambda r: self._codec.read_response(r, req)
            )
        finally:
            self._pipe.end_response(pid)

    def do(self, req: Any) -> Any:
        """Write req and read back its response."""
        self.write(req)
        return self.read(req)


class ProxyClientConn(ClientConn):
    """A ClientConn that writes requests in proxy form."""

    def _write_request(self, stream: Writer, req: Any) -> None:
        self._codec.write_request(stream, req, proxy=True)


def new_client_conn(
    stream: ReadWriteCloser,
    reader: Optional[BufferedReader] = None,
    codec: Optional[FramingCodec] = None,
    config: Optional[StreamConfig] = None,
) -> ClientConn:
    return ClientConn(stream, reader, codec, config)


def new_proxy_client_conn(
    stream: ReadWriteCloser,
    reader: Optional[BufferedReader] = None,
    codec: Optional[FramingCodec] = None,
    config: Optional[StreamConfig] = None,
) -> ProxyClientConn:
    return ProxyClientConn(stream, reader, codec, config)
