"""
=============================================================================
MESSAGE FRAMING
=============================================================================

Persistent connection endpoints do not parse messages themselves. They
call a FramingCodec to read and write one framed message at a time, and
only look at two things on the result:

    msg.body    a closable byte source, or None
    msg.close   True if the connection ends after this message

=============================================================================
THE DEFAULT CODEC: LineCodec
=============================================================================

A minimal HTTP/1.x-style line framing:

    POST /upload HTTP/1.1\\r\\n          ← start line
    Host: example.com\\r\\n              ← "Name: value" header lines
    Content-Length: 5\\r\\n
    \\r\\n                               ← blank line ends the header
    hello                               ← exactly Content-Length bytes

    HTTP/1.1 200 OK\\r\\n
    Content-Length: 2\\r\\n
    \\r\\n
    ok

Proxy form writes the absolute target instead of the path:

    GET http://example.com/index.html HTTP/1.1\\r\\n

No chunked transfer coding, no header folding, no trailers.

=============================================================================
END OF STREAM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  stream ends before the first byte of a message                     │
    │      └── EndOfStream        (clean end of a keep-alive stream)     │
    │                                                                      │
    │  stream ends inside a start line, header or body                    │
    │      └── UnexpectedEOFError (truncated message)                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Dict, Optional, Protocol, Union, runtime_checkable

from ..bufio import BufferedReader, BufferedWriter
from ..config import DEFAULT_BUFFER_SIZE
from ..errors import BufferFullError, EndOfStream, FrameError, UnexpectedEOFError
from ..streams import Buffer, Writer, copy, copy_n, discard, read_full


logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE_LENGTH = 8192
DEFAULT_MAX_HEADERS = 100


# =============================================================================
# BODY
# =============================================================================

class Body:
    """
    The body of a received message, read straight from the connection.

    A body of known length yields exactly that many bytes. A body of
    unknown length (length=None) runs to the end of the stream.

    close() skips whatever the caller did not read so the next message
    starts at the right place. It may be called more than once; a failed
    close raises the same error again.
    """

    def __init__(self, reader: BufferedReader, length: Optional[int]):
        self._reader = reader
        self._remaining = length
        self._closed = False
        self._close_err: Optional[BaseException] = None

    @property
    def remaining(self) -> Optional[int]:
        """Bytes left in the body, or None when it runs to end of stream."""
        return self._remaining

    def readinto(self, b: Buffer) -> Optional[int]:
        if self._closed:
            raise ValueError("I/O operation on closed body")
        if self._remaining is None:
            return self._reader.readinto(b)
        if self._remaining <= 0 or len(b) == 0:
            return 0
        if len(b) > self._remaining:
            b = memoryview(b)[:self._remaining]
        n = self._reader.readinto(b)
        if n == 0:
            raise UnexpectedEOFError()
        if n:
            self._remaining -= n
        return n

    def read(self) -> bytes:
        """Read the rest of the body."""
        if self._closed:
            raise ValueError("I/O operation on closed body")
        if self._remaining is None:
            return self._reader.read()
        data = bytearray(self._remaining)
        read_full(self, data)
        return bytes(data)

    def close(self) -> None:
        if self._closed:
            if self._close_err is not None:
                raise self._close_err.with_traceback(None)
            return
        self._closed = True
        try:
            if self._remaining is None:
                copy(discard, self._reader)
            elif self._remaining > 0:
                self._reader.discard(self._remaining)
            self._remaining = 0
        except EndOfStream as e:
            self._close_err = UnexpectedEOFError(n=e.n)
            raise self._close_err from e
        except Exception as e:
            self._close_err = e
            raise

    @property
    def closed(self) -> bool:
        return self._closed


BodyLike = Union[bytes, bytearray, Body, None]


# =============================================================================
# MESSAGES
# =============================================================================

@dataclass(eq=False)
class Request:
    """
    A framed request.

    Header names are stored lowercase. For requests that were read, body
    is a Body; for requests to be written, body is bytes (or any Reader
    with a content-length header set).
    """

    method: str
    target: str = "/"
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: BodyLike = b""
    close: bool = False

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive)."""
        return self.headers.get(name.lower(), default)


@dataclass(eq=False)
class Response:
    """A framed response. request is the request it answers, if known."""

    status: int = 200
    reason: str = ""
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: BodyLike = b""
    close: bool = False
    request: Optional[Request] = field(default=None, repr=False)

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive)."""
        return self.headers.get(name.lower(), default)


# =============================================================================
# CODEC CONTRACT
# =============================================================================

@runtime_checkable
class FramingCodec(Protocol):
    """What an endpoint needs from a message format."""

    def read_request(self, reader: BufferedReader):
        ...

    def write_request(self, sink: Writer, req, proxy: bool = False) -> None:
        ...

    def read_response(self, reader: BufferedReader, req):
        ...

    def write_response(self, sink: Writer, resp) -> None:
        ...


def _canonical_header(name: str) -> str:
    """content-length -> Content-Length"""
    return "-".join(part.capitalize() for part in name.split("-"))


def _wants_close(version: str, headers: Dict[str, str]) -> bool:
    connection = headers.get("connection", "").lower()
    if version == "HTTP/1.1":
        # HTTP/1.1 keeps alive unless explicitly closed
        return connection == "close"
    # HTTP/1.0 closes unless explicitly kept alive
    return connection != "keep-alive"


class LineCodec:
    """
    Start line, header lines, blank line, Content-Length body.

    Args:
        max_line_length: Longest accepted start or header line.
        max_headers: Most header lines accepted per message.
        write_buffer_size: Buffer used to assemble each outgoing message.
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    STATUS_LINE_PATTERN = re.compile(r"^(HTTP/\d\.\d) (\d{3})(?: (.*))?$")
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*?)\s*$")

    def __init__(
        self,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        max_headers: int = DEFAULT_MAX_HEADERS,
        write_buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self.max_line_length = max_line_length
        self.max_headers = max_headers
        self.write_buffer_size = write_buffer_size

    # =========================================================================
    # READING
    # =========================================================================

    def _read_line(self, reader: BufferedReader, first: bool) -> str:
        """
        Read one CRLF or LF terminated line without its terminator.

        first marks the start line of a message: running out of input
        before its first byte is a clean end of stream.
        """
        parts = []
        size = 0
        while True:
            try:
                frag = bytes(reader.read_slice(b"\n"))
            except BufferFullError as e:
                parts.append(e.partial)
                size += len(e.partial)
                if size > self.max_line_length:
                    raise FrameError(f"line too long: more than {self.max_line_length} bytes")
                continue
            except EndOfStream as e:
                if first and size == 0 and not e.partial:
                    raise EndOfStream() from None
                raise UnexpectedEOFError(n=size + len(e.partial)) from None
            parts.append(frag)
            size += len(frag)
            break

        if size > self.max_line_length + 2:
            raise FrameError(f"line too long: more than {self.max_line_length} bytes")
        line = b"".join(parts)
        if line.endswith(b"\r\n"):
            line = line[:-2]
        else:
            line = line[:-1]
        return line.decode("utf-8", errors="replace")

    def _read_headers(self, reader: BufferedReader) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        while True:
            line = self._read_line(reader, first=False)
            if line == "":
                return headers
            if len(headers) >= self.max_headers:
                raise FrameError(f"too many headers: more than {self.max_headers}")
            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise FrameError(f"malformed header line: {line!r}")
            name, value = match.groups()
            headers[name.lower()] = value

    def _content_length(self, headers: Dict[str, str]) -> Optional[int]:
        raw = headers.get("content-length")
        if raw is None:
            return None
        try:
            length = int(raw)
        except ValueError:
            raise FrameError(f"invalid Content-Length: {raw!r}") from None
        if length < 0:
            raise FrameError(f"invalid Content-Length: {raw!r}")
        return length

    def read_request(self, reader: BufferedReader) -> Request:
        """
        Read one request from reader.

        Raises:
            EndOfStream: The stream ended cleanly before a new request.
            UnexpectedEOFError: The stream ended inside the request header.
            FrameError: The request is malformed.
        """
        line = self._read_line(reader, first=True)
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise FrameError(f"invalid request line: {line!r}")
        method, target, version = match.groups()
        headers = self._read_headers(reader)
        logger.debug(f"Read request {method} {target}")
        length = self._content_length(headers) or 0
        return Request(
            method=method,
            target=target,
            version=version,
            headers=headers,
            body=Body(reader, length),
            close=_wants_close(version, headers),
        )

    def read_response(self, reader: BufferedReader, req: Optional[Request] = None) -> Response:
        """
        Read one response to req from reader.

        A response without Content-Length runs to the end of the stream
        and therefore closes the connection.
        """
        line = self._read_line(reader, first=True)
        match = self.STATUS_LINE_PATTERN.match(line)
        if not match:
            raise FrameError(f"invalid status line: {line!r}")
        version, status, reason = match.groups()
        status = int(status)
        headers = self._read_headers(reader)
        close = _wants_close(version, headers)

        if (req is not None and req.method == "HEAD") or status < 200 or status in (204, 304):
            length: Optional[int] = 0
        else:
            length = self._content_length(headers)
            if length is None:
                close = True

        return Response(
            status=status,
            reason=reason or "",
            version=version,
            headers=headers,
            body=Body(reader, length),
            close=close,
            request=req,
        )

    # =========================================================================
    # WRITING
    # =========================================================================

    def _header_block(self, start_line: str, headers: Dict[str, str]) -> str:
        lines = [start_line]
        for name, value in headers.items():
            if "\r" in value or "\n" in value or "\r" in name or "\n" in name:
                raise FrameError(f"invalid header {name!r}: contains CR or LF")
            lines.append(f"{_canonical_header(name)}: {value}")
        return "\r\n".join(lines) + "\r\n\r\n"

    def _prepare_headers(self, headers: Dict[str, str], body: BodyLike, close: bool) -> Dict[str, str]:
        out = {name.lower(): value for name, value in headers.items()}
        if isinstance(body, (bytes, bytearray)):
            if body or "content-length" in out:
                out["content-length"] = str(len(body))
        elif body is not None and "content-length" not in out:
            raise FrameError("streamed body requires a Content-Length header")
        if close:
            out["connection"] = "close"
        return out

    def _write_message(self, sink: Writer, head: str, body: BodyLike, headers: Dict[str, str]) -> None:
        bw = BufferedWriter(sink, self.write_buffer_size)
        bw.write_string(head)
        if isinstance(body, (bytes, bytearray)):
            bw.write(body)
        elif body is not None:
            copy_n(bw, body, int(headers["content-length"]))
        bw.flush()

    def write_request(self, sink: Writer, req: Request, proxy: bool = False) -> None:
        """Write req to sink, in proxy form (absolute target) if proxy is set."""
        target = req.target
        if proxy and not target.startswith(("http://", "https://")):
            if not req.host:
                raise FrameError("proxy request requires a Host header")
            target = f"http://{req.host}{target}"
        headers = self._prepare_headers(req.headers, req.body, req.close)
        head = self._header_block(f"{req.method} {target} {req.version}", headers)
        self._write_message(sink, head, req.body, headers)

    def write_response(self, sink: Writer, resp: Response) -> None:
        """Write resp to sink."""
        reason = resp.reason
        if not reason:
            try:
                reason = HTTPStatus(resp.status).phrase
            except ValueError:
                reason = ""
        headers = self._prepare_headers(resp.headers, resp.body, resp.close)
        if isinstance(resp.body, (bytes, bytearray)) and "content-length" not in headers:
            headers["content-length"] = "0"
        head = self._header_block(f"{resp.version} {resp.status} {reason}".rstrip(), headers)
        self._write_message(sink, head, resp.body, headers)
