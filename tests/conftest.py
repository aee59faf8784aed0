"""
pytest configuration and fixtures.
"""

import socket
from typing import Generator, Iterable, Optional, Union
import pytest
from hypothesis import settings

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bufconn.streams import BytesBuffer, BytesReader, PipeStream, SocketStream, duplex_pipe


# Thread scheduling makes timings noisy; don't fail examples on slowness.
settings.register_profile("no_deadline", deadline=None)
settings.load_profile("no_deadline")


class ChunkedReader:
    """
    A Reader that replays a script, one entry per readinto call.

    Entries are bytes (delivered, split if b is smaller), None (an empty
    read) or an exception instance (raised). Once the script runs out,
    every read reports end of stream.
    """

    def __init__(self, script: Iterable[Union[bytes, None, BaseException]]):
        self._script = list(script)
        self.calls = 0

    def readinto(self, b) -> Optional[int]:
        self.calls += 1
        if not self._script:
            return 0
        item = self._script[0]
        if item is None:
            self._script.pop(0)
            return None
        if isinstance(item, BaseException):
            self._script.pop(0)
            raise item
        n = min(len(b), len(item))
        b[:n] = item[:n]
        if n == len(item):
            self._script.pop(0)
        else:
            self._script[0] = item[n:]
        return n


class ShortWriter:
    """A Writer that accepts at most `limit` bytes in total, then 0 per call."""

    def __init__(self, limit: int):
        self.limit = limit
        self.data = bytearray()

    def write(self, b) -> int:
        n = min(len(b), self.limit - len(self.data))
        self.data += bytes(b[:n])
        return n


class FailingWriter:
    """A Writer that raises the given error on every write."""

    def __init__(self, err: BaseException):
        self.err = err
        self.calls = 0

    def write(self, b) -> int:
        self.calls += 1
        raise self.err


class ScriptedStream:
    """
    A duplex stream for driving one endpoint by hand.

    Reads replay canned bytes; writes are collected in `written`.
    """

    def __init__(self, incoming: bytes = b""):
        self._in = BytesReader(incoming)
        self._out = BytesBuffer()
        self.closed = False

    def readinto(self, b) -> int:
        return self._in.readinto(b)

    def write(self, b) -> int:
        return self._out.write(b)

    def close(self) -> None:
        self.closed = True

    @property
    def written(self) -> bytes:
        return self._out.getvalue()


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample GET request."""
    return (
        b"GET /api/users?page=1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample POST request with a body."""
    body = b'{"name": "John"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def pipe_pair() -> Generator[tuple[PipeStream, PipeStream], None, None]:
    """Two connected in-memory stream ends."""
    a, b = duplex_pipe()
    yield a, b
    a.close()
    b.close()


@pytest.fixture
def socket_pair() -> Generator[tuple[SocketStream, SocketStream], None, None]:
    """Two connected sockets wrapped as streams."""
    s1, s2 = socket.socketpair()
    a, b = SocketStream(s1, "a"), SocketStream(s2, "b")
    yield a, b
    a.close()
    b.close()
