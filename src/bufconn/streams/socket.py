"""
=============================================================================
SOCKET ADAPTER
=============================================================================

Wraps a connected socket.socket as a duplex Reader / Writer / Closer so
it can sit under a BufferedReader or a persistent connection endpoint.

TCP delivers bytes in arbitrary chunks, so readinto() returns whatever
one recv_into() produced:

    sender: write(b"HelloWorld")
    receiver:
        readinto(buf) → 3    "Hel"
        readinto(buf) → 7    "loWorld"
        readinto(buf) → 0    peer closed its sending side

Buffering and message framing are the job of the layers above.

=============================================================================
"""

import logging
import socket

from ..errors import ClosedConnectionError
from .interfaces import Buffer, BytesLike


logger = logging.getLogger(__name__)


class SocketStream:
    """
    A connected socket viewed as a byte stream.

    Attributes:
        sock: The wrapped socket (None once closed).
        name: Label used in log messages, defaults to the peer address.
    """

    def __init__(self, sock: socket.socket, name: str = ""):
        self.sock = sock
        if not name:
            try:
                name = "%s:%s" % sock.getpeername()[:2]
            except OSError:
                name = "unconnected"
        self.name = name

    def _socket(self) -> socket.socket:
        if self.sock is None:
            raise ClosedConnectionError()
        return self.sock

    def readinto(self, b: Buffer) -> int:
        """
        Receive up to len(b) bytes.

        0 means the peer closed its sending side. A peer reset is
        reported as end of stream as well.
        """
        sock = self._socket()
        try:
            return sock.recv_into(b)
        except ConnectionResetError:
            # Client disconnected abruptly
            logger.debug(f"[{self.name}] Connection reset by peer")
            return 0

    def write(self, b: BytesLike) -> int:
        """
        Send all of b.

        sendall() blocks until everything is sent, so a write is never
        short; failures are raised as OSError.
        """
        self._socket().sendall(b)
        return len(b)

    def close_write(self) -> None:
        """Send FIN: tell the peer we are done sending."""
        try:
            self._socket().shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

    def close(self) -> None:
        """Shut down both directions and release the file descriptor."""
        if self.sock is None:
            return
        sock, self.sock = self.sock, None
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected, that's fine
        try:
            sock.close()
        except OSError:
            pass
        logger.debug(f"[{self.name}] Socket closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"SocketStream({self.name!r})"
