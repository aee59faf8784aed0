"""
=============================================================================
PERSISTENT (KEEP-ALIVE) CONNECTIONS
=============================================================================

Pipelined request/response endpoints over a single duplex byte stream.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  ServerConn        read() requests, write(req, resp) responses      │
    │  ClientConn        write(req) requests, read(req) responses         │
    │  ProxyClientConn   ClientConn writing absolute targets              │
    │  Pipeline          FIFO pairing of the two halves                   │
    │  LineCodec         default start-line + headers + body framing      │
    └─────────────────────────────────────────────────────────────────────┘
"""

from .pipeline import Pipeline, Sequencer
from .framing import Body, FramingCodec, LineCodec, Request, Response
from .endpoint import Endpoint, ReadState
from .server import ServerConn, new_server_conn
from .client import ClientConn, ProxyClientConn, new_client_conn, new_proxy_client_conn


__all__ = [
    "Pipeline",
    "Sequencer",
    "Body",
    "FramingCodec",
    "LineCodec",
    "Request",
    "Response",
    "Endpoint",
    "ReadState",
    "ServerConn",
    "new_server_conn",
    "ClientConn",
    "ProxyClientConn",
    "new_client_conn",
    "new_proxy_client_conn",
]
