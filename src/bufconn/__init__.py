"""
=============================================================================
BUFCONN - Buffered Streams and Persistent Connections
=============================================================================

This package provides the plumbing between a raw byte stream (socket,
pipe, file) and code that speaks a message protocol over it.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    BUFCONN LAYERS (leaves first)                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. SYNCHRONIZATION PRIMITIVES                                     │
    │      - Mutex, RWMutex, Cond, Once, WaitGroup                        │
    │                                                                      │
    │   2. BYTE STREAMS AND BUFFERED I/O                                  │
    │      - Capability interfaces (Reader, Writer, Seeker, ...)          │
    │      - copy / read_full and reader / writer adapters                │
    │      - BufferedReader: peek, read_slice, read_line, unread          │
    │      - BufferedWriter: deferred flush                               │
    │                                                                      │
    │   3. PIPELINED PERSISTENT CONNECTIONS                               │
    │      - ServerConn / ClientConn over one duplex stream               │
    │      - FIFO request/response pairing, hijack, sticky errors         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    bufconn/
    ├── __init__.py          # This file - package exports
    ├── config.py            # StreamConfig dataclass, logging setup
    ├── errors.py            # Exception hierarchy
    ├── sync/                # Concurrency primitives
    │   ├── atomic.py        # AtomicInt, Semaphore
    │   ├── mutex.py         # Mutex, Locker
    │   ├── rwmutex.py       # RWMutex
    │   ├── cond.py          # Cond
    │   ├── once.py          # Once
    │   └── waitgroup.py     # WaitGroup
    ├── streams/             # Byte-stream interfaces and adapters
    │   ├── interfaces.py    # Reader, Writer, ... protocols
    │   ├── transfer.py      # copy, copy_n, read_full, read_at_least
    │   ├── readers.py       # Limited/Section/Tee/Multi readers
    │   ├── memory.py        # BytesReader, BytesBuffer
    │   ├── pipe.py          # In-memory synchronous pipe
    │   ├── socket.py        # SocketStream adapter
    │   └── utf8.py          # Rune helpers
    ├── bufio/               # Buffered reader and writer
    │   ├── reader.py
    │   └── writer.py
    └── persist/             # Persistent connection endpoints
        ├── pipeline.py      # Request/response sequencing
        ├── framing.py       # FramingCodec, LineCodec, Request, Response
        ├── endpoint.py      # Shared endpoint machinery, ReadState
        ├── server.py        # ServerConn
        └── client.py        # ClientConn, ProxyClientConn

=============================================================================
QUICK START
=============================================================================

    from bufconn import ClientConn, Request, SocketStream

    stream = SocketStream(socket.create_connection(("example.com", 80)))
    with ClientConn(stream) as conn:
        a = Request("GET", "/a", headers={"host": "example.com"})
        b = Request("GET", "/b", headers={"host": "example.com"})
        conn.write(a)
        conn.write(b)
        print(conn.read(a).body.read())
        print(conn.read(b).body.read())

=============================================================================
"""

from .config import StreamConfig, setup_logging
from .errors import (
    BufferFullError,
    ClosedByUserError,
    ClosedConnectionError,
    ClosedPipeError,
    EndOfStream,
    FrameError,
    InvalidUnreadByteError,
    InvalidUnreadRuneError,
    MisuseError,
    NegativeCountError,
    NoProgressError,
    PersistentEOFError,
    PipelineError,
    ProtocolError,
    ShortBufferError,
    ShortWriteError,
    StreamError,
    UnexpectedEOFError,
)
from .sync import Cond, Mutex, Once, RWMutex, WaitGroup
from .streams import (
    BytesBuffer,
    BytesReader,
    LimitedReader,
    MultiReader,
    MultiWriter,
    SectionReader,
    SocketStream,
    TeeReader,
    copy,
    copy_n,
    discard,
    duplex_pipe,
    pipe,
    read_at_least,
    read_full,
)
from .bufio import BufferedReader, BufferedWriter, ReadWriter, new_reader, new_writer
from .persist import (
    ClientConn,
    LineCodec,
    ProxyClientConn,
    ReadState,
    Request,
    Response,
    ServerConn,
)

__version__ = "1.0.0"
__all__ = [
    # Config
    "StreamConfig",
    "setup_logging",
    # Errors
    "StreamError",
    "NegativeCountError",
    "InvalidUnreadByteError",
    "InvalidUnreadRuneError",
    "ShortBufferError",
    "BufferFullError",
    "EndOfStream",
    "UnexpectedEOFError",
    "NoProgressError",
    "ShortWriteError",
    "ClosedPipeError",
    "ProtocolError",
    "PersistentEOFError",
    "ClosedByUserError",
    "PipelineError",
    "ClosedConnectionError",
    "FrameError",
    "MisuseError",
    # Sync
    "Mutex",
    "RWMutex",
    "Cond",
    "Once",
    "WaitGroup",
    # Streams
    "copy",
    "copy_n",
    "read_full",
    "read_at_least",
    "LimitedReader",
    "SectionReader",
    "TeeReader",
    "MultiReader",
    "MultiWriter",
    "discard",
    "BytesReader",
    "BytesBuffer",
    "pipe",
    "duplex_pipe",
    "SocketStream",
    # Buffered I/O
    "BufferedReader",
    "BufferedWriter",
    "ReadWriter",
    "new_reader",
    "new_writer",
    # Persistent connections
    "ServerConn",
    "ClientConn",
    "ProxyClientConn",
    "ReadState",
    "Request",
    "Response",
    "LineCodec",
]
