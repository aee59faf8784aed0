"""
=============================================================================
BYTE STREAMS
=============================================================================

Capability interfaces, combinators and concrete streams.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  interfaces   Reader, Writer, Seeker, ReaderAt, WriterTo, ...       │
    │  transfer     copy, copy_n, read_full, read_at_least                │
    │  readers      LimitedReader, SectionReader, TeeReader,              │
    │               MultiReader, MultiWriter, discard, NopCloser          │
    │  memory       BytesReader, BytesBuffer                              │
    │  pipe         pipe(), duplex_pipe()                                 │
    │  socket       SocketStream                                          │
    │  utf8         rune decoding helpers                                 │
    └─────────────────────────────────────────────────────────────────────┘
"""

from .interfaces import (
    SEEK_CUR,
    SEEK_END,
    SEEK_SET,
    Buffer,
    ByteReader,
    ByteScanner,
    ByteWriter,
    BytesLike,
    Closer,
    ReadCloser,
    Reader,
    ReaderAt,
    ReaderFrom,
    ReadSeeker,
    ReadWriteCloser,
    ReadWriter,
    RuneReader,
    RuneScanner,
    Seeker,
    StringWriter,
    WriteCloser,
    Writer,
    WriterAt,
    WriterTo,
    read_some,
    write_full,
    write_some,
)
from .readers import (
    LimitedReader,
    MultiReader,
    MultiWriter,
    NopCloser,
    SectionReader,
    TeeReader,
    discard,
    limit_reader,
    multi_reader,
    multi_writer,
    tee_reader,
)
from .transfer import copy, copy_buffer, copy_n, read_at_least, read_full, write_string
from .memory import BytesBuffer, BytesReader
from .pipe import PipeReader, PipeStream, PipeWriter, duplex_pipe, pipe
from .socket import SocketStream

__all__ = [
    "SEEK_SET",
    "SEEK_CUR",
    "SEEK_END",
    "Buffer",
    "BytesLike",
    "Reader",
    "Writer",
    "Closer",
    "Seeker",
    "ReaderAt",
    "WriterAt",
    "ReaderFrom",
    "WriterTo",
    "ByteReader",
    "ByteScanner",
    "ByteWriter",
    "RuneReader",
    "RuneScanner",
    "StringWriter",
    "ReadWriter",
    "ReadCloser",
    "WriteCloser",
    "ReadWriteCloser",
    "ReadSeeker",
    "read_some",
    "write_some",
    "write_full",
    "copy",
    "copy_buffer",
    "copy_n",
    "read_at_least",
    "read_full",
    "write_string",
    "LimitedReader",
    "limit_reader",
    "SectionReader",
    "TeeReader",
    "tee_reader",
    "MultiReader",
    "multi_reader",
    "MultiWriter",
    "multi_writer",
    "discard",
    "NopCloser",
    "BytesReader",
    "BytesBuffer",
    "pipe",
    "duplex_pipe",
    "PipeReader",
    "PipeWriter",
    "PipeStream",
    "SocketStream",
]
