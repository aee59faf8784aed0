"""
=============================================================================
BUFFERED I/O
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  BufferedReader   peek, read_slice, read_line, read_rune, unread    │
    │  BufferedWriter   deferred flush, write_string / write_rune         │
    │  ReadWriter       one of each behind a single object                │
    └─────────────────────────────────────────────────────────────────────┘

Usage:
    reader = new_reader(stream)
    line, is_prefix = reader.read_line()

    writer = new_writer(stream)
    writer.write_string("hello\\n")
    writer.flush()
"""

from .reader import BufferedReader, new_reader, new_reader_size
from .writer import BufferedWriter, ReadWriter, new_read_writer, new_writer, new_writer_size

__all__ = [
    "BufferedReader",
    "new_reader",
    "new_reader_size",
    "BufferedWriter",
    "new_writer",
    "new_writer_size",
    "ReadWriter",
    "new_read_writer",
]
