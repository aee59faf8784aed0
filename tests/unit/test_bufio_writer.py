"""
Unit tests for BufferedWriter and ReadWriter.
"""

import pytest
from hypothesis import given, strategies as st

from bufconn.bufio import BufferedReader, BufferedWriter, ReadWriter, new_writer, new_writer_size
from bufconn.errors import NoProgressError, ShortWriteError, UnexpectedEOFError
from bufconn.streams import BytesBuffer, BytesReader

from conftest import ChunkedReader, FailingWriter, ShortWriter


class PlainWriter:
    """Only write(): keeps BufferedWriter off its delegation paths."""

    def __init__(self):
        self.data = bytearray()
        self.calls = 0

    def write(self, b):
        self.calls += 1
        self.data += bytes(b)
        return len(b)


class PlainReader:
    def __init__(self, data: bytes):
        self._r = BytesReader(data)

    def readinto(self, b):
        return self._r.readinto(b)


class TestConstruction:
    """Tests for sizing and reuse."""

    def test_non_positive_size_means_default(self):
        assert BufferedWriter(PlainWriter(), 0).size() == 4096
        assert BufferedWriter(PlainWriter(), -5).size() == 4096

    def test_new_writer_size_reuses_large_enough(self):
        bw = BufferedWriter(PlainWriter(), 64)
        assert new_writer_size(bw, 32) is bw
        assert new_writer_size(bw, 128) is not bw
        assert new_writer(PlainWriter()).size() == 4096


class TestWrite:
    """Tests for write and flush."""

    def test_small_writes_are_buffered(self):
        dst = PlainWriter()
        bw = BufferedWriter(dst, 16)
        assert bw.write(b"abc") == 3
        assert dst.calls == 0
        assert bw.buffered() == 3
        assert bw.available() == 13
        bw.flush()
        assert bytes(dst.data) == b"abc"
        assert bw.buffered() == 0

    def test_large_write_on_empty_buffer_goes_direct(self):
        dst = PlainWriter()
        bw = BufferedWriter(dst, 16)
        assert bw.write(b"q" * 40) == 40
        assert bytes(dst.data) == b"q" * 40
        assert bw.buffered() == 0

    def test_top_up_then_flush(self):
        dst = PlainWriter()
        bw = BufferedWriter(dst, 16)
        bw.write(b"a" * 10)
        bw.write(b"b" * 10)
        assert bytes(dst.data) == b"a" * 10 + b"b" * 6
        assert bw.buffered() == 4

    def test_flush_empty_is_noop(self):
        dst = PlainWriter()
        BufferedWriter(dst, 16).flush()
        assert dst.calls == 0

    def test_short_write_keeps_residual(self):
        dst = ShortWriter(5)
        bw = BufferedWriter(dst, 16)
        bw.write(b"0123456789")
        with pytest.raises(ShortWriteError):
            bw.flush()
        assert bytes(dst.data) == b"01234"
        assert bw.buffered() == 5

        # The error sticks until reset.
        with pytest.raises(ShortWriteError):
            bw.write(b"more")
        with pytest.raises(ShortWriteError):
            bw.flush()

        fresh = PlainWriter()
        bw.reset(fresh)
        bw.write(b"ok")
        bw.flush()
        assert bytes(fresh.data) == b"ok"

    def test_writer_error_is_sticky(self):
        dst = FailingWriter(OSError("disk full"))
        bw = BufferedWriter(dst, 16)
        with pytest.raises(OSError, match="disk full"):
            bw.write(b"z" * 40)
        with pytest.raises(OSError, match="disk full"):
            bw.write(b"z")
        with pytest.raises(OSError):
            bw.flush()
        assert dst.calls == 1

    def test_partial_write_reports_progress(self):
        dst = ShortWriter(20)
        bw = BufferedWriter(dst, 16)
        bw.write(b"x" * 8)
        with pytest.raises(ShortWriteError) as exc_info:
            bw.write(b"y" * 40)
        assert exc_info.value.n == 12
        assert bytes(dst.data) == b"x" * 8 + b"y" * 8 + b"y" * 4


class TestSmallWrites:
    """Tests for write_byte, write_rune and write_string."""

    def test_write_byte(self):
        dst = PlainWriter()
        bw = BufferedWriter(dst, 16)
        for c in b"x" * 20:
            bw.write_byte(c)
        bw.flush()
        assert bytes(dst.data) == b"x" * 20

    def test_write_rune(self):
        dst = PlainWriter()
        bw = BufferedWriter(dst, 16)
        assert bw.write_rune("a") == 1
        assert bw.write_rune("€") == 3
        assert bw.write_rune("😀") == 4
        bw.flush()
        assert bytes(dst.data) == "a€😀".encode("utf-8")

    def test_write_rune_near_full_buffer(self):
        dst = PlainWriter()
        bw = BufferedWriter(dst, 16)
        bw.write(b"." * 14)
        assert bw.write_rune("€") == 3
        bw.flush()
        assert bytes(dst.data) == b"." * 14 + "€".encode("utf-8")

    def test_write_string(self):
        dst = PlainWriter()
        bw = BufferedWriter(dst, 16)
        assert bw.write_string("héllo") == 6
        bw.flush()
        assert dst.data.decode("utf-8") == "héllo"

    def test_write_string_forwards_large(self):
        dst = BytesBuffer()
        bw = BufferedWriter(dst, 16)
        assert bw.write_string("w" * 40) == 40
        assert bw.buffered() == 0
        assert dst.getvalue() == b"w" * 40


class TestReadFrom:
    """Tests for read_from."""

    def test_through_buffer(self):
        dst = PlainWriter()
        bw = BufferedWriter(dst, 16)
        assert bw.read_from(PlainReader(b"r" * 40)) == 40
        bw.flush()
        assert bytes(dst.data) == b"r" * 40

    def test_delegates_when_empty(self):
        dst = BytesBuffer()
        bw = BufferedWriter(dst, 16)
        assert bw.read_from(PlainReader(b"d" * 40)) == 40
        assert bw.buffered() == 0
        assert dst.getvalue() == b"d" * 40

    def test_flushes_pending_before_delegating(self):
        dst = BytesBuffer()
        bw = BufferedWriter(dst, 16)
        bw.write(b"head:")
        bw.read_from(PlainReader(b"t" * 40))
        bw.flush()
        assert dst.getvalue() == b"head:" + b"t" * 40

    def test_delegated_source_error_does_not_stick(self):
        dst = BytesBuffer()
        bw = BufferedWriter(dst, 16)
        with pytest.raises(UnexpectedEOFError):
            bw.read_from(ChunkedReader([b"abc", UnexpectedEOFError()]))

        bw.write(b"ok")
        bw.flush()
        assert dst.getvalue() == b"abcok"

    def test_no_progress(self):
        bw = BufferedWriter(PlainWriter(), 16)
        with pytest.raises(NoProgressError):
            bw.read_from(ChunkedReader([None] * 200))


class TestReadWriter:
    def test_delegates(self):
        out = PlainWriter()
        rw = ReadWriter(BufferedReader(BytesReader(b"in\nmore")), BufferedWriter(out))
        assert rw.read_string("\n") == "in\n"
        assert rw.read_byte() == ord("m")
        rw.write_string("out")
        rw.write_byte(ord("!"))
        rw.flush()
        assert bytes(out.data) == b"out!"


class TestProperties:
    @given(
        chunks=st.lists(st.binary(max_size=50), max_size=20),
        size=st.integers(min_value=1, max_value=64),
    )
    def test_output_is_concatenation(self, chunks, size):
        dst = PlainWriter()
        bw = BufferedWriter(dst, size)
        total = sum(bw.write(c) for c in chunks)
        bw.flush()
        assert total == sum(len(c) for c in chunks)
        assert bytes(dst.data) == b"".join(chunks)
