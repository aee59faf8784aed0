"""
Unit tests for configuration and logging setup.
"""

import logging

import pytest

from bufconn.bufio import BufferedReader
from bufconn.config import (
    DEFAULT_BUFFER_SIZE,
    MAX_CONSECUTIVE_EMPTY_READS,
    StreamConfig,
    setup_logging,
)
from bufconn.streams import BytesBuffer, BytesReader, copy_buffer


class TestStreamConfig:
    """Tests for StreamConfig."""

    def test_defaults(self):
        config = StreamConfig()
        assert config.reader_buffer_size == DEFAULT_BUFFER_SIZE
        assert config.writer_buffer_size == DEFAULT_BUFFER_SIZE
        assert config.max_consecutive_empty_reads == MAX_CONSECUTIVE_EMPTY_READS
        config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("BUFCONN_READ_BUFFER", "64")
        monkeypatch.setenv("BUFCONN_WRITE_BUFFER", "128")
        monkeypatch.setenv("BUFCONN_MAX_EMPTY_READS", "5")
        monkeypatch.setenv("BUFCONN_COPY_BUFFER", "256")
        monkeypatch.setenv("BUFCONN_LOG_LEVEL", "DEBUG")
        config = StreamConfig.from_env()
        assert config.reader_buffer_size == 64
        assert config.writer_buffer_size == 128
        assert config.max_consecutive_empty_reads == 5
        assert config.copy_buffer_size == 256
        assert config.log_level == "DEBUG"
        config.validate()

    @pytest.mark.parametrize("field,value", [
        ("reader_buffer_size", 8),
        ("writer_buffer_size", 0),
        ("max_consecutive_empty_reads", 0),
        ("copy_buffer_size", 0),
        ("log_level", "CHATTY"),
    ])
    def test_validate_rejects(self, field: str, value):
        config = StreamConfig(**{field: value})
        with pytest.raises(ValueError):
            config.validate()

    def test_drives_reader_and_copy(self):
        config = StreamConfig(reader_buffer_size=32, copy_buffer_size=3)
        br = BufferedReader(BytesReader(b"data"), config.reader_buffer_size)
        assert br.size() == 32

        class Sink:
            def __init__(self):
                self.out = BytesBuffer()

            def write(self, b):
                return self.out.write(b)

        class Source:
            def __init__(self):
                self.r = BytesReader(b"0123456789")

            def readinto(self, b):
                return self.r.readinto(b)

        sink = Sink()
        assert copy_buffer(sink, Source(), bytearray(config.copy_buffer_size)) == 10
        assert sink.out.getvalue() == b"0123456789"


class TestSetupLogging:
    def test_sets_package_level(self):
        setup_logging("WARNING")
        assert logging.getLogger("bufconn").level == logging.WARNING
        setup_logging("DEBUG")
        assert logging.getLogger("bufconn").level == logging.DEBUG
