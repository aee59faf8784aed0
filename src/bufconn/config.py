"""
=============================================================================
STREAM CONFIGURATION
=============================================================================

Centralized configuration for buffer sizes, copy chunking and logging.

=============================================================================
WHY A CONFIG CLASS?
=============================================================================

Buffer sizing is the one knob every layer shares:

1. Centralized - One place to see all options
2. Typed - IDE autocomplete and error detection
3. Validated - Catch errors early
4. Configurable - From code or environment

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Explicit constructor arguments                                 │
    │      └── BufferedReader(src, size=8192)                            │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── BUFCONN_READ_BUFFER=8192                                  │
    │                                                                      │
    │   3. Default values (module constants below)                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Final


DEFAULT_BUFFER_SIZE: Final[int] = 4096
"""Default capacity of buffered readers and writers."""

MIN_READ_BUFFER_SIZE: Final[int] = 16
"""Buffered readers are never smaller than this."""

MAX_CONSECUTIVE_EMPTY_READS: Final[int] = 100
"""Empty reads tolerated before a reader gives up with NoProgressError."""

DEFAULT_COPY_BUFFER_SIZE: Final[int] = 32 * 1024
"""Scratch buffer size used by copy() when no fast path applies."""

LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"


@dataclass
class StreamConfig:
    """
    Configuration for bufconn readers, writers and copies.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    BUFFERING
    - reader_buffer_size, writer_buffer_size

    READ POLICY
    - max_consecutive_empty_reads

    COPYING
    - copy_buffer_size

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # BUFFERING
    # ─────────────────────────────────────────────────────────────────────

    reader_buffer_size: int = DEFAULT_BUFFER_SIZE
    """
    Capacity of each BufferedReader in bytes.
    Values below MIN_READ_BUFFER_SIZE are raised to it by the reader.
    """

    writer_buffer_size: int = DEFAULT_BUFFER_SIZE
    """
    Capacity of each BufferedWriter in bytes.
    Zero or negative maps to DEFAULT_BUFFER_SIZE.
    """

    # ─────────────────────────────────────────────────────────────────────
    # READ POLICY
    # ─────────────────────────────────────────────────────────────────────

    max_consecutive_empty_reads: int = MAX_CONSECUTIVE_EMPTY_READS
    """
    How many times in a row a source may return no bytes and no error
    before the reader records NoProgressError.
    """

    # ─────────────────────────────────────────────────────────────────────
    # COPYING
    # ─────────────────────────────────────────────────────────────────────

    copy_buffer_size: int = DEFAULT_COPY_BUFFER_SIZE
    """Scratch buffer for copy() when neither side has a fast path."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level for the bufconn logger (DEBUG, INFO, WARNING, ...)."""

    @classmethod
    def from_env(cls) -> "StreamConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        BUFCONN_READ_BUFFER      Reader capacity (default: 4096)
        BUFCONN_WRITE_BUFFER     Writer capacity (default: 4096)
        BUFCONN_MAX_EMPTY_READS  Empty-read tolerance (default: 100)
        BUFCONN_COPY_BUFFER      copy() scratch size (default: 32768)
        BUFCONN_LOG_LEVEL        Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            reader_buffer_size=int(
                os.getenv("BUFCONN_READ_BUFFER", str(DEFAULT_BUFFER_SIZE))
            ),
            writer_buffer_size=int(
                os.getenv("BUFCONN_WRITE_BUFFER", str(DEFAULT_BUFFER_SIZE))
            ),
            max_consecutive_empty_reads=int(
                os.getenv("BUFCONN_MAX_EMPTY_READS", str(MAX_CONSECUTIVE_EMPTY_READS))
            ),
            copy_buffer_size=int(
                os.getenv("BUFCONN_COPY_BUFFER", str(DEFAULT_COPY_BUFFER_SIZE))
            ),
            log_level=os.getenv("BUFCONN_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Fail fast at startup rather than deep inside a read loop.
        """
        if self.reader_buffer_size < MIN_READ_BUFFER_SIZE:
            raise ValueError(
                f"reader_buffer_size must be >= {MIN_READ_BUFFER_SIZE}"
            )

        if self.writer_buffer_size <= 0:
            raise ValueError("writer_buffer_size must be > 0")

        if self.max_consecutive_empty_reads < 1:
            raise ValueError("max_consecutive_empty_reads must be >= 1")

        if self.copy_buffer_size < 1:
            raise ValueError("copy_buffer_size must be >= 1")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Invalid log_level: {self.log_level}")


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for applications embedding bufconn.

    The library itself only creates loggers; it never installs handlers
    unless asked to here.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )

    logging.getLogger("bufconn").setLevel(numeric)


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Module constants are the single source of default sizes
# 2. StreamConfig groups them for applications (from_env + validate)
# 3. setup_logging mirrors the server-style log format
# =============================================================================
