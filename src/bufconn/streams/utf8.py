"""
UTF-8 helpers for rune-at-a-time reading and writing.

A "rune" here is one Unicode code point, returned as a one-character str
together with the number of bytes it occupied in the stream.
"""

from typing import Final, Union


UTF_MAX: Final[int] = 4
"""Maximum number of bytes of a UTF-8 encoded code point."""

RUNE_SELF: Final[int] = 0x80
"""Bytes below RUNE_SELF encode themselves as a single-byte rune."""

RUNE_ERROR: Final[str] = "\uFFFD"
"""Returned for invalid encodings (the Unicode replacement character)."""

_MAX_RUNE = 0x10FFFF
_SURROGATE_MIN = 0xD800
_SURROGATE_MAX = 0xDFFF

BytesLike = Union[bytes, bytearray, memoryview]


def _sequence_length(lead: int) -> int:
    """Expected encoded length from the lead byte, 0 if it cannot lead."""
    if lead < 0x80:
        return 1
    if 0xC2 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF4:
        return 4
    return 0


def _accept_range(lead: int) -> tuple[int, int]:
    """Valid range for the SECOND byte, which rules out overlongs and surrogates."""
    if lead == 0xE0:
        return 0xA0, 0xBF
    if lead == 0xED:
        return 0x80, 0x9F
    if lead == 0xF0:
        return 0x90, 0xBF
    if lead == 0xF4:
        return 0x80, 0x8F
    return 0x80, 0xBF


def full_rune(b: BytesLike) -> bool:
    """
    Report whether b begins with a full UTF-8 encoding of a rune.

    An invalid encoding is considered a full rune since it will convert
    as a width-1 error rune.
    """
    n = len(b)
    if n == 0:
        return False
    lead = b[0]
    size = _sequence_length(lead)
    if size == 0 or n >= size:
        return True
    # Too short for the lead byte; still "full" if an early byte is invalid.
    lo, hi = _accept_range(lead)
    if n > 1 and not lo <= b[1] <= hi:
        return True
    if n > 2 and not 0x80 <= b[2] <= 0xBF:
        return True
    return False


def decode_rune(b: BytesLike) -> tuple[str, int]:
    """
    Decode the first rune in b.

    Returns:
        (rune, size). For empty input returns (RUNE_ERROR, 0); for an
        invalid or incomplete encoding returns (RUNE_ERROR, 1).
    """
    n = len(b)
    if n == 0:
        return RUNE_ERROR, 0
    lead = b[0]
    if lead < RUNE_SELF:
        return chr(lead), 1
    size = _sequence_length(lead)
    if size == 0 or n < size:
        return RUNE_ERROR, 1
    lo, hi = _accept_range(lead)
    if not lo <= b[1] <= hi:
        return RUNE_ERROR, 1
    for i in range(2, size):
        if not 0x80 <= b[i] <= 0xBF:
            return RUNE_ERROR, 1
    return bytes(b[:size]).decode("utf-8"), size


def rune_len(ch: str) -> int:
    """Number of bytes needed to encode ch, or -1 if it is not encodable."""
    cp = ord(ch)
    if cp < 0:
        return -1
    if cp < 0x80:
        return 1
    if cp < 0x800:
        return 2
    if _SURROGATE_MIN <= cp <= _SURROGATE_MAX:
        return -1
    if cp < 0x10000:
        return 3
    if cp <= _MAX_RUNE:
        return 4
    return -1


def encode_rune(ch: str) -> bytes:
    """
    Encode a single character as UTF-8.

    Surrogate code points cannot be encoded and produce RUNE_ERROR.
    """
    if len(ch) != 1:
        raise ValueError(f"encode_rune expects a single character, got {ch!r}")
    if rune_len(ch) < 0:
        ch = RUNE_ERROR
    return ch.encode("utf-8")
