"""LEB128 zig-zag integers and the base64 form used by histogram logs."""

from __future__ import annotations

import base64 as _stdlib_base64
import math

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
MAX_BYTES_LEB128 = 9

_MASK64 = (1 << 64) - 1
_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_DECODE_TABLE = {char: index for index, char in enumerate(_ALPHABET)}
_DECODE_TABLE["="] = 0


def zig_zag_encode(value: int) -> bytes:
    """Encode a signed 64-bit integer as LEB128 zig-zag bytes (1 to 9 bytes)."""
    if not INT64_MIN <= value <= INT64_MAX:
        raise ValueError(f"value {value} does not fit in a signed 64-bit integer")

    remaining = ((value << 1) ^ (value >> 63)) & _MASK64
    out = bytearray()
    for _ in range(MAX_BYTES_LEB128 - 1):
        if remaining >> 7 == 0:
            out.append(remaining)
            return bytes(out)
        out.append((remaining & 0x7F) | 0x80)
        remaining >>= 7
    # The ninth byte carries a full eight bits.
    out.append(remaining & 0xFF)
    return bytes(out)


def _byte_at(buffer: bytes | bytearray | memoryview, position: int) -> int:
    return buffer[position] if position < len(buffer) else 0


def zig_zag_decode(
    buffer: bytes | bytearray | memoryview, offset: int = 0
) -> tuple[int, int]:
    """Decode one LEB128 zig-zag integer starting at ``offset``.

    Returns ``(value, bytes_read)``. Bytes past the end of ``buffer`` read as
    zero, so a truncated value shows up as a ``bytes_read`` that runs past the
    end of the data.
    """
    value = 0
    bytes_read = 0
    for shift in range(0, 56, 7):
        byte = _byte_at(buffer, offset + bytes_read)
        bytes_read += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            break
    else:
        byte = _byte_at(buffer, offset + bytes_read)
        bytes_read += 1
        value |= byte << 56

    return (value >> 1) ^ -(value & 1), bytes_read


def base64_encoded_len(decoded_size: int) -> int:
    """Length of the base64 text for ``decoded_size`` bytes of input."""
    return math.ceil(decoded_size / 3) * 4


def base64_decoded_len(encoded_size: int) -> int:
    """Length of the decoded data for ``encoded_size`` characters of base64."""
    return (encoded_size // 4) * 3


def base64_encode(data: bytes | bytearray | memoryview) -> str:
    """Encode bytes as padded base64 text."""
    return _stdlib_base64.b64encode(bytes(data)).decode("ascii")


def base64_decode(text: str | bytes) -> bytes:
    """Decode base64 text.

    The text must be a non-empty multiple of four characters long. Padding
    characters decode as zero bits, so the result is always
    ``base64_decoded_len(len(text))`` bytes long.
    """
    if isinstance(text, (bytes, bytearray)):
        text = text.decode("ascii", errors="replace")
    if len(text) < 4 or len(text) % 4 != 0:
        raise ValueError(
            f"base64 input length {len(text)} is not a positive multiple of 4"
        )

    out = bytearray()
    chars = iter(text)
    for block in zip(chars, chars, chars, chars):
        try:
            sextets = [_DECODE_TABLE[char] for char in block]
        except KeyError as exc:
            raise ValueError(f"invalid base64 character {exc.args[0]!r}") from None
        bits = (sextets[0] << 18) | (sextets[1] << 12) | (sextets[2] << 6) | sextets[3]
        out += bits.to_bytes(3, "big")
    return bytes(out)