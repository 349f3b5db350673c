import errno
import struct
import zlib

import pytest

from hdrhist import codec
from hdrhist.codec import HdrLogError, decode_compressed, encode_compressed, log_decode, log_encode, strerror
from hdrhist.encoding import zig_zag_encode
from hdrhist.histogram import Histogram

HIGHEST = 3600 * 1000 * 1000


def _sample() -> Histogram:
    h = Histogram(1, HIGHEST, 3)
    for value in (1, 5, 100, 1000, 12345, 1000000):
        h.record_value(value)
    h.record_values(42, 10)
    return h


def _frame(inner: bytes, cookie: int) -> bytes:
    compressed = zlib.compress(inner)
    return struct.pack(">ii", cookie, len(compressed)) + compressed


def _v2_frame(payload: bytes) -> bytes:
    header = struct.pack(
        ">iiiiqqd", codec.V2_ENCODING_COOKIE | 0x10, len(payload), 0, 3, 1, HIGHEST, 1.0
    )
    return _frame(header + payload, codec.V2_COMPRESSION_COOKIE | 0x10)


def _error_code(data: bytes) -> int:
    with pytest.raises(HdrLogError) as info:
        decode_compressed(data)
    return info.value.code


def test_round_trip_preserves_counts():
    h = _sample()
    decoded = decode_compressed(encode_compressed(h))
    assert decoded.counts == h.counts
    assert decoded.total_count == h.total_count
    assert decoded.min() == h.min()
    assert decoded.max() == h.max()
    assert decoded.lowest_trackable_value == h.lowest_trackable_value
    assert decoded.highest_trackable_value == h.highest_trackable_value
    assert decoded.significant_figures == h.significant_figures


def test_empty_histogram_round_trip():
    h = Histogram(1, HIGHEST, 2)
    decoded = decode_compressed(encode_compressed(h))
    assert decoded.total_count == 0
    assert decoded.counts == h.counts


def test_conversion_ratio_survives():
    h = _sample()
    h.conversion_ratio = 2.5
    assert decode_compressed(encode_compressed(h)).conversion_ratio == 2.5


def test_wire_cookies_and_length():
    data = encode_compressed(_sample())
    assert data[:4] == bytes.fromhex("1c849314")
    (length,) = struct.unpack(">i", data[4:8])
    assert length == len(data) - 8
    inner = zlib.decompress(data[8:])
    assert inner[:4] == bytes.fromhex("1c849313")


def test_decode_into_merges():
    h = _sample()
    target = _sample()
    result = decode_compressed(encode_compressed(h), into=target)
    assert result is target
    assert target.total_count == 2 * h.total_count
    assert target.count_at_value(42) == 2 * h.count_at_value(42)


def test_short_input_is_invalid():
    assert _error_code(b"\x1c\x84") == errno.EINVAL


def test_unknown_compression_cookie():
    data = struct.pack(">ii", 0x12345678, 0)
    assert _error_code(data) == codec.COMPRESSION_COOKIE_MISMATCH


def test_unknown_encoding_cookie():
    inner = struct.pack(">iiiiqqd", 0, 0, 0, 3, 1, HIGHEST, 1.0)
    assert _error_code(_frame(inner, codec.V2_COMPRESSION_COOKIE | 0x10)) == (
        codec.ENCODING_COOKIE_MISMATCH
    )


def test_corrupt_deflate_stream():
    junk = b"\xff" * 16
    data = struct.pack(">ii", codec.V2_COMPRESSION_COOKIE | 0x10, len(junk)) + junk
    assert _error_code(data) == codec.INFLATE_FAIL


def test_length_field_past_end():
    data = bytearray(encode_compressed(_sample()))
    data[4:8] = struct.pack(">i", len(data))
    assert _error_code(bytes(data)) == errno.EINVAL


def test_trailing_zeros_invalid():
    counts_len = Histogram(1, HIGHEST, 3).counts_len
    payload = zig_zag_encode(-(counts_len + 1))
    assert _error_code(_v2_frame(payload)) == codec.TRAILING_ZEROS_INVALID


def test_truncated_value():
    assert _error_code(_v2_frame(b"\x80")) == codec.VALUE_TRUNCATED


def test_input_too_long():
    counts_len = Histogram(1, HIGHEST, 3).counts_len
    payload = zig_zag_encode(-counts_len) + zig_zag_encode(1)
    assert _error_code(_v2_frame(payload)) == codec.ENCODED_INPUT_TOO_LONG


def test_decode_v1_word_size_eight():
    counts = [0, 5, 0, 0]
    body = b"".join(struct.pack(">q", c) for c in counts)
    header = struct.pack(
        ">iiiiqqd", codec.V1_ENCODING_COOKIE | 0x80, len(body), 0, 3, 1, HIGHEST, 1.0
    )
    h = decode_compressed(_frame(header + body, codec.V1_COMPRESSION_COOKIE))
    assert h.count_at_index(1) == 5
    assert h.total_count == 5
    assert h.count_at_value(h.value_at_index(1)) == 5


def test_decode_v0_word_size_four():
    counts = [0] * 10 + [7]
    body = b"".join(struct.pack(">i", c) for c in counts)
    header = struct.pack(">iiqqq", codec.V0_ENCODING_COOKIE | 0x40, 3, 1, HIGHEST, 7)
    h = decode_compressed(_frame(header + body, codec.V0_COMPRESSION_COOKIE))
    assert h.count_at_index(10) == 7
    assert h.total_count == 7
    assert h.conversion_ratio == 1.0


def test_log_encode_decode_round_trip():
    h = _sample()
    text = log_encode(h)
    assert len(text) % 4 == 0
    decoded = log_decode(text)
    assert decoded.counts == h.counts
    assert decoded.total_count == h.total_count


def test_log_decode_bad_length():
    with pytest.raises(HdrLogError) as info:
        log_decode("abc")
    assert info.value.code == errno.EINVAL


@pytest.mark.parametrize(
    "code, message",
    [
        (codec.COMPRESSION_COOKIE_MISMATCH, "Compression cookie mismatch"),
        (codec.ENCODING_COOKIE_MISMATCH, "Encoding cookie mismatch"),
        (codec.INFLATE_FAIL, "Inflate failed"),
        (codec.LOG_INVALID_VERSION, "Log - invalid version in log header"),
        (codec.TRAILING_ZEROS_INVALID, "Invalid number of trailing zeros"),
        (codec.VALUE_TRUNCATED, "Truncated value found when decoding"),
    ],
)
def test_strerror_known_codes(code, message):
    assert strerror(code) == message
    assert str(HdrLogError(code)) == message


def test_strerror_falls_back_to_os():
    import os

    assert strerror(errno.EINVAL) == os.strerror(errno.EINVAL)