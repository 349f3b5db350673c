"""Compressed binary encoding of histograms, as carried in histogram logs."""

from __future__ import annotations

import errno
import itertools
import os
import struct
import zlib

from hdrhist.encoding import base64_decode, base64_encode, zig_zag_decode, zig_zag_encode
from hdrhist.histogram import Histogram

COMPRESSION_COOKIE_MISMATCH = -29999
ENCODING_COOKIE_MISMATCH = -29998
DEFLATE_INIT_FAIL = -29997
DEFLATE_FAIL = -29996
INFLATE_INIT_FAIL = -29995
INFLATE_FAIL = -29994
LOG_INVALID_VERSION = -29993
TRAILING_ZEROS_INVALID = -29992
VALUE_TRUNCATED = -29991
ENCODED_INPUT_TOO_LONG = -29990
EOF = -1

V0_ENCODING_COOKIE = 0x1C849308
V0_COMPRESSION_COOKIE = 0x1C849309
V1_ENCODING_COOKIE = 0x1C849301
V1_COMPRESSION_COOKIE = 0x1C849302
V2_ENCODING_COOKIE = 0x1C849303
V2_COMPRESSION_COOKIE = 0x1C849304

_INT32_MIN = -(1 << 31)

_MESSAGES = {
    COMPRESSION_COOKIE_MISMATCH: "Compression cookie mismatch",
    ENCODING_COOKIE_MISMATCH: "Encoding cookie mismatch",
    DEFLATE_INIT_FAIL: "Deflate initialisation failed",
    DEFLATE_FAIL: "Deflate failed",
    INFLATE_INIT_FAIL: "Inflate initialisation failed",
    INFLATE_FAIL: "Inflate failed",
    LOG_INVALID_VERSION: "Log - invalid version in log header",
    TRAILING_ZEROS_INVALID: "Invalid number of trailing zeros",
    VALUE_TRUNCATED: "Truncated value found when decoding",
    ENCODED_INPUT_TOO_LONG: "The encoded input exceeds the size of the histogram",
}

_COMPRESSION_HEADER = struct.Struct(">ii")
_ENCODING_HEADER_V0 = struct.Struct(">iiqqq")
_ENCODING_HEADER_V1 = struct.Struct(">iiiiqqd")
_WORD_FORMATS = {2: ">h", 4: ">i", 8: ">q"}


def strerror(code: int) -> str:
    """Readable description of a histogram log error code or errno value."""
    return _MESSAGES.get(code) or os.strerror(code)


class HdrLogError(Exception):
    """Failure while encoding, decoding, reading or writing a histogram log."""

    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or strerror(code))


def _cookie_base(cookie: int) -> int:
    return cookie & ~0xF0


def _word_size(cookie: int) -> int:
    return (cookie & 0xF0) >> 4


def encode_compressed(histogram: Histogram) -> bytes:
    """Encode ``histogram`` in the V2 compressed binary form."""
    len_to_max = histogram.counts_index_for(histogram.max_value) + 1
    counts_limit = min(len_to_max, histogram.counts_len)

    payload = bytearray()
    for value, run in itertools.groupby(histogram.counts[:counts_limit]):
        run_length = sum(1 for _ in run)
        if value == 0:
            payload += zig_zag_encode(-run_length)
        else:
            for _ in range(run_length):
                payload += zig_zag_encode(value)

    header = _ENCODING_HEADER_V1.pack(
        V2_ENCODING_COOKIE | 0x10,
        len(payload),
        histogram.normalizing_index_offset,
        histogram.significant_figures,
        histogram.lowest_trackable_value,
        histogram.highest_trackable_value,
        histogram.conversion_ratio,
    )
    try:
        compressed = zlib.compress(header + bytes(payload))
    except zlib.error as exc:
        raise HdrLogError(DEFLATE_FAIL) from exc

    return _COMPRESSION_HEADER.pack(V2_COMPRESSION_COOKIE | 0x10, len(compressed)) + compressed


def _inflate(data: bytes, length: int) -> bytes:
    compressed_length = _COMPRESSION_HEADER.unpack_from(data)[1]
    if compressed_length < 0 or length - _COMPRESSION_HEADER.size < compressed_length:
        raise HdrLogError(errno.EINVAL)
    body = data[_COMPRESSION_HEADER.size : _COMPRESSION_HEADER.size + compressed_length]
    inflater = zlib.decompressobj()
    try:
        inflated = inflater.decompress(body)
    except zlib.error as exc:
        raise HdrLogError(INFLATE_FAIL) from exc
    if not inflater.eof:
        raise HdrLogError(INFLATE_FAIL)
    return inflated


def _split(inflated: bytes, header: struct.Struct, body_len: int) -> tuple[tuple, bytes]:
    if len(inflated) < header.size:
        raise HdrLogError(INFLATE_FAIL)
    fields = header.unpack_from(inflated)
    body = inflated[header.size :]
    if len(body) > body_len:
        raise HdrLogError(INFLATE_FAIL)
    return fields, body + bytes(body_len - len(body))


def _new_histogram(lowest: int, highest: int, significant_figures: int) -> Histogram:
    try:
        return Histogram(lowest, highest, significant_figures)
    except ValueError as exc:
        raise HdrLogError(errno.EINVAL, str(exc)) from exc


def _apply_words(h: Histogram, word_size: int, data: bytes, counts_limit: int) -> None:
    if counts_limit > h.counts_len:
        raise HdrLogError(ENCODED_INPUT_TOO_LONG)
    word = struct.Struct(_WORD_FORMATS[word_size])
    for index, (count,) in enumerate(word.iter_unpack(data[: counts_limit * word_size])):
        h.counts[index] = count


def _apply_zig_zag(h: Histogram, data: bytes, data_limit: int) -> None:
    data_index = 0
    counts_index = 0
    while data_index < data_limit and counts_index < h.counts_len:
        value, read = zig_zag_decode(data, data_index)
        data_index += read
        if value < 0:
            zeros = -value
            if value <= _INT32_MIN or counts_index + zeros > h.counts_len:
                raise HdrLogError(TRAILING_ZEROS_INVALID)
            counts_index += zeros
        else:
            h.counts[counts_index] = value
            counts_index += 1

    if data_index > data_limit:
        raise HdrLogError(VALUE_TRUNCATED)
    if data_index < data_limit:
        raise HdrLogError(ENCODED_INPUT_TOO_LONG)


def _apply_counts(h: Histogram, word_size: int, data: bytes, counts_limit: int) -> None:
    if word_size == 1:
        _apply_zig_zag(h, data, counts_limit)
    elif word_size in _WORD_FORMATS:
        _apply_words(h, word_size, data, counts_limit)
    else:
        raise HdrLogError(errno.EINVAL, f"unsupported word size {word_size}")


def _decode_v0(data: bytes, length: int) -> Histogram:
    inflated = _inflate(data, length)
    if len(inflated) < _ENCODING_HEADER_V0.size:
        raise HdrLogError(INFLATE_FAIL)
    cookie, significant_figures, lowest, highest, _total = _ENCODING_HEADER_V0.unpack_from(
        inflated
    )
    if _cookie_base(cookie) != V0_ENCODING_COOKIE:
        raise HdrLogError(ENCODING_COOKIE_MISMATCH)
    word_size = _word_size(cookie)
    h = _new_histogram(lowest, highest, significant_figures)
    _, body = _split(inflated, _ENCODING_HEADER_V0, h.counts_len * word_size)
    _apply_counts(h, word_size, body, h.counts_len)
    h.reset_internal_counters()
    h.normalizing_index_offset = 0
    h.conversion_ratio = 1.0
    return h


def _decode_v1(data: bytes, length: int) -> Histogram:
    inflated = _inflate(data, length)
    if len(inflated) < _ENCODING_HEADER_V1.size:
        raise HdrLogError(INFLATE_FAIL)
    cookie, payload_len, offset, significant_figures, lowest, highest, ratio = (
        _ENCODING_HEADER_V1.unpack_from(inflated)
    )
    if _cookie_base(cookie) != V1_ENCODING_COOKIE:
        raise HdrLogError(ENCODING_COOKIE_MISMATCH)
    word_size = _word_size(cookie)
    if word_size == 0 or payload_len < 0:
        raise HdrLogError(errno.EINVAL)
    counts_limit = payload_len // word_size
    h = _new_histogram(lowest, highest, significant_figures)
    _, body = _split(inflated, _ENCODING_HEADER_V1, counts_limit * word_size)
    _apply_counts(h, word_size, body, counts_limit)
    h.normalizing_index_offset = offset
    h.conversion_ratio = ratio
    h.reset_internal_counters()
    return h


def _decode_v2(data: bytes, length: int) -> Histogram:
    inflated = _inflate(data, length)
    if len(inflated) < _ENCODING_HEADER_V1.size:
        raise HdrLogError(INFLATE_FAIL)
    cookie, payload_len, offset, significant_figures, lowest, highest, ratio = (
        _ENCODING_HEADER_V1.unpack_from(inflated)
    )
    if _cookie_base(cookie) != V2_ENCODING_COOKIE:
        raise HdrLogError(ENCODING_COOKIE_MISMATCH)
    if payload_len < 0:
        raise HdrLogError(errno.EINVAL)
    h = _new_histogram(lowest, highest, significant_figures)
    _, body = _split(inflated, _ENCODING_HEADER_V1, payload_len)
    _apply_zig_zag(h, body, payload_len)
    h.normalizing_index_offset = offset
    h.conversion_ratio = ratio
    h.reset_internal_counters()
    return h


_DECODERS = {
    V0_COMPRESSION_COOKIE: _decode_v0,
    V1_COMPRESSION_COOKIE: _decode_v1,
    V2_COMPRESSION_COOKIE: _decode_v2,
}


def decode_compressed(
    data: bytes | bytearray | memoryview, into: Histogram | None = None
) -> Histogram:
    """Decode a compressed histogram of any supported version.

    With ``into`` given, the decoded values are added to it and it is returned;
    otherwise a new histogram is returned.
    """
    data = bytes(data)
    if len(data) < _COMPRESSION_HEADER.size:
        raise HdrLogError(errno.EINVAL)
    cookie = _COMPRESSION_HEADER.unpack_from(data)[0]
    decoder = _DECODERS.get(_cookie_base(cookie))
    if decoder is None:
        raise HdrLogError(COMPRESSION_COOKIE_MISMATCH)
    h = decoder(data, len(data))
    if into is None:
        return h
    into.add(h)
    return into


def log_encode(histogram: Histogram) -> str:
    """Compress ``histogram`` and return it as base64 text."""
    return base64_encode(encode_compressed(histogram))


def log_decode(text: str | bytes, into: Histogram | None = None) -> Histogram:
    """Decode base64 text produced by :func:`log_encode`."""
    try:
        compressed = base64_decode(text)
    except ValueError as exc:
        raise HdrLogError(errno.EINVAL, str(exc)) from exc
    return decode_compressed(compressed, into)