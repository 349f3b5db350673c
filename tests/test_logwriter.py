import errno
import io

import pytest

from hdrhist.codec import HdrLogError, log_decode
from hdrhist.histogram import Histogram
from hdrhist.logwriter import LogWriter
from hdrhist.timeutil import Timespec

CSV_HEADER = (
    '"StartTimestamp","EndTimestamp","Interval_Max","Interval_Compressed_Histogram"\n'
)


class _BrokenStream:
    def write(self, text):
        raise OSError(errno.ENOSPC, "no space")


def _histogram():
    h = Histogram(1, 3_600_000_000, 3)
    for value in (1, 10, 100, 1000, 123456):
        h.record_value(value)
    return h


def test_header_with_prefix_and_no_timestamp():
    out = io.StringIO()
    LogWriter().write_header(out, "foobar", None)
    lines = out.getvalue().splitlines(keepends=True)
    assert lines == [
        "#[foobar]\n",
        "#[Histogram log format version 1.2]\n",
        CSV_HEADER,
    ]


def test_header_without_prefix():
    out = io.StringIO()
    LogWriter().write_header(out, None, None)
    assert out.getvalue() == "#[Histogram log format version 1.2]\n" + CSV_HEADER


def test_header_with_timestamp():
    out = io.StringIO()
    LogWriter().write_header(out, None, Timespec(0, 500_000_000))
    lines = out.getvalue().splitlines(keepends=True)
    assert len(lines) == 3
    assert lines[1].startswith("#[StartTime: 0.500 (seconds since epoch), Thu Jan")
    assert lines[1].endswith("1970]\n")
    assert lines[2] == CSV_HEADER


def test_write_entry_round_trips():
    h = _histogram()
    out = io.StringIO()
    LogWriter().write(out, Timespec(1, 250_000_000), Timespec(2, 750_000_000), h)
    line = out.getvalue()
    assert line.endswith("\n")
    start, end, interval_max, encoded = line.rstrip("\n").split(",")
    assert start == "1.250"
    assert end == "2.750"
    assert interval_max == f"{h.max()}.0"
    decoded = log_decode(encoded)
    assert decoded.total_count == h.total_count
    assert decoded.max() == h.max()
    assert decoded.min() == h.min()
    assert list(decoded.recorded()) == list(h.recorded())


def test_write_empty_histogram():
    h = Histogram(1, 1000, 2)
    out = io.StringIO()
    LogWriter().write(out, Timespec(), Timespec(), h)
    fields = out.getvalue().rstrip("\n").split(",")
    assert fields[2] == "0.0"
    assert log_decode(fields[3]).total_count == 0


def test_write_header_failure_raises_eio():
    with pytest.raises(HdrLogError) as info:
        LogWriter().write_header(_BrokenStream(), "x", None)
    assert info.value.code == errno.EIO


def test_write_failure_raises_eio():
    with pytest.raises(HdrLogError) as info:
        LogWriter().write(_BrokenStream(), Timespec(), Timespec(), _histogram())
    assert info.value.code == errno.EIO