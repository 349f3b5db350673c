"""Writing histogram logs: a commented header followed by CSV entries."""

from __future__ import annotations

import errno
import time
from typing import TextIO

from hdrhist.codec import HdrLogError, log_encode
from hdrhist.histogram import Histogram
from hdrhist.timeutil import Timespec

LOG_VERSION = "1.2"
LOG_MAJOR_VERSION = 1

_CSV_HEADER = (
    '"StartTimestamp","EndTimestamp","Interval_Max","Interval_Compressed_Histogram"\n'
)


def _format_start_time(timestamp: Timespec) -> str:
    time_str = time.strftime("%a %b %X %Z %Y", time.gmtime(timestamp.tv_sec))
    return (
        f"#[StartTime: {timestamp.as_double():.3f} (seconds since epoch), "
        f"{time_str}]\n"
    )


class LogWriter:
    """Writes histogram log headers and interval entries to a text stream."""

    def write_header(
        self,
        stream: TextIO,
        user_prefix: str | None = None,
        timestamp: Timespec | None = None,
    ) -> None:
        """Write the optional user prefix, the format version, the optional
        start time and the CSV column header.

        Raises :class:`HdrLogError` with ``errno.EIO`` if writing fails.
        """
        lines = []
        if user_prefix is not None:
            lines.append(f"#[{user_prefix}]\n")
        lines.append(f"#[Histogram log format version {LOG_VERSION}]\n")
        if timestamp is not None:
            lines.append(_format_start_time(timestamp))
        lines.append(_CSV_HEADER)
        try:
            for line in lines:
                stream.write(line)
        except OSError as exc:
            raise HdrLogError(errno.EIO) from exc

    def write(
        self,
        stream: TextIO,
        start_timestamp: Timespec,
        end_timestamp: Timespec,
        histogram: Histogram,
    ) -> None:
        """Write one entry: start, end, interval max and the encoded histogram.

        Raises :class:`HdrLogError` if encoding fails, or with ``errno.EIO``
        if writing fails.
        """
        encoded = log_encode(histogram)
        line = "%.3f,%.3f,%d.0,%s\n" % (
            start_timestamp.as_double(),
            end_timestamp.as_double(),
            histogram.max(),
            encoded,
        )
        try:
            stream.write(line)
        except OSError as exc:
            raise HdrLogError(errno.EIO) from exc