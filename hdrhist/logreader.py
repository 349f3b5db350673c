"""Reading histogram logs: header parsing and interval entries."""

from __future__ import annotations

import contextlib
import errno
import re
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TextIO

from hdrhist.codec import LOG_INVALID_VERSION, HdrLogError, log_decode, strerror
from hdrhist.histogram import Histogram
from hdrhist.iteration import Format, percentiles_print
from hdrhist.timeutil import Timespec, timespec_from_double

LOG_MAJOR_VERSION = 1
_SUPPORTED_MINOR_VERSIONS = frozenset({0, 1, 2, 3})

_NUMBER = r"\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"
_INTERVAL_MAX = r"\s*[-+]?\d+\.\s*[-+]?\d+"
_ENTRY_BODY = _NUMBER + "," + _NUMBER + "," + _INTERVAL_MAX + r",\s*(\S+)"
_ENTRY_V12 = re.compile(_ENTRY_BODY)
_ENTRY_V13 = re.compile(r"Tag=[^,]+," + _ENTRY_BODY)

_VERSION_LINE = re.compile(
    r"#\[Histogram log format version\s*([-+]?\d+)(?:\.\s*([-+]?\d+))?"
)
_START_TIME_LINE = re.compile(r"#\[StartTime:" + _NUMBER)


@dataclass(frozen=True)
class LogEntry:
    """One interval read from a log: its histogram and two timestamps."""

    histogram: Histogram
    timestamp: Timespec
    interval: Timespec


class LogReader:
    """Reads the header and the interval entries of a histogram log."""

    def __init__(self) -> None:
        self.major_version = 0
        self.minor_version = 0
        self.start_timestamp = Timespec()
        self._pending: str | None = None

    def _readline(self, stream: TextIO) -> str:
        if self._pending is not None:
            line, self._pending = self._pending, None
            return line
        try:
            return stream.readline()
        except OSError as exc:
            raise HdrLogError(errno.EIO) from exc

    def _scan_header_line(self, line: str) -> None:
        version = _VERSION_LINE.match(line)
        if version:
            self.major_version = int(version.group(1))
            if version.group(2) is not None:
                self.minor_version = int(version.group(2))
        start = _START_TIME_LINE.match(line)
        if start:
            self.start_timestamp = timespec_from_double(float(start.group(1)))

    def read_header(self, stream: TextIO) -> None:
        """Read comment lines and the CSV column header, noting version and
        start time.

        Raises :class:`HdrLogError` with ``LOG_INVALID_VERSION`` when the log
        does not declare a supported format version.
        """
        while True:
            line = self._readline(stream)
            if line.startswith("#"):
                self._scan_header_line(line)
                continue
            if not line.startswith('"'):
                self._pending = line or None
            break

        if not (
            self.major_version == LOG_MAJOR_VERSION
            and self.minor_version in _SUPPORTED_MINOR_VERSIONS
        ):
            raise HdrLogError(LOG_INVALID_VERSION)

    def read(self, stream: TextIO, into: Histogram | None = None) -> LogEntry | None:
        """Read the next entry, or return None at the end of the log.

        With ``into`` given, the entry's values are added to that histogram,
        which is then the entry's histogram. Malformed lines raise
        :class:`HdrLogError`.
        """
        line = self._readline(stream).rstrip()
        if not line:
            return None

        match = _ENTRY_V13.match(line) or _ENTRY_V12.match(line)
        if match is None:
            raise HdrLogError(errno.EINVAL)
        begin, end, encoded = match.groups()

        histogram = log_decode(encoded, into)
        return LogEntry(
            histogram=histogram,
            timestamp=timespec_from_double(float(begin)),
            interval=timespec_from_double(float(end)),
        )

    def entries(self, stream: TextIO) -> Iterator[LogEntry]:
        """Yield every remaining entry of the log, each in its own histogram."""
        while (entry := self.read(stream)) is not None:
            yield entry


def main(argv: list[str] | None = None) -> int:
    """Print the percentile distribution of every histogram in a log.

    Reads the file named by the first argument, or standard input. Each
    entry is merged into the running histogram before it is printed.
    """
    args = sys.argv[1:] if argv is None else argv

    with contextlib.ExitStack() as stack:
        if args:
            try:
                stream = stack.enter_context(open(args[0]))
            except OSError as exc:
                sys.stderr.write(f"Failed to open file({args[0]}):{exc.strerror}\n")
                return -1
        else:
            stream = sys.stdin

        reader = LogReader()
        try:
            reader.read_header(stream)
        except HdrLogError as exc:
            sys.stderr.write(f"Failed to read header: {strerror(exc.code)}\n")
            return -1

        histogram: Histogram | None = None
        while True:
            try:
                entry = reader.read(stream, histogram)
            except HdrLogError as exc:
                sys.stderr.write(f"Failed to print histogram: {strerror(exc.code)}\n")
                return -1
            if entry is None:
                break
            histogram = entry.histogram
            percentiles_print(histogram, sys.stdout, 5, 1.0, Format.CLASSIC)

    return 0


if __name__ == "__main__":
    sys.exit(main())