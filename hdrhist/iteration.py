"""Iteration over histogram slots and the percentile distribution report."""

from __future__ import annotations

import enum
import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TextIO

from hdrhist.histogram import Histogram


@dataclass(frozen=True)
class IterationValue:
    """One step of an iteration over a histogram."""

    value: int
    count: int
    cumulative_count: int
    lowest_equivalent_value: int
    highest_equivalent_value: int
    median_equivalent_value: int
    value_iterated_from: int
    value_iterated_to: int
    count_added_in_this_iteration_step: int
    percentile: float | None = None


class _Cursor:
    """Walks the counts array slot by slot, tracking cumulative totals."""

    def __init__(self, histogram: Histogram) -> None:
        self.h = histogram
        self.counts_index = -1
        self.total_count = histogram.total_count
        self.count = 0
        self.cumulative_count = 0
        self.value = 0
        self.highest_equivalent_value = 0
        self.lowest_equivalent_value = 0
        self.median_equivalent_value = 0
        self.value_iterated_from = 0
        self.value_iterated_to = 0

    def has_next(self) -> bool:
        return self.cumulative_count < self.total_count

    def move_next(self) -> bool:
        self.counts_index += 1
        if self.counts_index >= self.h.counts_len:
            return False
        h = self.h
        self.count = h.count_at_index(self.counts_index)
        self.cumulative_count += self.count
        self.value = h.value_at_index(self.counts_index)
        self.highest_equivalent_value = h.highest_equivalent_value(self.value)
        self.lowest_equivalent_value = h.lowest_equivalent_value(self.value)
        self.median_equivalent_value = h.median_equivalent_value(self.value)
        return True

    def basic_next(self) -> bool:
        if not self.has_next():
            return False
        self.move_next()
        return True

    def next_value_above(self, bound: int) -> bool:
        if self.counts_index >= self.h.counts_len:
            return False
        return self.h.value_at_index(self.counts_index + 1) > bound

    def iterated_to(self, new_value: int) -> None:
        self.value_iterated_from = self.value_iterated_to
        self.value_iterated_to = new_value

    def snapshot(
        self, count_added: int, percentile: float | None = None
    ) -> IterationValue:
        return IterationValue(
            value=self.value,
            count=self.count,
            cumulative_count=self.cumulative_count,
            lowest_equivalent_value=self.lowest_equivalent_value,
            highest_equivalent_value=self.highest_equivalent_value,
            median_equivalent_value=self.median_equivalent_value,
            value_iterated_from=self.value_iterated_from,
            value_iterated_to=self.value_iterated_to,
            count_added_in_this_iteration_step=count_added,
            percentile=percentile,
        )


def all_values(histogram: Histogram) -> Iterator[IterationValue]:
    """Yield every slot of the histogram, including empty ones."""
    cursor = _Cursor(histogram)
    while cursor.move_next():
        cursor.iterated_to(cursor.value)
        yield cursor.snapshot(cursor.count)


def recorded_values(histogram: Histogram) -> Iterator[IterationValue]:
    """Yield every slot holding a non-zero count."""
    cursor = _Cursor(histogram)
    while cursor.basic_next():
        if cursor.count != 0:
            cursor.iterated_to(cursor.value)
            yield cursor.snapshot(cursor.count)


def percentile_values(
    histogram: Histogram, ticks_per_half_distance: int = 5
) -> Iterator[IterationValue]:
    """Yield steps at percentiles that get denser towards 100%.

    The final step always reports the 100th percentile.
    """
    cursor = _Cursor(histogram)
    percentile_to_iterate_to = 0.0

    while cursor.has_next():
        if cursor.counts_index == -1 and not cursor.basic_next():
            return
        while True:
            current = 100.0 * cursor.cumulative_count / histogram.total_count
            if cursor.count != 0 and percentile_to_iterate_to <= current:
                cursor.iterated_to(
                    histogram.highest_equivalent_value(cursor.value)
                )
                reported = percentile_to_iterate_to
                remaining = 100.0 - percentile_to_iterate_to
                if remaining <= 0.0:
                    percentile_to_iterate_to = math.inf
                else:
                    exponent = int(math.log(100.0 / remaining) / math.log(2)) + 1
                    half_distance = 2**exponent
                    reporting_ticks = ticks_per_half_distance * half_distance
                    percentile_to_iterate_to += 100.0 / reporting_ticks
                yield cursor.snapshot(cursor.count, reported)
                break
            if not cursor.basic_next():
                yield cursor.snapshot(cursor.count, percentile_to_iterate_to)
                break

    yield cursor.snapshot(cursor.count, 100.0)


def linear_values(
    histogram: Histogram, value_units_per_bucket: int
) -> Iterator[IterationValue]:
    """Yield steps at fixed value intervals of ``value_units_per_bucket``."""
    if value_units_per_bucket <= 0:
        raise ValueError("value_units_per_bucket must be positive")

    cursor = _Cursor(histogram)
    level = value_units_per_bucket
    level_lowest = histogram.lowest_equivalent_value(level)

    while cursor.has_next() or cursor.next_value_above(level_lowest):
        added = 0
        while True:
            if cursor.value >= level_lowest:
                cursor.iterated_to(level)
                level += value_units_per_bucket
                level_lowest = histogram.lowest_equivalent_value(level)
                break
            if not cursor.move_next():
                break
            added += cursor.count
        yield cursor.snapshot(added)


def log_values(
    histogram: Histogram, value_units_first_bucket: int, log_base: float
) -> Iterator[IterationValue]:
    """Yield steps at levels growing geometrically by ``log_base``."""
    if value_units_first_bucket <= 0:
        raise ValueError("value_units_first_bucket must be positive")
    multiplier = int(log_base)
    if multiplier < 2:
        raise ValueError("log_base must be at least 2")

    cursor = _Cursor(histogram)
    level = value_units_first_bucket
    level_lowest = histogram.lowest_equivalent_value(level)

    while cursor.has_next() or cursor.next_value_above(level_lowest):
        added = 0
        while True:
            if cursor.value >= level_lowest:
                cursor.iterated_to(level)
                level *= multiplier
                level_lowest = histogram.lowest_equivalent_value(level)
                break
            if not cursor.move_next():
                break
            added += cursor.count
        yield cursor.snapshot(added)


class Format(enum.Enum):
    """Layout of the percentile distribution report."""

    CLASSIC = "classic"
    CSV = "csv"


_CLASSIC_FOOTER = (
    "#[Mean    = %12.3f, StdDeviation   = %12.3f]\n"
    "#[Max     = %12.3f, Total count    = %12d]\n"
    "#[Buckets = %12d, SubBuckets     = %12d]\n"
)


def _line_format(significant_figures: int, fmt: Format) -> str:
    if fmt is Format.CSV:
        return f"%.{significant_figures}f,%f,%d,%.2f\n"
    return f"%12.{significant_figures}f %12f %12d %12.2f\n"


def _head_format(fmt: Format) -> str:
    if fmt is Format.CSV:
        return "%s,%s,%s,%s\n"
    return "%12s %12s %12s %12s\n\n"


def percentiles_print(
    histogram: Histogram,
    stream: TextIO,
    ticks_per_half_distance: int = 5,
    value_scale: float = 1.0,
    fmt: Format = Format.CLASSIC,
) -> None:
    """Write the percentile distribution of ``histogram`` to ``stream``.

    The stream is not flushed. Write failures propagate as ``OSError``.
    """
    line_format = _line_format(histogram.significant_figures, fmt)
    stream.write(
        _head_format(fmt)
        % ("Value", "Percentile", "TotalCount", "1/(1-Percentile)")
    )

    for step in percentile_values(histogram, ticks_per_half_distance):
        value = step.highest_equivalent_value / value_scale
        percentile = (step.percentile or 0.0) / 100.0
        inverted = math.inf if percentile >= 1.0 else 1.0 / (1.0 - percentile)
        stream.write(
            line_format % (value, percentile, step.cumulative_count, inverted)
        )

    if fmt is Format.CLASSIC:
        stream.write(
            _CLASSIC_FOOTER
            % (
                histogram.mean() / value_scale,
                histogram.stddev() / value_scale,
                histogram.max() / value_scale,
                histogram.total_count,
                histogram.bucket_count,
                histogram.sub_bucket_count,
            )
        )