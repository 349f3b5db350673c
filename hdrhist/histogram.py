"""High dynamic range histogram: bucket layout, recording and statistics."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

from hdrhist.encoding import INT64_MAX

# Fixed part of the histogram record: the header fields before the counts.
_HEADER_SIZE = 96
_COUNT_SIZE = 8


@dataclass(frozen=True)
class BucketConfig:
    """Bucket layout derived from a histogram's range and precision."""

    lowest_trackable_value: int
    highest_trackable_value: int
    significant_figures: int
    unit_magnitude: int
    sub_bucket_half_count_magnitude: int
    sub_bucket_half_count: int
    sub_bucket_mask: int
    sub_bucket_count: int
    bucket_count: int
    counts_len: int


def _buckets_needed_to_cover_value(
    value: int, sub_bucket_count: int, unit_magnitude: int
) -> int:
    smallest_untrackable_value = sub_bucket_count << unit_magnitude
    buckets_needed = 1
    while smallest_untrackable_value <= value:
        if smallest_untrackable_value > INT64_MAX // 2:
            return buckets_needed + 1
        smallest_untrackable_value <<= 1
        buckets_needed += 1
    return buckets_needed


def calculate_bucket_config(
    lowest_trackable_value: int,
    highest_trackable_value: int,
    significant_figures: int,
) -> BucketConfig:
    """Work out the bucket layout, raising ValueError for invalid arguments."""
    if lowest_trackable_value < 1:
        raise ValueError("lowest_trackable_value must be at least 1")
    if not 1 <= significant_figures <= 5:
        raise ValueError("significant_figures must be between 1 and 5")
    if lowest_trackable_value * 2 > highest_trackable_value:
        raise ValueError(
            "highest_trackable_value must be at least twice lowest_trackable_value"
        )

    largest_value_with_single_unit_resolution = 2 * 10**significant_figures
    # ceil(log2(n)); n is never a power of two here.
    sub_bucket_count_magnitude = (largest_value_with_single_unit_resolution - 1).bit_length()
    sub_bucket_half_count_magnitude = max(sub_bucket_count_magnitude, 1) - 1
    unit_magnitude = lowest_trackable_value.bit_length() - 1

    sub_bucket_count = 1 << (sub_bucket_half_count_magnitude + 1)
    sub_bucket_half_count = sub_bucket_count // 2
    sub_bucket_mask = (sub_bucket_count - 1) << unit_magnitude
    bucket_count = _buckets_needed_to_cover_value(
        highest_trackable_value, sub_bucket_count, unit_magnitude
    )
    counts_len = (bucket_count + 1) * (sub_bucket_count // 2)

    return BucketConfig(
        lowest_trackable_value=lowest_trackable_value,
        highest_trackable_value=highest_trackable_value,
        significant_figures=significant_figures,
        unit_magnitude=unit_magnitude,
        sub_bucket_half_count_magnitude=sub_bucket_half_count_magnitude,
        sub_bucket_half_count=sub_bucket_half_count,
        sub_bucket_mask=sub_bucket_mask,
        sub_bucket_count=sub_bucket_count,
        bucket_count=bucket_count,
        counts_len=counts_len,
    )


class Histogram:
    """Records integer values with a fixed number of significant figures."""

    def __init__(
        self,
        lowest_trackable_value: int,
        highest_trackable_value: int,
        significant_figures: int,
    ) -> None:
        cfg = calculate_bucket_config(
            lowest_trackable_value, highest_trackable_value, significant_figures
        )
        self.lowest_trackable_value = cfg.lowest_trackable_value
        self.highest_trackable_value = cfg.highest_trackable_value
        self.unit_magnitude = cfg.unit_magnitude
        self.significant_figures = cfg.significant_figures
        self.sub_bucket_half_count_magnitude = cfg.sub_bucket_half_count_magnitude
        self.sub_bucket_half_count = cfg.sub_bucket_half_count
        self.sub_bucket_mask = cfg.sub_bucket_mask
        self.sub_bucket_count = cfg.sub_bucket_count
        self.bucket_count = cfg.bucket_count
        self.counts_len = cfg.counts_len
        self.min_value = INT64_MAX
        self.max_value = 0
        self.normalizing_index_offset = 0
        self.conversion_ratio = 1.0
        self.total_count = 0
        self.counts = [0] * cfg.counts_len

    def __repr__(self) -> str:
        return (
            f"Histogram(lowest_trackable_value={self.lowest_trackable_value}, "
            f"highest_trackable_value={self.highest_trackable_value}, "
            f"significant_figures={self.significant_figures}, "
            f"total_count={self.total_count})"
        )

    # Index arithmetic

    def _normalize_index(self, index: int) -> int:
        if self.normalizing_index_offset == 0:
            return index
        normalized = index - self.normalizing_index_offset
        if normalized < 0:
            normalized += self.counts_len
        elif normalized >= self.counts_len:
            normalized -= self.counts_len
        return normalized

    def _bucket_index(self, value: int) -> int:
        pow2ceiling = (value | self.sub_bucket_mask).bit_length()
        return pow2ceiling - self.unit_magnitude - (
            self.sub_bucket_half_count_magnitude + 1
        )

    def _sub_bucket_index(self, value: int, bucket_index: int) -> int:
        return value >> (bucket_index + self.unit_magnitude)

    def _counts_index(self, bucket_index: int, sub_bucket_index: int) -> int:
        bucket_base_index = (bucket_index + 1) << self.sub_bucket_half_count_magnitude
        offset_in_bucket = sub_bucket_index - self.sub_bucket_half_count
        return bucket_base_index + offset_in_bucket

    def counts_index_for(self, value: int) -> int:
        """Raw index of the counts slot that ``value`` falls into."""
        bucket_index = self._bucket_index(value)
        sub_bucket_index = self._sub_bucket_index(value, bucket_index)
        return self._counts_index(bucket_index, sub_bucket_index)

    def value_at_index(self, index: int) -> int:
        """Lowest value that maps to the counts slot ``index``."""
        bucket_index = (index >> self.sub_bucket_half_count_magnitude) - 1
        sub_bucket_index = (
            index & (self.sub_bucket_half_count - 1)
        ) + self.sub_bucket_half_count
        if bucket_index < 0:
            sub_bucket_index -= self.sub_bucket_half_count
            bucket_index = 0
        return sub_bucket_index << (bucket_index + self.unit_magnitude)

    # Equivalent value ranges

    def size_of_equivalent_value_range(self, value: int) -> int:
        """Width of the range of values counted together with ``value``."""
        bucket_index = self._bucket_index(value)
        sub_bucket_index = self._sub_bucket_index(value, bucket_index)
        if sub_bucket_index >= self.sub_bucket_count:
            bucket_index += 1
        return 1 << (self.unit_magnitude + bucket_index)

    def lowest_equivalent_value(self, value: int) -> int:
        """Lowest value counted together with ``value``."""
        bucket_index = self._bucket_index(value)
        sub_bucket_index = self._sub_bucket_index(value, bucket_index)
        return sub_bucket_index << (bucket_index + self.unit_magnitude)

    def next_non_equivalent_value(self, value: int) -> int:
        """Smallest value above ``value`` that is counted separately from it."""
        return self.lowest_equivalent_value(value) + self.size_of_equivalent_value_range(
            value
        )

    def highest_equivalent_value(self, value: int) -> int:
        """Highest value counted together with ``value``."""
        return self.next_non_equivalent_value(value) - 1

    def median_equivalent_value(self, value: int) -> int:
        """Middle of the range of values counted together with ``value``."""
        return self.lowest_equivalent_value(value) + (
            self.size_of_equivalent_value_range(value) >> 1
        )

    def values_are_equivalent(self, a: int, b: int) -> bool:
        """Whether ``a`` and ``b`` are counted in the same slot."""
        return self.lowest_equivalent_value(a) == self.lowest_equivalent_value(b)

    # Counts

    def count_at_index(self, index: int) -> int:
        """Count stored at raw index ``index``."""
        return self.counts[self._normalize_index(index)]

    def count_at_value(self, value: int) -> int:
        """Count recorded for values equivalent to ``value``."""
        return self.count_at_index(self.counts_index_for(value))

    def reset(self) -> None:
        """Clear every count, returning the histogram to empty."""
        self.total_count = 0
        self.min_value = INT64_MAX
        self.max_value = 0
        self.counts = [0] * self.counts_len

    def memory_size(self) -> int:
        """Size in bytes of the histogram's native record."""
        return _HEADER_SIZE + self.counts_len * _COUNT_SIZE

    def reset_internal_counters(self) -> None:
        """Recompute total count, min and max from the raw counts."""
        min_non_zero_index = -1
        max_index = -1
        observed_total_count = 0
        for index, count in enumerate(self.counts):
            if count > 0:
                observed_total_count += count
                max_index = index
                if min_non_zero_index == -1 and index != 0:
                    min_non_zero_index = index

        if max_index == -1:
            self.max_value = 0
        else:
            self.max_value = self.highest_equivalent_value(self.value_at_index(max_index))

        if min_non_zero_index == -1:
            self.min_value = INT64_MAX
        else:
            self.min_value = self.value_at_index(min_non_zero_index)

        self.total_count = observed_total_count

    # Recording

    def record_value(self, value: int) -> bool:
        """Record one occurrence of ``value``; False if it is out of range."""
        return self.record_values(value, 1)

    def record_values(self, value: int, count: int) -> bool:
        """Record ``count`` occurrences of ``value``; False if out of range."""
        if value < 0:
            return False
        index = self.counts_index_for(value)
        if index < 0 or index >= self.counts_len:
            return False
        self.counts[self._normalize_index(index)] += count
        self.total_count += count
        if value != 0 and value < self.min_value:
            self.min_value = value
        if value > self.max_value:
            self.max_value = value
        return True

    def record_corrected_value(self, value: int, expected_interval: int) -> bool:
        """Record ``value`` and back-fill values missed by coordinated omission."""
        return self.record_corrected_values(value, 1, expected_interval)

    def record_corrected_values(
        self, value: int, count: int, expected_interval: int
    ) -> bool:
        """Record ``count`` of ``value`` with coordinated-omission back-fill."""
        if not self.record_values(value, count):
            return False
        if expected_interval <= 0 or value <= expected_interval:
            return True
        missing_value = value - expected_interval
        while missing_value >= expected_interval:
            if not self.record_values(missing_value, count):
                return False
            missing_value -= expected_interval
        return True

    def recorded(self) -> Iterator[tuple[int, int]]:
        """Yield ``(value, count)`` for every slot holding a non-zero count."""
        total = self.total_count
        cumulative = 0
        for index in range(self.counts_len):
            if cumulative >= total:
                return
            count = self.count_at_index(index)
            cumulative += count
            if count != 0:
                yield self.value_at_index(index), count

    def add(self, other: Histogram) -> int:
        """Add every value of ``other``; returns the number of values dropped."""
        dropped = 0
        for value, count in other.recorded():
            if not self.record_values(value, count):
                dropped += count
        return dropped

    def add_while_correcting_for_coordinated_omission(
        self, other: Histogram, expected_interval: int
    ) -> int:
        """Add ``other`` with back-fill; returns the number of values dropped."""
        dropped = 0
        for value, count in other.recorded():
            if not self.record_corrected_values(value, count, expected_interval):
                dropped += count
        return dropped

    # Statistics

    def _all_slots(self) -> Iterator[tuple[int, int]]:
        for index in range(self.counts_len):
            yield self.value_at_index(index), self.count_at_index(index)

    def min(self) -> int:
        """Smallest recorded value; INT64_MAX when the histogram is empty."""
        if self.count_at_index(0) > 0:
            return 0
        if self.min_value == INT64_MAX:
            return INT64_MAX
        return self.lowest_equivalent_value(self.min_value)

    def max(self) -> int:
        """Largest recorded value; 0 when the histogram is empty."""
        if self.max_value == 0:
            return 0
        return self.highest_equivalent_value(self.max_value)

    def value_at_percentile(self, percentile: float) -> int:
        """Value at or below which ``percentile`` percent of values fall."""
        requested = min(percentile, 100.0)
        count_at_percentile = int((requested / 100) * self.total_count + 0.5)
        count_at_percentile = max(count_at_percentile, 1)
        total = 0
        for value, count in self._all_slots():
            total += count
            if total >= count_at_percentile:
                return self.highest_equivalent_value(value)
        return 0

    def mean(self) -> float:
        """Mean of the recorded values; NaN when the histogram is empty."""
        if self.total_count == 0:
            return math.nan
        total = sum(
            count * self.median_equivalent_value(value)
            for value, count in self._all_slots()
            if count
        )
        return total / self.total_count

    def stddev(self) -> float:
        """Standard deviation of the recorded values; NaN when empty."""
        if self.total_count == 0:
            return math.nan
        mean = self.mean()
        total = 0.0
        for value, count in self._all_slots():
            if count:
                dev = float(self.median_equivalent_value(value)) - mean
                total += dev * dev * count
        return math.sqrt(total / self.total_count)