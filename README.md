# hdrhist

High Dynamic Range (HDR) histograms for recording values such as latencies
across a wide range at a fixed number of significant figures, together with
a compressed base64 encoding of histograms and a reader and writer for
histogram log files.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Recording values

```python
from hdrhist.histogram import Histogram

h = Histogram(1, 3_600_000_000, 3)
for value in (120, 340, 1_000, 25_000):
    h.record_value(value)

print(h.min(), h.max())
print(h.value_at_percentile(99.0))
print(h.mean(), h.stddev())
```

The constructor raises `ValueError` when the lowest trackable value is below
1, the significant figures are outside 1 to 5, or the highest trackable value
is less than twice the lowest.

`record_value` and `record_values` return `False` when a value is negative or
beyond the histogram's range. `record_corrected_value` and
`record_corrected_values` also fill in the values missed through coordinated
omission, given the expected interval between samples. `add` and
`add_while_correcting_for_coordinated_omission` merge another histogram and
return the number of values dropped. `recorded()` yields `(value, count)` for
every non-empty slot, and `reset()` empties the histogram.

## Iterating

`hdrhist.iteration` has generators over a histogram that yield
`IterationValue` steps: `all_values`, `recorded_values`, `percentile_values`,
`linear_values` and `log_values`. `percentiles_print` writes a percentile
table in the classic or CSV `Format`:

```python
import sys
from hdrhist.iteration import Format, percentiles_print

percentiles_print(h, sys.stdout, 5, 1.0, Format.CLASSIC)
```

## Encoding

`hdrhist.codec.encode_compressed` produces the compressed binary form of a
histogram and `decode_compressed` reads it back (all three versions of the
format are accepted). `log_encode` and `log_decode` do the same with base64
text. Decoding with `into=` adds the values to an existing histogram.
Failures raise `HdrLogError`, whose `code` can be turned into a message with
`strerror`.

`hdrhist.encoding` holds the lower-level pieces: LEB128 zig-zag integers
(`zig_zag_encode`, `zig_zag_decode`) and base64 (`base64_encode`,
`base64_decode`).

## Logs

```python
import io
from hdrhist.logwriter import LogWriter
from hdrhist.logreader import LogReader
from hdrhist.timeutil import Timespec

buf = io.StringIO()
writer = LogWriter()
writer.write_header(buf, "my run", Timespec(1_700_000_000, 0))
writer.write(buf, Timespec(0, 0), Timespec(1, 0), h)

buf.seek(0)
reader = LogReader()
reader.read_header(buf)
for entry in reader.entries(buf):
    print(entry.timestamp, entry.interval, entry.histogram.max())
```

`LogReader.read_header` raises `HdrLogError` when the log does not declare
format version 1.0 to 1.3. `LogReader.read` returns `None` at the end of the
log and accepts lines with or without a leading `Tag=` field.

`hdrhist.timeutil` provides `Timespec`, `timespec_from_double` (millisecond
accuracy) and `gettime`, a monotonic clock reading.

## Command

Print the percentile table of a log file (or standard input), merging each
entry into a running histogram and printing it after every entry:

```
hdr-decoder histogram.log
```

It exits with -1 and a message on standard error if the file cannot be
opened, the header is invalid or an entry cannot be decoded.

## What it does not do

The package records into histograms from a single thread only: there is no
mechanism for sampling a histogram while another thread keeps recording into
it, and no command that measures and logs scheduling pauses. Logs are written
with `LogWriter` from your own code.