"""
Interval histogram: one time-windowed latency distribution from a log line.

The value distribution itself is an HdrHistogram (``hdrh``); this wrapper owns
the interval's tag and time bounds so that merging two intervals never mixes
up whose window is whose.

Design:
- merge() adds recorded counts only; the receiver keeps its tag and bounds
- reset() restores the empty-window sentinel bounds
- encode()/decode() use the compressed base64 payload found in log files
- The underlying HdrHistogram is created lazily and grown on demand, so an
  empty accumulator adopts the range of the first interval merged into it

Limitations:
- Only integer-valued histograms decode. DoubleHistogram payloads are
  recognized by their cookie, logged at warning level and rejected with
  DecodeError.
"""

import base64
import binascii
import io
import logging
import math
import struct
import sys
from typing import Optional, Union

from hdrh.histogram import HdrHistogram

from histolog.core.config import config
from histolog.core.exceptions import DecodeError

logger = logging.getLogger(__name__)

# Bounds of a window that has not absorbed anything yet
EMPTY_START_MS = sys.maxsize
EMPTY_END_MS = 0

# Compressed and uncompressed DoubleHistogram encoding cookies
DOUBLE_HISTOGRAM_COOKIES = frozenset({208802382, 208802383})

_PERCENTILE_HEADER = "%12s %14s %10s %14s\n\n" % ("Value", "Percentile", "TotalCount", "1/(1-Percentile)")


def seconds_to_ms(seconds: float) -> int:
    """Milliseconds for a time in seconds, rounding halves up."""
    return math.floor(seconds * 1000.0 + 0.5)


class IntervalHistogram:
    """
    A mergeable interval distribution with a tag and millisecond bounds.

    Attributes:
        tag: Classification label, None when the log line had no tag
        start_timestamp_ms: Absolute start of the interval in milliseconds
        end_timestamp_ms: Absolute end of the interval in milliseconds
    """

    def __init__(
        self,
        histogram: Optional[HdrHistogram] = None,
        tag: Optional[str] = None,
        start_timestamp_ms: int = EMPTY_START_MS,
        end_timestamp_ms: int = EMPTY_END_MS,
    ):
        self._histogram = histogram
        self.tag = tag
        self.start_timestamp_ms = start_timestamp_ms
        self.end_timestamp_ms = end_timestamp_ms

    def __repr__(self) -> str:
        return (
            f"IntervalHistogram(tag={self.tag!r}, start={self.start_timestamp_ms}, "
            f"end={self.end_timestamp_ms}, count={self.total_count})"
        )

    @property
    def is_empty_window(self) -> bool:
        """True while the bounds are still the empty sentinel."""
        return self.start_timestamp_ms == EMPTY_START_MS

    @property
    def length_ms(self) -> int:
        if self.is_empty_window:
            return 0
        return self.end_timestamp_ms - self.start_timestamp_ms

    @property
    def total_count(self) -> int:
        if self._histogram is None:
            return 0
        return self._histogram.get_total_count()

    @property
    def min_value(self) -> int:
        if self.total_count == 0:
            return 0
        return self._histogram.get_min_value()

    @property
    def max_value(self) -> int:
        if self.total_count == 0:
            return 0
        return self._histogram.get_max_value()

    @property
    def mean(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self._histogram.get_mean_value()

    def value_at_percentile(self, percentile: float) -> int:
        if self.total_count == 0:
            return 0
        return self._histogram.get_value_at_percentile(percentile)

    def count_between_values(self, low_value: int, high_value: int) -> int:
        """
        Count of recorded values falling in the buckets from low_value to high_value.

        Both ends are inclusive at bucket resolution: any value equivalent to
        low_value or high_value is counted.
        """
        if self.total_count == 0 or high_value < low_value:
            return 0
        histogram = self._histogram
        low_edge = histogram.get_highest_equivalent_value(low_value)
        high_edge = histogram.get_highest_equivalent_value(high_value)
        count = 0
        for item in histogram.get_recorded_iterator():
            value = item.value_iterated_to
            if value > high_edge:
                break
            if value >= low_edge:
                count += item.count_at_value_iterated_to
        return count

    def record_value(self, value: int, count: int = 1) -> None:
        """Record value count times (used to build intervals from raw samples)."""
        if value < 0:
            raise ValueError(f"Cannot record negative value {value}")
        if self._histogram is None:
            self._histogram = _new_histogram()
        if not self._histogram.record_value(value, count):
            raise ValueError(f"Value {value} is outside the trackable range")

    def merge(self, other: "IntervalHistogram") -> None:
        """
        Add other's recorded values into this histogram.

        Tag and time bounds of this histogram are left untouched.
        """
        if other._histogram is None or other.total_count == 0:
            return
        source = other._histogram
        if self._histogram is None:
            self._histogram = _new_histogram(
                lowest=source.lowest_trackable_value,
                highest=max(source.highest_trackable_value, 2 * source.lowest_trackable_value),
                significant_figures=source.significant_figures,
            )
        try:
            self._histogram.add(source)
        except IndexError:
            self._histogram = self._grown_to_fit(source)

    def _grown_to_fit(self, source: HdrHistogram) -> HdrHistogram:
        current = self._histogram
        highest = max(current.highest_trackable_value, source.highest_trackable_value)
        while highest < source.get_max_value():
            highest *= 2
        logger.debug(
            "Growing accumulator range from %d to %d",
            current.highest_trackable_value,
            highest,
        )
        grown = _new_histogram(
            lowest=min(current.lowest_trackable_value, source.lowest_trackable_value),
            highest=highest,
            significant_figures=current.significant_figures,
        )
        grown.add(current)
        grown.add(source)
        return grown

    def reset(self) -> None:
        """Clear recorded values and restore the empty-window bounds."""
        if self._histogram is not None:
            self._histogram.reset()
        self.start_timestamp_ms = EMPTY_START_MS
        self.end_timestamp_ms = EMPTY_END_MS

    def percentile_distribution(
        self,
        ticks_per_half_distance: int = 5,
        output_value_unit_ratio: float = 1.0,
    ) -> str:
        """
        Percentile distribution table (the '.hgrm' text format).

        Values are divided by output_value_unit_ratio. An empty histogram
        yields the column header only.
        """
        if self.total_count == 0:
            return _PERCENTILE_HEADER
        out = _TextCollector()
        self._histogram.output_percentile_distribution(
            out, output_value_unit_ratio, ticks_per_half_distance
        )
        return out.getvalue()

    def encode(self) -> str:
        """Compressed, base64-wrapped payload as written in log files."""
        histogram = self._histogram if self._histogram is not None else _new_histogram()
        payload = histogram.encode()
        if isinstance(payload, bytes):
            return payload.decode("ascii")
        return payload

    @classmethod
    def decode(cls, payload: Union[str, bytes]) -> "IntervalHistogram":
        """
        Rebuild an interval from a log payload token.

        Raises:
            DecodeError: If the payload is not a valid compressed histogram
        """
        if not payload:
            raise DecodeError("Empty histogram payload")
        try:
            raw = payload.encode("ascii") if isinstance(payload, str) else payload
        except UnicodeEncodeError as e:
            raise DecodeError(f"Histogram payload is not base64 text: {e}") from e

        cookie = _payload_cookie(raw)
        if cookie in DOUBLE_HISTOGRAM_COOKIES:
            logger.warning(f"DoubleHistogram payload (cookie {cookie}) is not supported, skipping")
            raise DecodeError(f"Unsupported DoubleHistogram payload (cookie {cookie})")

        try:
            histogram = HdrHistogram.decode(raw)
        except Exception as e:
            raise DecodeError(f"Failed to decode histogram payload: {e}") from e
        if histogram is None:
            raise DecodeError("Histogram payload decoded to nothing")
        return cls(histogram)


class _TextCollector:
    """File-like sink accepting the bytes or text hdrh writes."""

    def __init__(self):
        self._buffer = io.StringIO()

    def write(self, data: Union[str, bytes]) -> None:
        if isinstance(data, bytes):
            data = data.decode("ascii")
        self._buffer.write(data)

    def getvalue(self) -> str:
        return self._buffer.getvalue()


def _payload_cookie(raw: bytes) -> Optional[int]:
    """Encoding cookie leading the decoded payload, or None if unreadable."""
    try:
        header = base64.b64decode(raw[:8])
    except (binascii.Error, ValueError):
        return None
    if len(header) < 4:
        return None
    return struct.unpack(">i", header[:4])[0]


def _new_histogram(
    lowest: Optional[int] = None,
    highest: Optional[int] = None,
    significant_figures: Optional[int] = None,
) -> HdrHistogram:
    settings = config.histogram
    return HdrHistogram(
        lowest if lowest is not None else settings.lowest_trackable_value,
        highest if highest is not None else settings.highest_trackable_value,
        significant_figures if significant_figures is not None else settings.significant_figures,
    )
