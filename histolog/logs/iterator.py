"""
Peekable histogram stream over one ordered reader.

Keeps the next interval buffered so streams from several logs can be ordered
by their next start time, optionally rebasing timestamps to the log's start
time and prefixing tags with a per-source label.
"""

from typing import Optional

from .histogram import IntervalHistogram, seconds_to_ms
from .reader import OrderedHistogramLogReader

TAG_SEPARATOR = "::"


class HistogramIterator:
    """
    One-element lookahead over an OrderedHistogramLogReader.

    Iterators order by the start timestamp of their buffered interval; an
    exhausted iterator sorts after every live one.
    """

    def __init__(
        self,
        reader: OrderedHistogramLogReader,
        tag_prefix: Optional[str] = None,
        relative: bool = False,
    ):
        self.reader = reader
        self.tag_prefix = tag_prefix
        self.relative = relative
        self._next: Optional[IntervalHistogram] = None
        self._read()

    def __repr__(self) -> str:
        return f"HistogramIterator({self.reader.name!r}, next={self._next!r})"

    def __iter__(self) -> "HistogramIterator":
        return self

    def __next__(self) -> IntervalHistogram:
        if self._next is None:
            raise StopIteration
        return self.next()

    def __lt__(self, other: "HistogramIterator") -> bool:
        return self.compare_to(other) < 0

    @property
    def start_time_sec(self) -> float:
        return self.reader.start_time_sec

    def peek(self) -> Optional[IntervalHistogram]:
        return self._next

    def has_next(self) -> bool:
        return self._next is not None

    def next(self) -> IntervalHistogram:
        """Return the buffered interval and buffer the one after it."""
        current = self._next
        if current is None:
            raise StopIteration("Histogram iterator is exhausted")
        self._read()
        return current

    def compare_to(self, other: "HistogramIterator") -> int:
        if not self.has_next() and not other.has_next():
            return 0
        if not self.has_next():
            return 1
        if not other.has_next():
            return -1
        delta = self._next.start_timestamp_ms - other._next.start_timestamp_ms
        return (delta > 0) - (delta < 0)

    def _read(self) -> None:
        interval = None
        while interval is None and self.reader.has_next():
            interval = self.reader.next_interval_histogram()
        self._next = interval
        if interval is None:
            return

        if self.relative:
            length_ms = interval.end_timestamp_ms - interval.start_timestamp_ms
            interval.start_timestamp_ms -= seconds_to_ms(self.reader.start_time_sec)
            interval.end_timestamp_ms = interval.start_timestamp_ms + length_ms

        if self.tag_prefix is not None:
            if interval.tag is None:
                interval.tag = self.tag_prefix
            else:
                interval.tag = f"{self.tag_prefix}{TAG_SEPARATOR}{interval.tag}"
