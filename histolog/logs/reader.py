"""
Ordered histogram log reader.

Reads interval histograms from one log in file order, resolving the log's
time base, applying a time range and tag filter, and decoding only the
records that pass both.

Design:
- The reader is the scanner's EventHandler; each call to
  next_interval_histogram() scans until one record is produced or the scan
  stops
- Range and tag checks happen before the payload is decoded
- The first record past the range end stops the reader for good, since
  well-formed logs are in time order
- The reader owns its stream and closes it once exhausted or on error
"""

import io
import logging
from pathlib import Path
from typing import Iterator, Optional, TextIO, Union

from pydantic import ValidationError

from histolog.core.config import config
from histolog.core.exceptions import ConfigurationError, DecodeError

from .histogram import IntervalHistogram, seconds_to_ms
from .scanner import EventHandler, HistogramLogScanner
from .schema import (
    LazyPayload,
    PayloadDecoder,
    RangeFilter,
    ReaderState,
    TagPredicate,
    never_exclude,
)

logger = logging.getLogger(__name__)

LogSource = Union[str, Path, TextIO]


class OrderedHistogramLogReader(EventHandler):
    """
    Produces the interval histograms of one log, filtered and in time order.

    Example:
        with OrderedHistogramLogReader("latency.hlog", range_end_sec=60.0) as reader:
            for interval in reader:
                print(interval.start_timestamp_ms, interval.total_count)
    """

    def __init__(
        self,
        source: LogSource,
        range_start_sec: Optional[float] = None,
        range_end_sec: Optional[float] = None,
        exclude_tag: Optional[TagPredicate] = None,
        absolute: Optional[bool] = None,
        decoder: Optional[PayloadDecoder] = None,
    ):
        """
        Initialize reader.

        Args:
            source: Path to a log file, or an open text stream
            range_start_sec: Skip records starting before this (default from config)
            range_end_sec: Stop at the first record starting after this (default from config)
            exclude_tag: Predicate returning True for tags to skip
            absolute: Range is in epoch seconds rather than offsets from start time
            decoder: Payload decoder (default IntervalHistogram.decode)

        Raises:
            ConfigurationError: If the file doesn't exist or the range is invalid
        """
        defaults = config.reader
        try:
            self.range_filter = RangeFilter(
                range_start_sec=defaults.range_start_sec if range_start_sec is None else range_start_sec,
                range_end_sec=defaults.range_end_sec if range_end_sec is None else range_end_sec,
                absolute=defaults.absolute if absolute is None else absolute,
                exclude_tag=exclude_tag or never_exclude,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid reader range: {e}") from e

        self.name = _source_name(source)
        self.state = ReaderState()
        self._relative_threshold_sec = config.time_base.relative_timestamp_threshold_sec
        self._next: Optional[IntervalHistogram] = None
        self._in_range = True
        self._scanner = HistogramLogScanner(_open_source(source), decoder=decoder)

    def __enter__(self) -> "OrderedHistogramLogReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[IntervalHistogram]:
        while self.has_next():
            interval = self.next_interval_histogram()
            if interval is not None:
                yield interval

    @property
    def start_time_sec(self) -> float:
        """
        Latest start time found in the log so far (or 0.0).

        Once the first interval is read this is the log's resolved start time.
        """
        return self.state.start_time_sec

    def get_start_time_sec(self) -> float:
        return self.state.start_time_sec

    @property
    def base_time_sec(self) -> float:
        return self.state.base_time_sec

    def has_next(self) -> bool:
        """Whether more intervals may be available."""
        return self._in_range and self._scanner.has_next_line()

    def next_interval_histogram(self) -> Optional[IntervalHistogram]:
        """
        Read the next accepted interval.

        Returns:
            The next interval, or None if this call produced nothing (skipped
            or undecodable records, end of input). Use has_next() to tell
            whether more intervals may follow.
        """
        try:
            self._scanner.process(self)
        except BaseException:
            self.close()
            raise
        interval, self._next = self._next, None
        if not self.has_next():
            self.close()
        return interval

    def close(self) -> None:
        self._scanner.close()

    # EventHandler callbacks

    def on_comment(self, comment: str) -> bool:
        return False

    def on_base_time(self, seconds_since_epoch: float) -> bool:
        self.state.base_time_sec = seconds_since_epoch
        self.state.observed_base_time = True
        return False

    def on_start_time(self, seconds_since_epoch: float) -> bool:
        self.state.start_time_sec = seconds_since_epoch
        self.state.observed_start_time = True
        return False

    def on_histogram(
        self,
        tag: Optional[str],
        timestamp: float,
        length: float,
        payload: LazyPayload,
    ) -> bool:
        self.state.resolve(timestamp, self._relative_threshold_sec)

        absolute_start_sec = timestamp + self.state.base_time_sec
        offset_start_sec = absolute_start_sec - self.state.start_time_sec
        absolute_end_sec = absolute_start_sec + length

        range_filter = self.range_filter
        checked_sec = absolute_start_sec if range_filter.absolute else offset_start_sec

        if checked_sec < range_filter.range_start_sec:
            return False

        if checked_sec > range_filter.range_end_sec:
            logger.debug(f"{self.name}: reached range end at {checked_sec:.3f}s")
            self._in_range = False
            return True

        if range_filter.exclude_tag(tag):
            return False

        try:
            interval = payload.read()
        except DecodeError as e:
            logger.debug(f"{self.name}: skipping undecodable interval at {timestamp}: {e}")
            return True

        interval.start_timestamp_ms = seconds_to_ms(absolute_start_sec)
        interval.end_timestamp_ms = seconds_to_ms(absolute_end_sec)
        interval.tag = tag
        self._next = interval
        return True

    def on_exception(self, error: Exception) -> bool:
        logger.warning(f"{self.name}: skipping malformed line: {error}")
        return False


def _open_source(source: LogSource) -> TextIO:
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.is_file():
            raise ConfigurationError(f"Histogram log not found: {path}")
        return open(path, "r", encoding="utf-8")
    if isinstance(source, io.IOBase) or hasattr(source, "readline"):
        return source
    raise ConfigurationError(f"Unsupported log source: {type(source)}")


def _source_name(source: LogSource) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return getattr(source, "name", "<stream>")
