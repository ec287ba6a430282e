"""
Histogram log scanner.

Tokenizes histogram log text into LogEvent objects, line by line.

A histogram log consists of text lines:
- Lines starting with '#' are comments. '#[StartTime: <sec>' and
  '#[BaseTime: <sec>' are reserved comments carrying the log's start time and
  base time in seconds since the epoch.
- A legend line starting with '"StartTimestamp"' is documentation and skipped.
- Every other line is an interval line: an optional Tag=<tag> field followed
  by exactly four fields delimited by spaces or commas:

      StartTimestamp  Interval_Length  Interval_Max  Interval_Compressed_Histogram

  The max field is redundant with the histogram and is discarded; the payload
  is handed out as a LazyPayload and decoded only on demand.

Design:
- events() is a lazy generator; process() drives an EventHandler over it
- The scanner owns the read position, so both can be resumed after a stop
- A bad line becomes a ParseFailure and scanning goes on with the next line
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Iterator, Optional, TextIO

from histolog.core.exceptions import ParsingError

from .histogram import IntervalHistogram
from .schema import (
    BaseTimeEvent,
    CommentEvent,
    HistogramRecord,
    LazyPayload,
    LogEvent,
    ParseFailure,
    PayloadDecoder,
    StartTimeEvent,
)

logger = logging.getLogger(__name__)

START_TIME_PREFIX = "#[StartTime:"
BASE_TIME_PREFIX = "#[BaseTime:"
LEGEND_PREFIX = '"StartTimestamp"'
TAG_PREFIX = "Tag="

_FIELD_DELIMITER = re.compile(r"[ ,\t]+")
_COMMENT_TIME_DELIMITER = re.compile(r"[ ,\t\]]+")


class EventHandler(ABC):
    """
    Receives scanner events. Every callback returns True to stop processing.
    """

    @abstractmethod
    def on_comment(self, comment: str) -> bool:
        pass

    @abstractmethod
    def on_base_time(self, seconds_since_epoch: float) -> bool:
        pass

    @abstractmethod
    def on_start_time(self, seconds_since_epoch: float) -> bool:
        pass

    @abstractmethod
    def on_histogram(
        self,
        tag: Optional[str],
        timestamp: float,
        length: float,
        payload: LazyPayload,
    ) -> bool:
        """
        Args:
            tag: Histogram tag, or None if the line has none
            timestamp: Logged start timestamp in seconds
            length: Logged interval length in seconds
            payload: Call payload.read() (at most once) to decode the histogram
        """
        pass

    @abstractmethod
    def on_exception(self, error: Exception) -> bool:
        pass


class HistogramLogScanner:
    """
    Line-oriented scanner over a histogram log text stream.

    Example:
        with HistogramLogScanner(open("latency.hlog")) as scanner:
            for event in scanner.events():
                ...
    """

    def __init__(self, source: TextIO, decoder: Optional[PayloadDecoder] = None):
        """
        Initialize scanner.

        Args:
            source: Text stream to read; the scanner closes it on close()
            decoder: Payload decoder (default IntervalHistogram.decode)
        """
        self._source = source
        self._decoder = decoder or IntervalHistogram.decode
        self._pending: Optional[str] = None
        self._line_number = 0
        self._closed = False

    def __enter__(self) -> "HistogramLogScanner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the underlying stream."""
        if not self._closed:
            self._closed = True
            self._pending = None
            self._source.close()

    def has_next_line(self) -> bool:
        """Whether unconsumed input remains."""
        if self._closed:
            return False
        if self._pending is None:
            line = self._source.readline()
            if not line:
                return False
            self._pending = line
        return True

    def _take_line(self) -> str:
        line = self._pending
        self._pending = None
        self._line_number += 1
        return line

    def events(self) -> Iterator[LogEvent]:
        """
        Yield events for the remaining lines.

        Each line is consumed before its event is yielded, so abandoning the
        generator and calling events() again continues with the next line.
        """
        while self.has_next_line():
            line_number = self._line_number + 1
            line = self._take_line().rstrip("\r\n")
            try:
                event = self.parse_line(line, line_number)
            except ParsingError as e:
                event = ParseFailure(line_number=line_number, line=line, error=e)
            except Exception as e:
                error = ParsingError(
                    f"Unexpected error parsing line {line_number}: {e}",
                    line_number=line_number,
                    line=line,
                )
                error.__cause__ = e
                event = ParseFailure(line_number=line_number, line=line, error=error)
            if event is not None:
                yield event

    def process(self, handler: EventHandler) -> None:
        """
        Deliver events to handler until it returns True or input is exhausted.

        An exception raised by a callback for a line is delivered to
        handler.on_exception as a ParsingError for that line; errors raised
        by on_exception itself propagate.
        """
        for event in self.events():
            try:
                stop = self._dispatch(handler, event)
            except Exception as e:
                if isinstance(event, ParseFailure):
                    raise
                error = ParsingError(
                    f"Error handling line {self._line_number}: {e}",
                    line_number=self._line_number,
                )
                error.__cause__ = e
                stop = handler.on_exception(error)
            if stop:
                return

    @staticmethod
    def _dispatch(handler: EventHandler, event: LogEvent) -> bool:
        if isinstance(event, HistogramRecord):
            return handler.on_histogram(
                event.tag, event.timestamp_sec, event.length_sec, event.payload
            )
        if isinstance(event, CommentEvent):
            return handler.on_comment(event.text)
        if isinstance(event, StartTimeEvent):
            return handler.on_start_time(event.seconds)
        if isinstance(event, BaseTimeEvent):
            return handler.on_base_time(event.seconds)
        return handler.on_exception(event.error)

    def parse_line(self, line: str, line_number: int = 0) -> Optional[LogEvent]:
        """
        Parse a single log line.

        Returns:
            The line's event, or None for blank, legend and ignorable lines

        Raises:
            ParsingError: If an interval line is malformed
        """
        stripped = line.strip()
        if not stripped:
            return None

        if stripped.startswith("#"):
            return self._parse_comment(stripped, line_number)

        if stripped.startswith(LEGEND_PREFIX):
            return None

        fields = [f for f in _FIELD_DELIMITER.split(stripped) if f]
        tag = None
        if fields[0].startswith(TAG_PREFIX):
            tag = fields[0][len(TAG_PREFIX):]
            fields = fields[1:]

        if len(fields) != 4:
            raise ParsingError(
                f"Expected 4 interval fields, found {len(fields)} at line {line_number}: {stripped[:50]}",
                line_number=line_number,
                line=line,
            )

        timestamp_sec = _parse_seconds(fields[0], "StartTimestamp", line_number, line)
        length_sec = _parse_seconds(fields[1], "Interval_Length", line_number, line)
        # Max is recoverable from the histogram itself, only check it is numeric
        _parse_seconds(fields[2], "Interval_Max", line_number, line)

        return HistogramRecord(
            tag=tag,
            timestamp_sec=timestamp_sec,
            length_sec=length_sec,
            payload=LazyPayload(fields[3], self._decoder),
        )

    def _parse_comment(self, line: str, line_number: int) -> Optional[LogEvent]:
        for prefix, event_type in (
            (START_TIME_PREFIX, StartTimeEvent),
            (BASE_TIME_PREFIX, BaseTimeEvent),
        ):
            if line.startswith(prefix):
                remainder = _COMMENT_TIME_DELIMITER.split(line[len(prefix):].strip(), maxsplit=1)
                try:
                    seconds = float(remainder[0])
                except ValueError:
                    logger.debug(f"Ignoring {prefix} comment without a time at line {line_number}")
                    return None
                return event_type(seconds=seconds)
        return CommentEvent(text=line)


def _parse_seconds(field: str, name: str, line_number: int, line: str) -> float:
    try:
        return float(field)
    except ValueError as e:
        raise ParsingError(
            f"Invalid {name} '{field}' at line {line_number}",
            line_number=line_number,
            line=line,
        ) from e
