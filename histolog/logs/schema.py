"""
Event and state schema for histogram log scanning.

The scanner turns every log line into one of the LogEvent models below.
Histogram records carry their payload as a LazyPayload so that filters can
reject a record by tag or time before paying for the decode.

Design rationale:
- Events are immutable pydantic models, produced in file order
- A malformed line becomes a ParseFailure event instead of an exception
- Reader state and range filter are kept apart: the filter is fixed at
  construction, the state only moves forward while the log is read
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from histolog.core.exceptions import PayloadAlreadyReadError

from .histogram import IntervalHistogram

PayloadDecoder = Callable[[str], IntervalHistogram]
TagPredicate = Callable[[Optional[str]], bool]


def never_exclude(tag: Optional[str]) -> bool:
    return False


class LazyPayload:
    """
    One-shot decode thunk for the payload token of a histogram line.

    The token is kept as text until read() is called. A second read() is a
    contract violation and raises PayloadAlreadyReadError.
    """

    def __init__(self, token: str, decoder: PayloadDecoder):
        self._token = token
        self._decoder = decoder
        self._read = False

    @property
    def is_read(self) -> bool:
        return self._read

    def read(self) -> IntervalHistogram:
        if self._read:
            raise PayloadAlreadyReadError("Histogram payload can only be read once")
        self._read = True
        return self._decoder(self._token)


class CommentEvent(BaseModel):
    """A free text comment line (the raw line, leading '#' included)."""

    model_config = ConfigDict(frozen=True)

    text: str


class BaseTimeEvent(BaseModel):
    """A '#[BaseTime: ...]' line."""

    model_config = ConfigDict(frozen=True)

    seconds: float


class StartTimeEvent(BaseModel):
    """A '#[StartTime: ...]' line."""

    model_config = ConfigDict(frozen=True)

    seconds: float


class HistogramRecord(BaseModel):
    """
    One interval line with its payload still encoded.

    Attributes:
        tag: Value of the optional Tag= field
        timestamp_sec: Raw start timestamp as written in the log
        length_sec: Interval length in seconds
        payload: One-shot decoder for the compressed histogram
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    tag: Optional[str] = None
    timestamp_sec: float
    length_sec: float
    payload: LazyPayload


class ParseFailure(BaseModel):
    """A line that could not be parsed."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    line_number: int = Field(..., ge=0)
    line: str
    error: Exception


LogEvent = Union[CommentEvent, BaseTimeEvent, StartTimeEvent, HistogramRecord, ParseFailure]


class RangeFilter(BaseModel):
    """
    Time range and tag filter applied by an ordered reader.

    Attributes:
        range_start_sec: Records starting before this are skipped
        range_end_sec: The first record starting after this ends the read
        absolute: Compare absolute timestamps instead of offsets from start time
        exclude_tag: Predicate returning True for tags to skip
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    range_start_sec: float = 0.0
    range_end_sec: float
    absolute: bool = False
    exclude_tag: TagPredicate = never_exclude

    @model_validator(mode="after")
    def _check_range(self) -> "RangeFilter":
        if self.range_start_sec > self.range_end_sec:
            raise ValueError(
                f"range start {self.range_start_sec} is after range end {self.range_end_sec}"
            )
        return self


@dataclass
class ReaderState:
    """
    Running time base of one log.

    Values default to 0.0 until a StartTime/BaseTime comment is seen or the
    first histogram record resolves them.
    """

    start_time_sec: float = 0.0
    base_time_sec: float = 0.0
    observed_start_time: bool = False
    observed_base_time: bool = False

    def resolve(self, timestamp_sec: float, relative_threshold_sec: float) -> None:
        """Fill in whatever the log did not state explicitly, from its first record."""
        if not self.observed_start_time:
            # No explicit start time noted, use the first observed time
            self.start_time_sec = timestamp_sec
            self.observed_start_time = True

        if not self.observed_base_time:
            if timestamp_sec < self.start_time_sec - relative_threshold_sec:
                # Far before the start time: timestamps are offsets, not epoch seconds
                self.base_time_sec = self.start_time_sec
            else:
                self.base_time_sec = 0.0
            self.observed_base_time = True
