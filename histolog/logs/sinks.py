"""
Destinations for intervals produced by the union engine.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, TextIO

from .histogram import IntervalHistogram
from .writer import HistogramLogWriter, create_log_writer


class HistogramSink(ABC):
    """
    Receives the log start time once, then each finished interval.
    """

    @abstractmethod
    def start_time(self, seconds: float) -> None:
        pass

    @abstractmethod
    def accept(self, interval: IntervalHistogram) -> None:
        pass


class CollectingSink(HistogramSink):
    """Keeps everything it receives in memory."""

    def __init__(self):
        self.start_times: List[float] = []
        self.intervals: List[IntervalHistogram] = []

    def start_time(self, seconds: float) -> None:
        self.start_times.append(seconds)

    def accept(self, interval: IntervalHistogram) -> None:
        self.intervals.append(interval)


class LogWriterSink(HistogramSink):
    """
    Writes intervals to a histogram log.

    The header is written when the start time arrives; a start time of 0.0
    (relative merges) produces a log without BaseTime/StartTime comments.
    """

    def __init__(
        self,
        stream: TextIO,
        comment: Optional[str] = None,
        max_value_unit_ratio: Optional[float] = None,
    ):
        self.stream = stream
        self.comment = comment
        self.max_value_unit_ratio = max_value_unit_ratio
        self.writer: Optional[HistogramLogWriter] = None

    def start_time(self, seconds: float) -> None:
        self.writer = create_log_writer(
            self.stream,
            comment=self.comment,
            start_time_sec=seconds,
            max_value_unit_ratio=self.max_value_unit_ratio,
        )

    def accept(self, interval: IntervalHistogram) -> None:
        if self.writer is None:
            self.start_time(0.0)
        self.writer.output_interval_histogram(interval)
