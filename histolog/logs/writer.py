"""
Histogram log writer.

Writes the same text format the scanner reads, so union, split and other
rewritten logs can be read back by OrderedHistogramLogReader.
"""

from datetime import datetime, timezone
from typing import Optional, TextIO

from histolog.core.config import config

from .histogram import IntervalHistogram, seconds_to_ms
from .scanner import BASE_TIME_PREFIX, START_TIME_PREFIX, TAG_PREFIX

LOG_FORMAT_VERSION = "1.3"
LEGEND = '"StartTimestamp","Interval_Length","Interval_Max","Interval_Compressed_Histogram"'


class HistogramLogWriter:
    """
    Writes interval histograms as log lines.

    Interval timestamps are written in seconds relative to base_time_ms, which
    is also announced with a BaseTime comment so readers restore absolute time.
    """

    def __init__(self, stream: TextIO, max_value_unit_ratio: Optional[float] = None):
        self.stream = stream
        self.base_time_ms = 0
        self.max_value_unit_ratio = (
            max_value_unit_ratio
            if max_value_unit_ratio is not None
            else config.output.max_value_unit_ratio
        )

    def output_log_format_version(self) -> None:
        self.output_comment(f"[Histogram log format version {LOG_FORMAT_VERSION}]")

    def output_comment(self, comment: str) -> None:
        self.stream.write(f"#{comment}\n")

    def output_base_time(self, base_time_ms: int) -> None:
        self.stream.write(f"{BASE_TIME_PREFIX} {base_time_ms / 1000.0:.3f} (seconds since epoch)]\n")

    def output_start_time(self, start_time_ms: int) -> None:
        started = datetime.fromtimestamp(start_time_ms / 1000.0, tz=timezone.utc)
        self.stream.write(
            f"{START_TIME_PREFIX} {start_time_ms / 1000.0:.3f} (seconds since epoch), "
            f"{started.isoformat()}]\n"
        )

    def output_legend(self) -> None:
        self.stream.write(LEGEND + "\n")

    def output_interval_histogram(self, interval: IntervalHistogram) -> None:
        start_sec = (interval.start_timestamp_ms - self.base_time_ms) / 1000.0
        length_sec = (interval.end_timestamp_ms - interval.start_timestamp_ms) / 1000.0
        max_value = interval.max_value / self.max_value_unit_ratio
        prefix = "" if interval.tag is None else f"{TAG_PREFIX}{interval.tag},"
        self.stream.write(
            f"{prefix}{start_sec:.3f},{length_sec:.3f},{max_value:.3f},{interval.encode()}\n"
        )


def create_log_writer(
    stream: TextIO,
    comment: Optional[str] = None,
    start_time_sec: float = 0.0,
    max_value_unit_ratio: Optional[float] = None,
) -> HistogramLogWriter:
    """
    Create a writer and emit the log header.

    A non-zero start_time_sec becomes both the BaseTime and the StartTime of
    the new log; with 0.0 the log carries raw (relative) timestamps.
    """
    writer = HistogramLogWriter(stream, max_value_unit_ratio=max_value_unit_ratio)
    writer.output_log_format_version()
    if comment is not None:
        writer.output_comment(comment)
    if start_time_sec != 0.0:
        start_time_ms = seconds_to_ms(start_time_sec)
        writer.base_time_ms = start_time_ms
        writer.output_base_time(start_time_ms)
        writer.output_start_time(start_time_ms)
    writer.output_legend()
    return writer
