"""
Summaries of histogram logs over a time range.

Adds up every interval of one or more logs, per tag, and reports totals,
throughput and percentiles.

Design:
- Period is the sum over files of the widest per-tag span in that file, so
  concurrent tags in one file don't double count time
- ignore_timestamps replaces the period with the sum of interval lengths
- Output scaling (e.g. ns to us) is applied only when formatting
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from histolog.core.config import config
from histolog.logs.diagnostics import format_interval_summary
from histolog.logs.histogram import IntervalHistogram
from histolog.logs.reader import OrderedHistogramLogReader

logger = logging.getLogger(__name__)


class LogSummary(BaseModel):
    """
    Totals for one tag across the summarized logs.

    Attributes:
        tag: Tag summarized (None for untagged, or for everything with ignore_tag)
        total_count: Number of recorded values
        period_ms: Time covered, in milliseconds
        throughput: Values per second over the period
        min_value/mean/max_value: Value summaries in recorded units
        percentiles: Percentile -> value, in recorded units
    """

    tag: Optional[str] = None
    total_count: int = Field(..., ge=0)
    period_ms: int = Field(..., ge=0)
    throughput: float = Field(..., ge=0.0)
    min_value: int = Field(..., ge=0)
    mean: float = Field(..., ge=0.0)
    max_value: int = Field(..., ge=0)
    percentiles: Dict[float, int] = Field(default_factory=dict)


def summarize_logs(
    paths: Iterable[Union[str, Path]],
    range_start_sec: Optional[float] = None,
    range_end_sec: Optional[float] = None,
    ignore_tag: bool = False,
    ignore_timestamps: bool = False,
    percentiles: Optional[List[float]] = None,
) -> Dict[Optional[str], LogSummary]:
    """
    Summarize the intervals of several logs, per tag.

    Args:
        paths: Log files to read
        range_start_sec: Range start, offset from each log's start time
        range_end_sec: Range end, offset from each log's start time
        ignore_tag: Summarize all tags together
        ignore_timestamps: Use summed interval lengths as the period
        percentiles: Percentiles to report (default from config)

    Returns:
        Dict mapping tag -> LogSummary
    """
    sums, period_ms = sum_logs(paths, range_start_sec, range_end_sec, ignore_tag, ignore_timestamps)
    percentiles = percentiles if percentiles is not None else config.output.percentiles
    return {
        tag: summarize_histogram(histogram, period_ms, percentiles)
        for tag, histogram in sums.items()
    }


def summarize_histogram(
    histogram: IntervalHistogram,
    period_ms: int,
    percentiles: Iterable[float],
) -> LogSummary:
    throughput = histogram.total_count * 1000.0 / period_ms if period_ms > 0 else 0.0
    return LogSummary(
        tag=histogram.tag,
        total_count=histogram.total_count,
        period_ms=period_ms,
        throughput=throughput,
        min_value=histogram.min_value,
        mean=histogram.mean,
        max_value=histogram.max_value,
        percentiles={p: histogram.value_at_percentile(p) for p in percentiles},
    )


def sum_logs(
    paths: Iterable[Union[str, Path]],
    range_start_sec: Optional[float] = None,
    range_end_sec: Optional[float] = None,
    ignore_tag: bool = False,
    ignore_timestamps: bool = False,
) -> Tuple[Dict[Optional[str], IntervalHistogram], int]:
    """
    Add up the intervals of several logs per tag.

    Returns:
        (dict mapping tag -> summed histogram, period in milliseconds)
    """
    sums: Dict[Optional[str], IntervalHistogram] = {}
    period_ms = 0
    interval_length_sum_ms = 0
    index = 0

    for path in paths:
        logger.debug(f"Summarizing file: {Path(path).name}")
        spans: Dict[Optional[str], Tuple[int, int]] = {}
        with OrderedHistogramLogReader(path, range_start_sec, range_end_sec) as reader:
            for interval in reader:
                tag = None if ignore_tag else interval.tag
                total = sums.get(tag)
                if total is None:
                    total = IntervalHistogram(tag=tag)
                    sums[tag] = total
                total.merge(interval)
                interval_length_sum_ms += interval.length_ms

                start, end = spans.get(tag, (interval.start_timestamp_ms, interval.end_timestamp_ms))
                spans[tag] = (
                    min(start, interval.start_timestamp_ms),
                    max(end, interval.end_timestamp_ms),
                )
                logger.debug(format_interval_summary(interval, index))
                index += 1

        period_ms += max((end - start for start, end in spans.values()), default=0)

    if ignore_timestamps:
        period_ms = interval_length_sum_ms
    return sums, period_ms


def format_percentiles(summary: LogSummary, output_value_unit_ratio: Optional[float] = None) -> str:
    """
    Format a summary as key=value lines.

    Example:
        TotalCount=1000
        Period(ms)=10000
        Throughput(ops/sec)=100.00
        Min=1
        Mean=500.50
        50.000ptile=500
        ...
        Max=1000
    """
    ratio = output_value_unit_ratio or config.output.output_value_unit_ratio
    prefix = "" if summary.tag is None else f"{summary.tag}."
    lines = [
        f"{prefix}TotalCount={summary.total_count}",
        f"{prefix}Period(ms)={summary.period_ms}",
        f"{prefix}Throughput(ops/sec)={summary.throughput:.2f}",
        f"{prefix}Min={int(summary.min_value / ratio)}",
        f"{prefix}Mean={summary.mean / ratio:.2f}",
    ]
    for percentile, value in summary.percentiles.items():
        lines.append(f"{prefix}{percentile:.3f}ptile={int(value / ratio)}")
    lines.append(f"{prefix}Max={int(summary.max_value / ratio)}")
    return "\n".join(lines) + "\n"


def format_bucket_csv(
    histogram: IntervalHistogram,
    bucket_size: Optional[int] = None,
    output_value_unit_ratio: Optional[float] = None,
) -> str:
    """
    Format a histogram as fixed-width value buckets.

    Example (bucket_size=100):
        BucketStart, Count
        0,12
        100,40
    """
    bucket_size = bucket_size or config.output.csv_bucket_size
    ratio = output_value_unit_ratio or config.output.output_value_unit_ratio
    lines = ["BucketStart, Count"]
    if histogram.total_count == 0:
        return lines[0] + "\n"

    min_value = int(histogram.min_value / ratio)
    max_value = int(histogram.max_value / ratio)
    bucket_start = (min_value // bucket_size) * bucket_size
    while bucket_start <= max_value:
        low = int(bucket_start * ratio)
        # Upper edge is exclusive: stop one unit short of the next bucket
        high = int((bucket_start + bucket_size) * ratio) - 1
        lines.append(f"{bucket_start},{histogram.count_between_values(low, high)}")
        bucket_start += bucket_size
    return "\n".join(lines) + "\n"


def format_hgrm(
    histogram: IntervalHistogram,
    ticks_per_half: int = 5,
    output_value_unit_ratio: Optional[float] = None,
) -> str:
    """
    Format a histogram as a percentile distribution ('.hgrm' text).

    Args:
        histogram: Summed histogram, e.g. a value of sum_logs()
        ticks_per_half: Percentile reporting ticks per half distance to 100%
        output_value_unit_ratio: Divisor for reported values (default from config)
    """
    ratio = output_value_unit_ratio or config.output.output_value_unit_ratio
    return histogram.percentile_distribution(ticks_per_half, ratio)
