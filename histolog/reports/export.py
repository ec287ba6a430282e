"""
Tabular export of interval histograms.

One row per interval with its count and latency percentiles, as a pandas
DataFrame or CSV text.
"""

from typing import Iterable, TextIO

import pandas as pd

from histolog.logs.histogram import IntervalHistogram

CSV_COLUMNS = [
    "Timestamp",
    "Throughput",
    "Min",
    "Avg",
    "p50",
    "p90",
    "p95",
    "p99",
    "p999",
    "p9999",
    "Max",
]

_PERCENTILE_COLUMNS = [
    ("p50", 50.0),
    ("p90", 90.0),
    ("p95", 95.0),
    ("p99", 99.0),
    ("p999", 99.9),
    ("p9999", 99.99),
]


def interval_row(interval: IntervalHistogram) -> dict:
    row = {
        "Timestamp": interval.start_timestamp_ms / 1000.0,
        "Throughput": interval.total_count,
        "Min": interval.min_value,
        "Avg": int(interval.mean),
    }
    for column, percentile in _PERCENTILE_COLUMNS:
        row[column] = interval.value_at_percentile(percentile)
    row["Max"] = interval.max_value
    return row


def intervals_to_frame(intervals: Iterable[IntervalHistogram]) -> pd.DataFrame:
    """
    Build a DataFrame with one row per interval.

    Args:
        intervals: Intervals in output order (an OrderedHistogramLogReader works)

    Returns:
        DataFrame with CSV_COLUMNS; Timestamp is the start time in seconds
    """
    rows = [interval_row(interval) for interval in intervals]
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def write_csv(intervals: Iterable[IntervalHistogram], stream: TextIO) -> int:
    """
    Write intervals as CSV with a '#'-prefixed header.

    Returns:
        Number of rows written
    """
    frame = intervals_to_frame(intervals)
    stream.write("#")
    frame.to_csv(stream, index=False, float_format="%.3f", lineterminator="\n")
    return len(frame)
