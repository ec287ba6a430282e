"""
Reports module: summaries, tabular export and tag splitting of histogram logs.
"""

from histolog.reports.export import CSV_COLUMNS, intervals_to_frame, write_csv
from histolog.reports.split import split_by_tag, split_log_file
from histolog.reports.summary import (
    LogSummary,
    format_bucket_csv,
    format_hgrm,
    format_percentiles,
    summarize_histogram,
    sum_logs,
    summarize_logs,
)

__all__ = [
    "LogSummary",
    "summarize_logs",
    "summarize_histogram",
    "sum_logs",
    "format_percentiles",
    "format_bucket_csv",
    "format_hgrm",
    "CSV_COLUMNS",
    "intervals_to_frame",
    "write_csv",
    "split_by_tag",
    "split_log_file",
]
