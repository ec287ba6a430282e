"""
Logs module: histogram log scanning, ordered reading and union.

Pipeline:

    Raw log text
        ↓
    Scanning (histolog/logs/scanner.py) → LogEvent
        ↓
    Ordered reading (histolog/logs/reader.py) → IntervalHistogram
        ↓
    Ordered iteration (histolog/logs/iterator.py)
        ↓
    Union (histolog/logs/union.py) → HistogramSink
"""

from histolog.logs.diagnostics import display_tag, format_interval_summary
from histolog.logs.histogram import EMPTY_END_MS, EMPTY_START_MS, IntervalHistogram, seconds_to_ms
from histolog.logs.iterator import HistogramIterator
from histolog.logs.reader import OrderedHistogramLogReader
from histolog.logs.scanner import EventHandler, HistogramLogScanner
from histolog.logs.schema import (
    BaseTimeEvent,
    CommentEvent,
    HistogramRecord,
    LazyPayload,
    LogEvent,
    ParseFailure,
    RangeFilter,
    ReaderState,
    StartTimeEvent,
)
from histolog.logs.sinks import CollectingSink, HistogramSink, LogWriterSink
from histolog.logs.tags import build_tag_predicate
from histolog.logs.union import UnionEngine, UnionWindow, union_histogram_logs
from histolog.logs.writer import HistogramLogWriter, create_log_writer

__all__ = [
    # Values
    "IntervalHistogram",
    "EMPTY_START_MS",
    "EMPTY_END_MS",
    "seconds_to_ms",

    # Scanning
    "HistogramLogScanner",
    "EventHandler",
    "LazyPayload",
    "LogEvent",
    "CommentEvent",
    "BaseTimeEvent",
    "StartTimeEvent",
    "HistogramRecord",
    "ParseFailure",

    # Reading
    "OrderedHistogramLogReader",
    "RangeFilter",
    "ReaderState",
    "build_tag_predicate",
    "HistogramIterator",

    # Union
    "UnionEngine",
    "UnionWindow",
    "union_histogram_logs",

    # Output
    "HistogramSink",
    "CollectingSink",
    "LogWriterSink",
    "HistogramLogWriter",
    "create_log_writer",
    "display_tag",
    "format_interval_summary",
]
