"""
Union of histogram logs: ordered k-way merge with per-tag windows.

Logs recorded by independently rotated sources rarely share interval
boundaries. Rather than requiring an exact time grid, each tag keeps one open
window; an incoming interval is merged into the window it mostly falls into,
and otherwise the window is emitted and a new one opened.

Window decision for a candidate [cS, cE) against the open window [wS, wE):
1. Empty window: absorb and take the candidate's bounds (widened to
   target_window_ms when set).
2. Candidate inside the window: absorb, bounds unchanged.
3. Candidate overlapping the window end: absorb without moving the bounds if
   more than overlap_threshold of it lies inside, otherwise roll over.
4. Candidate after the window: roll over, i.e. emit the window and open a new
   one with the candidate.
"""

import heapq
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from histolog.core.config import config

from .diagnostics import format_interval_summary
from .histogram import IntervalHistogram
from .iterator import HistogramIterator
from .sinks import HistogramSink

logger = logging.getLogger(__name__)


@dataclass
class UnionWindow:
    """
    Open union window for one tag.

    Attributes:
        accumulator: Merged values, bounds and tag of the window
        rollover_index: Number of windows emitted for this tag so far
    """

    accumulator: IntervalHistogram = field(default_factory=IntervalHistogram)
    rollover_index: int = 0

    def absorb(self, candidate: IntervalHistogram, target_window_ms: int = 0) -> None:
        """Merge candidate; an empty window adopts the candidate's bounds."""
        window = self.accumulator
        was_empty = window.is_empty_window
        window.merge(candidate)
        if was_empty:
            window.start_timestamp_ms = candidate.start_timestamp_ms
            window.end_timestamp_ms = candidate.end_timestamp_ms
            if target_window_ms > 0:
                window.end_timestamp_ms = max(
                    candidate.end_timestamp_ms,
                    window.start_timestamp_ms + target_window_ms,
                )

    def rollover(self, tag: Optional[str]) -> IntervalHistogram:
        """Close the window; returns the finished accumulator and opens an empty one."""
        finished = self.accumulator
        self.accumulator = IntervalHistogram(tag=tag)
        self.rollover_index += 1
        return finished


class UnionEngine:
    """
    Merges several histogram streams into one, window by window.

    Example:
        inputs = [HistogramIterator(OrderedHistogramLogReader(p)) for p in paths]
        UnionEngine(inputs, LogWriterSink(out)).run()
    """

    def __init__(
        self,
        inputs: Iterable[HistogramIterator],
        sink: HistogramSink,
        target_window_ms: Optional[int] = None,
        overlap_threshold: Optional[float] = None,
    ):
        """
        Initialize engine.

        Args:
            inputs: Streams to merge
            sink: Receives the start time and every finished window
            target_window_ms: Minimum window width (default from config, 0 = none)
            overlap_threshold: Fraction of a candidate that must fall in the
                open window to be absorbed (default from config)
        """
        self.inputs = list(inputs)
        self.sink = sink
        self.target_window_ms = (
            config.union.target_window_ms if target_window_ms is None else target_window_ms
        )
        self.overlap_threshold = (
            config.union.overlap_threshold if overlap_threshold is None else overlap_threshold
        )
        self.windows: Dict[Optional[str], UnionWindow] = {}
        self._event_index = 0
        self._emitted = 0

    def run(self) -> int:
        """
        Merge all inputs into the sink.

        Returns:
            Number of windows emitted
        """
        heap: List[HistogramIterator] = [i for i in self.inputs if i.has_next()]
        if not heap:
            logger.info("Input logs do not contain the requested range")
            return 0
        heapq.heapify(heap)

        earliest = heap[0]
        self.sink.start_time(0.0 if earliest.relative else earliest.start_time_sec)

        while heap:
            source = heapq.heappop(heap)
            candidate = source.next()
            self._add(candidate)
            if source.has_next():
                heapq.heappush(heap, source)

        for window in self.windows.values():
            self._emit(window.accumulator)
        return self._emitted

    def _add(self, candidate: IntervalHistogram) -> None:
        window = self.windows.get(candidate.tag)
        if window is None:
            window = UnionWindow(accumulator=IntervalHistogram(tag=candidate.tag))
            self.windows[candidate.tag] = window

        self._log_interval("input", candidate)
        accumulator = window.accumulator

        if accumulator.is_empty_window:
            window.absorb(candidate, self.target_window_ms)
            return

        candidate_start = candidate.start_timestamp_ms
        candidate_end = candidate.end_timestamp_ms
        window_start = accumulator.start_timestamp_ms
        window_end = accumulator.end_timestamp_ms

        if candidate_start < window_end:
            if candidate_end <= window_end:
                window.absorb(candidate)
                return
            overlap = (window_end - candidate_start) / (candidate_end - candidate_start)
            if overlap > self.overlap_threshold:
                window.absorb(candidate)
                # Keep the window from stretching to the candidate's end
                accumulator.start_timestamp_ms = window_start
                accumulator.end_timestamp_ms = window_end
                return

        self._emit(window.rollover(candidate.tag))
        window.absorb(candidate, self.target_window_ms)

    def _emit(self, interval: IntervalHistogram) -> None:
        self._log_interval("union", interval)
        self.sink.accept(interval)
        self._emitted += 1

    def _log_interval(self, kind: str, interval: IntervalHistogram) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{kind}, {format_interval_summary(interval, self._event_index)}")
        self._event_index += 1


def union_histogram_logs(
    inputs: Iterable[HistogramIterator],
    sink: HistogramSink,
    target_window_ms: Optional[int] = None,
) -> int:
    """
    Convenience function to merge inputs into sink.

    Returns:
        Number of windows emitted
    """
    return UnionEngine(inputs, sink, target_window_ms=target_window_ms).run()
