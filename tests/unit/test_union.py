"""
Unit tests for the union engine.

Tests the window decisions (containment, overlap, rollover), per-tag
windows, target window width and sink protocol.
"""

from typing import List

import pytest

from histolog.logs.histogram import IntervalHistogram
from histolog.logs.iterator import HistogramIterator
from histolog.logs.sinks import CollectingSink
from histolog.logs.union import UnionEngine, UnionWindow, union_histogram_logs


class ListIterator(HistogramIterator):
    """HistogramIterator over prepared intervals instead of a log reader."""

    def __init__(self, intervals: List[IntervalHistogram], start_time_sec: float = 0.0, relative: bool = False):
        self._pending = list(intervals)
        self._start_time_sec = start_time_sec
        self.tag_prefix = None
        self.relative = relative
        self._read()

    def __repr__(self) -> str:
        return f"ListIterator(next={self._next!r}, pending={len(self._pending)})"

    @property
    def start_time_sec(self) -> float:
        return self._start_time_sec

    def _read(self) -> None:
        self._next = self._pending.pop(0) if self._pending else None


def _bounds(intervals):
    return [(i.start_timestamp_ms, i.end_timestamp_ms) for i in intervals]


def _run(*streams, **kwargs) -> CollectingSink:
    sink = CollectingSink()
    UnionEngine([ListIterator(s) for s in streams], sink, **kwargs).run()
    return sink


class TestWindowDecisions:
    """Test how a candidate is placed relative to the open window."""

    def test_contained_candidate_is_absorbed(self, interval_factory):
        """Test that a candidate inside the window merges without changing bounds."""
        sink = _run(
            [interval_factory([10], 0, 1000)],
            [interval_factory([20, 30], 200, 900)],
        )

        assert _bounds(sink.intervals) == [(0, 1000)]
        assert sink.intervals[0].total_count == 3

    def test_small_overlap_rolls_over(self, interval_factory):
        """Test that a candidate mostly past the window end opens a new window."""
        sink = _run(
            [interval_factory([10], 0, 1000)],
            [interval_factory([20], 900, 2000)],
        )

        assert _bounds(sink.intervals) == [(0, 1000), (900, 2000)]
        assert [i.total_count for i in sink.intervals] == [1, 1]

    def test_large_overlap_is_absorbed_without_growth(self, interval_factory):
        """Test that a candidate mostly inside the window is absorbed and the bounds stay."""
        sink = _run(
            [interval_factory([10], 0, 1000)],
            [interval_factory([20], 850, 1001)],
        )

        assert _bounds(sink.intervals) == [(0, 1000)]
        assert sink.intervals[0].total_count == 2

    def test_overlap_at_threshold_rolls_over(self, interval_factory):
        """Test that an overlap equal to the threshold is not enough to absorb."""
        sink = _run(
            [interval_factory([10], 0, 1000)],
            [interval_factory([20], 800, 1050)],
        )

        assert _bounds(sink.intervals) == [(0, 1000), (800, 1050)]
        assert [i.total_count for i in sink.intervals] == [1, 1]

    def test_adjacent_candidate_rolls_over(self, interval_factory):
        """Test that a candidate starting at the window end opens a new window."""
        sink = _run([interval_factory([10], 0, 1000), interval_factory([20], 1000, 2000)])

        assert _bounds(sink.intervals) == [(0, 1000), (1000, 2000)]

    def test_overlap_threshold_is_configurable(self, interval_factory):
        """Test that a lower threshold absorbs smaller overlaps."""
        sink = _run(
            [interval_factory([10], 0, 1000)],
            [interval_factory([20], 500, 1500)],
            overlap_threshold=0.4,
        )

        assert _bounds(sink.intervals) == [(0, 1000)]

    def test_gap_without_target_window(self, interval_factory):
        """Test that each disjoint candidate gets its own window."""
        sink = _run([
            interval_factory([1], 0, 100),
            interval_factory([2], 100, 200),
            interval_factory([3], 5000, 5100),
        ])

        assert _bounds(sink.intervals) == [(0, 100), (100, 200), (5000, 5100)]

    def test_target_window_widens_windows(self, interval_factory):
        """Test that target_window_ms groups nearby candidates."""
        sink = _run(
            [
                interval_factory([1], 0, 100),
                interval_factory([2], 100, 200),
                interval_factory([3], 5000, 5100),
            ],
            target_window_ms=1000,
        )

        assert _bounds(sink.intervals) == [(0, 1000), (5000, 6000)]
        assert [i.total_count for i in sink.intervals] == [2, 1]

    def test_target_window_never_shrinks_candidate(self, interval_factory):
        """Test that a candidate longer than the target keeps its end."""
        sink = _run([interval_factory([1], 0, 3000)], target_window_ms=1000)

        assert _bounds(sink.intervals) == [(0, 3000)]


class TestTags:
    """Test per-tag windowing."""

    def test_tags_get_separate_windows(self, interval_factory):
        """Test that tags never merge into each other."""
        sink = _run(
            [interval_factory([1], 0, 1000, tag="a"), interval_factory([2], 1000, 2000, tag="a")],
            [interval_factory([3], 0, 1000, tag="b")],
        )

        by_tag = {}
        for interval in sink.intervals:
            by_tag.setdefault(interval.tag, []).append((interval.start_timestamp_ms, interval.end_timestamp_ms))
        assert by_tag == {"a": [(0, 1000), (1000, 2000)], "b": [(0, 1000)]}

    def test_untagged_and_default_are_distinct(self, interval_factory):
        """Test that None and the literal tag 'default' are different windows."""
        sink = _run(
            [interval_factory([1], 0, 1000)],
            [interval_factory([2], 0, 1000, tag="default")],
        )

        assert sorted(str(i.tag) for i in sink.intervals) == ["None", "default"]

    def test_emitted_windows_keep_their_tag(self, interval_factory):
        """Test that rolled over windows carry the tag."""
        sink = _run([interval_factory([1], 0, 1000, tag="t"), interval_factory([2], 1000, 2000, tag="t")])

        assert [i.tag for i in sink.intervals] == ["t", "t"]


class TestSinkProtocol:
    """Test start time and emission."""

    def test_start_time_of_earliest_input(self, interval_factory):
        """Test that start_time is called once with the earliest input's start time."""
        late = ListIterator([interval_factory([1], 5000, 6000)], start_time_sec=5.0)
        early = ListIterator([interval_factory([1], 1000, 2000)], start_time_sec=1.0)
        sink = CollectingSink()

        UnionEngine([late, early], sink).run()

        assert sink.start_times == [1.0]

    def test_relative_inputs_start_at_zero(self, interval_factory):
        """Test that relative merges announce a 0.0 start time."""
        source = ListIterator([interval_factory([1], 0, 1000)], start_time_sec=1000.0, relative=True)
        sink = CollectingSink()

        UnionEngine([source], sink).run()

        assert sink.start_times == [0.0]

    def test_empty_inputs_emit_nothing(self):
        """Test that no inputs means no start time and no windows."""
        sink = CollectingSink()

        assert UnionEngine([ListIterator([])], sink).run() == 0
        assert UnionEngine([], sink).run() == 0
        assert sink.start_times == []
        assert sink.intervals == []

    def test_run_returns_emitted_count(self, interval_factory):
        """Test the returned window count."""
        sink = CollectingSink()
        inputs = [ListIterator([interval_factory([1], 0, 1000), interval_factory([2], 1000, 2000)])]

        assert union_histogram_logs(inputs, sink) == 2
        assert len(sink.intervals) == 2

    def test_emitted_windows_are_not_reused(self, interval_factory):
        """Test that an emitted window isn't mutated by later merges."""
        sink = _run([
            interval_factory([1], 0, 1000),
            interval_factory([2, 3], 1000, 2000),
            interval_factory([4], 1100, 1900),
        ])

        assert [i.total_count for i in sink.intervals] == [1, 3]
        assert sink.intervals[0] is not sink.intervals[1]

    def test_inputs_are_merged_in_time_order(self, interval_factory):
        """Test that interleaved inputs produce ordered windows."""
        sink = _run(
            [interval_factory([1], 0, 1000), interval_factory([1], 2000, 3000)],
            [interval_factory([1], 1000, 2000), interval_factory([1], 3000, 4000)],
        )

        assert _bounds(sink.intervals) == [(0, 1000), (1000, 2000), (2000, 3000), (3000, 4000)]

    def test_rollover_index_counts_windows(self, interval_factory):
        """Test rollover bookkeeping per tag."""
        engine = UnionEngine(
            [ListIterator([interval_factory([1], i * 1000, (i + 1) * 1000) for i in range(3)])],
            CollectingSink(),
        )

        engine.run()

        assert engine.windows[None].rollover_index == 2


class TestUnionWindow:
    """Test the window helper directly."""

    def test_absorb_into_empty_takes_bounds(self, interval_factory):
        """Test that the first candidate sets the window bounds."""
        window = UnionWindow()

        window.absorb(interval_factory([5], 300, 400))

        assert window.accumulator.start_timestamp_ms == 300
        assert window.accumulator.end_timestamp_ms == 400
        assert window.accumulator.total_count == 1

    def test_rollover_returns_finished_window(self, interval_factory):
        """Test that rollover hands back the old accumulator and opens a fresh one."""
        window = UnionWindow(accumulator=IntervalHistogram(tag="x"))
        window.absorb(interval_factory([5], 300, 400))

        finished = window.rollover("x")

        assert finished.total_count == 1
        assert window.accumulator.is_empty_window
        assert window.accumulator.tag == "x"
        assert window.rollover_index == 1

    @pytest.mark.parametrize("target,expected_end", [(0, 400), (50, 400), (500, 800)])
    def test_absorb_target_width(self, interval_factory, target, expected_end):
        """Test widening the first candidate to the target width."""
        window = UnionWindow()

        window.absorb(interval_factory([5], 300, 400), target_window_ms=target)

        assert window.accumulator.end_timestamp_ms == expected_end
