"""
Pytest configuration and shared fixtures.

Provides interval builders, a counting payload decoder and log file helpers
for unit and integration tests.
"""

from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pytest

from histolog.core.exceptions import DecodeError
from histolog.logs.histogram import IntervalHistogram
from histolog.logs.writer import create_log_writer


class CountingDecoder:
    """
    Stub payload decoder that records every decode.

    Tokens look like 'P<value>' and decode to an interval holding that value
    once; the token 'BAD' fails with DecodeError.
    """

    def __init__(self):
        self.calls: List[str] = []

    def __call__(self, token: str) -> IntervalHistogram:
        self.calls.append(token)
        if token == "BAD":
            raise DecodeError("stub decode failure")
        interval = IntervalHistogram()
        interval.record_value(int(token[1:]))
        return interval


@pytest.fixture
def interval_factory() -> Callable[..., IntervalHistogram]:
    """
    Fixture providing a builder for intervals with known values and bounds.

    Returns:
        Callable(values, start_ms=0, end_ms=1000, tag=None) -> IntervalHistogram
    """
    def make(
        values: Iterable[int] = (),
        start_ms: int = 0,
        end_ms: int = 1000,
        tag: Optional[str] = None,
    ) -> IntervalHistogram:
        interval = IntervalHistogram(tag=tag, start_timestamp_ms=start_ms, end_timestamp_ms=end_ms)
        for value in values:
            interval.record_value(value)
        return interval

    return make


@pytest.fixture
def counting_decoder() -> CountingDecoder:
    return CountingDecoder()


@pytest.fixture
def log_file_factory(tmp_path) -> Callable[[str, List[str]], Path]:
    """
    Fixture writing histogram log lines to a file under tmp_path.
    """
    def write(name: str, lines: List[str]) -> Path:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return write


@pytest.fixture
def histogram_log_factory(tmp_path) -> Callable[..., Path]:
    """
    Fixture writing intervals as a real histogram log (encoded payloads).

    Returns:
        Callable(name, intervals, start_time_sec=0.0) -> Path
    """
    def write(name: str, intervals: Iterable[IntervalHistogram], start_time_sec: float = 0.0) -> Path:
        path = tmp_path / name
        with open(path, "w", encoding="utf-8") as stream:
            writer = create_log_writer(stream, start_time_sec=start_time_sec)
            for interval in intervals:
                writer.output_interval_histogram(interval)
        return path

    return write


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
