"""
One-line summaries of intervals for verbose logging.
"""

from typing import Optional

from .histogram import IntervalHistogram

DEFAULT_TAG_NAME = "default"


def display_tag(tag: Optional[str]) -> str:
    """Display name of a tag; untagged intervals show as 'default'."""
    return DEFAULT_TAG_NAME if tag is None else tag


def format_interval_summary(
    interval: IntervalHistogram,
    index: int,
    output_value_unit_ratio: float = 1.0,
) -> str:
    """
    Summarize an interval on one line.

    Example:
        default     3: (   1.000 to    2.000) [count=100,min=1,max=100,avg=50.50,50=50,99=99,999=100,ops/s=100.0]
    """
    length_sec = (interval.end_timestamp_ms - interval.start_timestamp_ms) / 1000.0
    ops_per_sec = interval.total_count / length_sec if length_sec > 0 else 0.0
    ratio = output_value_unit_ratio
    return (
        f"{display_tag(interval.tag)} {index:5d}: "
        f"({interval.start_timestamp_ms / 1000.0:8.3f} to {interval.end_timestamp_ms / 1000.0:8.3f}) "
        f"[count={interval.total_count},"
        f"min={int(interval.min_value / ratio)},"
        f"max={int(interval.max_value / ratio)},"
        f"avg={interval.mean / ratio:.2f},"
        f"50={int(interval.value_at_percentile(50) / ratio)},"
        f"99={int(interval.value_at_percentile(99) / ratio)},"
        f"999={int(interval.value_at_percentile(99.9) / ratio)},"
        f"ops/s={ops_per_sec:.1f}]"
    )
