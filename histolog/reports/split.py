"""
Split a tagged histogram log into one log per tag.

Each output log holds the intervals of one tag with the tag removed, and
keeps the input's start time so offsets line up with the original.
"""

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Union

from histolog.logs.diagnostics import display_tag, format_interval_summary
from histolog.logs.reader import OrderedHistogramLogReader
from histolog.logs.sinks import HistogramSink, LogWriterSink
from histolog.logs.tags import build_tag_predicate

logger = logging.getLogger(__name__)

SinkFactory = Callable[[Optional[str]], HistogramSink]


def split_by_tag(
    reader: OrderedHistogramLogReader,
    sink_factory: SinkFactory,
    include_tags: Iterable[str] = (),
    exclude_tags: Iterable[str] = (),
) -> Dict[Optional[str], HistogramSink]:
    """
    Route each interval of reader to a per-tag sink.

    Args:
        reader: Source log
        sink_factory: Creates the sink for a tag on its first interval
        include_tags: When non-empty, only these tags are split out ('default' = untagged)
        exclude_tags: Tags to drop ('default' = untagged)

    Returns:
        Dict mapping tag -> sink that received its intervals
    """
    should_skip = build_tag_predicate(include_tags, exclude_tags)
    sinks: Dict[Optional[str], HistogramSink] = {}

    for index, interval in enumerate(reader):
        tag = interval.tag
        if should_skip(tag):
            logger.debug(f"(skipped:{display_tag(tag)}) {format_interval_summary(interval, index)}")
            continue

        sink = sinks.get(tag)
        if sink is None:
            sink = sink_factory(tag)
            sink.start_time(reader.start_time_sec)
            sinks[tag] = sink

        interval.tag = None
        sink.accept(interval)
        logger.debug(f"({display_tag(tag)}) {format_interval_summary(interval, index)}")

    return sinks


def split_log_file(
    input_path: Union[str, Path],
    output_dir: Union[str, Path],
    range_start_sec: Optional[float] = None,
    range_end_sec: Optional[float] = None,
    include_tags: Iterable[str] = (),
    exclude_tags: Iterable[str] = (),
) -> Dict[Optional[str], Path]:
    """
    Split a log file into '<tag>.<input name>' files in output_dir.

    Returns:
        Dict mapping tag -> path of the written log
    """
    input_path = Path(input_path)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    comment = f"Splitting of:{input_path.name} start:{range_start_sec} end:{range_end_sec}"
    paths: Dict[Optional[str], Path] = {}

    with ExitStack() as stack:
        reader = stack.enter_context(
            OrderedHistogramLogReader(input_path, range_start_sec, range_end_sec)
        )

        def open_sink(tag: Optional[str]) -> HistogramSink:
            path = output_dir / f"{display_tag(tag)}.{input_path.name}"
            stream = stack.enter_context(open(path, "w", encoding="utf-8"))
            paths[tag] = path
            return LogWriterSink(stream, comment=comment)

        split_by_tag(reader, open_sink, include_tags, exclude_tags)

    return paths
