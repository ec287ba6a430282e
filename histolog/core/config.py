"""
Application configuration for histolog.

Provides environment-aware settings with conservative defaults. The empirical
constants of the reader and the union engine live here as named settings so
existing logs keep producing the same output.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimeBaseConfig(BaseModel):
	"""
	Time-base inference for logs without explicit BaseTime comments.

	Rationale:
	- A first timestamp more than a year before the start time means the log
	  records offsets from the start time rather than epoch seconds.
	"""

	relative_timestamp_threshold_sec: float = Field(
		365 * 24 * 3600.0,
		gt=0.0,
		description="Gap below the start time that marks a log as relative",
	)


class ReaderConfig(BaseModel):
	"""
	Default range filter for ordered readers.

	Notes:
	- range_start_sec/range_end_sec are offsets from the start time unless
	  absolute is set, in which case they are epoch seconds.
	"""

	range_start_sec: float = Field(0.0, description="Earliest accepted interval start")
	range_end_sec: float = Field(sys.float_info.max, description="Latest accepted interval start")
	absolute: bool = Field(False, description="Filter on absolute timestamps")


class UnionConfig(BaseModel):
	"""
	Union engine windowing.

	Notes:
	- overlap_threshold: fraction of a candidate that must fall inside the open
	  window for the candidate to be absorbed instead of rolling over.
	- target_window_ms: minimum window width; 0 keeps candidate bounds.
	"""

	overlap_threshold: float = Field(0.8, gt=0.0, le=1.0)
	target_window_ms: int = Field(0, ge=0)


class HistogramConfig(BaseModel):
	"""
	Shape of histograms created from scratch (accumulators, test data).
	"""

	lowest_trackable_value: int = Field(1, ge=1)
	highest_trackable_value: int = Field(3_600_000_000_000, ge=2)
	significant_figures: int = Field(3, ge=1, le=5)


class OutputConfig(BaseModel):
	"""
	Output scaling for writers and reports.

	Notes:
	- max_value_unit_ratio divides the Interval_Max column of written logs
	  (nanoseconds to milliseconds by default).
	- output_value_unit_ratio divides values in summaries and CSV reports.
	"""

	max_value_unit_ratio: float = Field(1_000_000.0, gt=0.0)
	output_value_unit_ratio: float = Field(1.0, gt=0.0)
	csv_bucket_size: int = Field(100, ge=1)
	percentiles: List[float] = Field(
		default_factory=lambda: [50.0, 90.0, 99.0, 99.9, 99.99, 99.999]
	)


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="HISTOLOG_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	log_to_file: bool = Field(False, description="Also write logs to logs_dir")

	time_base: TimeBaseConfig = TimeBaseConfig()
	reader: ReaderConfig = ReaderConfig()
	union: UnionConfig = UnionConfig()
	histogram: HistogramConfig = HistogramConfig()
	output: OutputConfig = OutputConfig()


config = Config()
