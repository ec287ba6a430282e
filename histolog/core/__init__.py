"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, config
from .exceptions import (
    ConfigurationError,
    DecodeError,
    HistogramLogError,
    ParsingError,
    PayloadAlreadyReadError,
)

__all__ = [
    "Config",
    "config",
    "HistogramLogError",
    "ParsingError",
    "DecodeError",
    "ConfigurationError",
    "PayloadAlreadyReadError",
]
