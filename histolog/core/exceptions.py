"""
Custom exceptions for histolog.

These exceptions separate the recoverable failures of a log scan (a bad line,
an undecodable payload) from the failures that abort an invocation (invalid
configuration, misuse of a one-shot payload).
"""


class HistogramLogError(Exception):
    """Base exception for histogram log processing failures."""
    pass


class ParsingError(HistogramLogError):
    """Raised when a log line cannot be parsed. Only that line is skipped."""

    def __init__(self, message: str, line_number: int = 0, line: str = ""):
        super().__init__(message)
        self.line_number = line_number
        self.line = line


class DecodeError(HistogramLogError):
    """Raised when an interval payload fails to decode."""
    pass


class ConfigurationError(HistogramLogError):
    """Raised when configuration is invalid or an input is missing."""
    pass


class PayloadAlreadyReadError(RuntimeError):
    """Raised when a lazy payload is read a second time."""
    pass
