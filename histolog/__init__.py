"""
histolog: read, filter and merge histogram logs.

Histogram logs hold one compressed latency histogram per time interval, each
optionally tagged. histolog reads them back in time order, filters them by
time range and tag, and merges several logs into one time-aligned log.
"""

__version__ = "0.1.0"
