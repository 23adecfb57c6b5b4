"""Remote sinks for test results."""

from appveyor_reporter.sinks.appveyor import AppVeyorSink
from appveyor_reporter.sinks.base import RemoteSink, SinkError

__all__ = ["AppVeyorSink", "RemoteSink", "SinkError"]
