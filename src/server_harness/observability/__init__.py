from .logging import LogMessage
from .sinks import (
    FanoutLogSink,
    JsonlLogSink,
    LevelFilterSink,
    LogSink,
    MemoryLogSink,
    NullLogSink,
    StdoutLogSink,
    build_log_sink,
    emit_log,
)

__all__ = [
    "LogMessage",
    "LogSink",
    "StdoutLogSink",
    "JsonlLogSink",
    "MemoryLogSink",
    "NullLogSink",
    "FanoutLogSink",
    "LevelFilterSink",
    "build_log_sink",
    "emit_log",
]
