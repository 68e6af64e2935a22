from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock

from server_harness.observability.logging import LEVELS, LogMessage


class LogSink:
    # Port for structured lifecycle logging.
    def emit(self, message: LogMessage) -> None:
        raise NotImplementedError("LogSink.emit must be implemented")

    def close(self) -> None:
        return None


class StdoutLogSink(LogSink):
    # One JSON object per line on stdout.
    def emit(self, message: LogMessage) -> None:
        print(json.dumps(_log_to_dict(message), separators=(",", ":"), ensure_ascii=False, default=str))


class JsonlLogSink(LogSink):
    # File-backed structured log sink for lifecycle diagnostics.
    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")
        self._lock = Lock()

    def emit(self, message: LogMessage) -> None:
        payload = json.dumps(_log_to_dict(message), separators=(",", ":"), ensure_ascii=False, default=str)
        with self._lock:
            self._file.write(payload + "\n")
            self._file.flush()

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()


class MemoryLogSink(LogSink):
    # Keeps emitted messages in memory; used by tests and diagnostics.
    def __init__(self) -> None:
        self.messages: list[LogMessage] = []
        self._lock = Lock()

    def emit(self, message: LogMessage) -> None:
        with self._lock:
            self.messages.append(message)

    def events(self) -> list[str]:
        with self._lock:
            return [message.message for message in self.messages]


class NullLogSink(LogSink):
    def emit(self, message: LogMessage) -> None:
        _ = message


@dataclass(slots=True)
class FanoutLogSink(LogSink):
    sinks: list[LogSink] = field(default_factory=list)

    def emit(self, message: LogMessage) -> None:
        for sink in list(self.sinks):
            sink.emit(message)

    def close(self) -> None:
        for sink in list(self.sinks):
            sink.close()


@dataclass(slots=True)
class LevelFilterSink(LogSink):
    # Drops messages below the configured level.
    sink: LogSink
    level: str = "warning"

    def __post_init__(self) -> None:
        if self.level not in LEVELS:
            raise ValueError(f"logging.level must be one of {sorted(LEVELS)}: {self.level!r}")

    def emit(self, message: LogMessage) -> None:
        if LEVELS[message.level] < LEVELS[self.level]:
            return
        self.sink.emit(message)

    def close(self) -> None:
        self.sink.close()


def build_log_sink(settings: dict[str, object] | None) -> LogSink:
    # Build the lifecycle sink from logging settings; enabled without exporters falls back to stdout.
    if settings is None:
        settings = {}
    enabled = settings.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ValueError("logging.enabled must be a boolean when provided")
    if not enabled:
        return NullLogSink()
    level = settings.get("level", "warning")
    if not isinstance(level, str) or not level:
        raise ValueError("logging.level must be a non-empty string")
    exporters = settings.get("exporters", [])
    if not isinstance(exporters, list):
        raise ValueError("logging.exporters must be a list when provided")

    sinks: list[LogSink] = []
    for exporter in exporters:
        if not isinstance(exporter, dict):
            raise ValueError("logging.exporters entries must be mappings")
        kind = exporter.get("kind")
        if kind == "stdout":
            sinks.append(StdoutLogSink())
            continue
        if kind != "jsonl":
            raise ValueError(f"logging.exporters kind must be 'stdout' or 'jsonl': {kind!r}")
        exporter_settings = exporter.get("settings", {})
        path = exporter_settings.get("path") if isinstance(exporter_settings, dict) else None
        if not isinstance(path, str) or not path:
            raise ValueError("logging.exporters jsonl settings.path must be a non-empty string")
        sinks.append(JsonlLogSink(Path(path)))

    if not sinks:
        sinks.append(StdoutLogSink())
    sink: LogSink = sinks[0] if len(sinks) == 1 else FanoutLogSink(sinks=sinks)
    return LevelFilterSink(sink=sink, level=level)


def emit_log(sink: LogSink | None, *, level: str, message: str, **fields: object) -> None:
    if sink is None:
        return
    sink.emit(LogMessage(level=level, message=message, fields=dict(fields)))


def _log_to_dict(message: LogMessage) -> dict[str, object]:
    return {
        "level": message.level,
        "message": message.message,
        "timestamp": message.timestamp.isoformat().replace("+00:00", "Z"),
        "fields": message.fields,
    }
