from __future__ import annotations

import json
from pathlib import Path

import pytest

from server_harness.observability import (
    FanoutLogSink,
    JsonlLogSink,
    LevelFilterSink,
    LogMessage,
    MemoryLogSink,
    NullLogSink,
    StdoutLogSink,
    build_log_sink,
    emit_log,
)


def test_log_message_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        LogMessage(level="trace", message="server.started")


def test_stdout_sink_writes_one_json_line(capsys: pytest.CaptureFixture[str]) -> None:
    StdoutLogSink().emit(LogMessage(level="info", message="server.started", fields={"group": "g"}))
    payload = json.loads(capsys.readouterr().out.strip())
    assert payload["message"] == "server.started"
    assert payload["fields"] == {"group": "g"}


def test_jsonl_sink_appends_lines(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "harness.jsonl"
    sink = JsonlLogSink(path)
    emit_log(sink, level="warning", message="server.stop_failed", reason="io")
    emit_log(sink, level="info", message="server.killed")
    sink.close()
    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["message"] for line in lines] == ["server.stop_failed", "server.killed"]
    assert lines[0]["fields"] == {"reason": "io"}


def test_level_filter_drops_lower_levels() -> None:
    memory = MemoryLogSink()
    sink = LevelFilterSink(sink=memory, level="warning")
    emit_log(sink, level="info", message="deployment.deployed")
    emit_log(sink, level="warning", message="deployment.undeploy_failed")
    assert memory.events() == ["deployment.undeploy_failed"]


def test_fanout_emits_to_every_sink() -> None:
    first, second = MemoryLogSink(), MemoryLogSink()
    emit_log(FanoutLogSink(sinks=[first, second]), level="error", message="server.start_timeout")
    assert first.events() == second.events() == ["server.start_timeout"]


def test_emit_log_without_sink_is_noop() -> None:
    emit_log(None, level="info", message="server.started")


def test_build_log_sink_variants(tmp_path: Path) -> None:
    # Disabled -> null; no exporters -> stdout behind the level filter; several -> fan-out.
    assert isinstance(build_log_sink({"enabled": False}), NullLogSink)
    default = build_log_sink({})
    assert isinstance(default, LevelFilterSink)
    assert isinstance(default.sink, StdoutLogSink)
    both = build_log_sink(
        {
            "level": "info",
            "exporters": [{"kind": "stdout"}, {"kind": "jsonl", "settings": {"path": str(tmp_path / "a.jsonl")}}],
        }
    )
    assert isinstance(both, LevelFilterSink)
    assert isinstance(both.sink, FanoutLogSink)
    both.close()


def test_build_log_sink_rejects_unknown_exporter() -> None:
    with pytest.raises(ValueError):
        build_log_sink({"exporters": [{"kind": "syslog"}]})
