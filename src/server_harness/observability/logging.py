from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

LEVELS: dict[str, int] = {"debug": 10, "info": 20, "warning": 30, "error": 40}


@dataclass(frozen=True, slots=True)
class LogMessage:
    # Structured log payload for server and deployment lifecycle events.
    level: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    fields: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.level or not self.message:
            raise ValueError("LogMessage requires non-empty level/message")
        if self.level not in LEVELS:
            raise ValueError(f"LogMessage.level must be one of {sorted(LEVELS)}: {self.level!r}")
