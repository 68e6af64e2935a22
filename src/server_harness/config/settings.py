from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from server_harness.config.source import ConfigurationSource
from server_harness.errors import ConfigurationError

DEFAULT_TIMEOUT_SECONDS = 60

# Setting keys as seen by ConfigurationSource.
HOME = "server.home"
JAVA_HOME = "server.java.home"
MODULE_PATH = "server.module.path"
TIMEOUT = "server.timeout"
PROTOCOL = "server.http.protocol"
HOST = "server.http.host"
PORT = "server.http.port"
PRODUCERS = "server.producers"
LOGGING_ENABLED = "server.logging.enabled"
LOGGING_LEVEL = "server.logging.level"
LOGGING_JSONL = "server.logging.jsonl"


class HttpSettings(BaseModel):
    # Static base address used when a deployment exposes no web path.
    model_config = ConfigDict(extra="forbid", frozen=True)
    protocol: Literal["http", "https"] = "http"
    host: str = "localhost"
    port: int | None = Field(default=None, gt=0, lt=65536)

    @field_validator("protocol", mode="before")
    @classmethod
    def _lower_protocol(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @property
    def resolved_port(self) -> int:
        if self.port is not None:
            return self.port
        return 8443 if self.protocol == "https" else 8080


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    enabled: bool = True
    level: Literal["debug", "info", "warning", "error"] = "warning"
    exporters: list[dict[str, Any]] = Field(default_factory=list)


class HarnessSettings(BaseModel):
    # Typed view of every setting the harness reads.
    model_config = ConfigDict(extra="forbid", frozen=True)
    home: Path | None = None
    java_home: Path | None = None
    module_path: str | None = None
    timeout_seconds: int = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    http: HttpSettings = Field(default_factory=HttpSettings)
    producers: list[str] = Field(default_factory=list)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def base_address_text(self) -> str:
        return f"{self.http.protocol}://{self.http.host}:{self.http.resolved_port}"


def resolve_settings(source: ConfigurationSource) -> HarnessSettings:
    raw: dict[str, Any] = {}
    # The conventional server home environment variable is used when no explicit key is present.
    home = source.get(HOME, env="SERVER_HOME")
    if home:
        raw["home"] = home
    java_home = source.get(JAVA_HOME)
    if java_home:
        raw["java_home"] = java_home
    module_path = source.get(MODULE_PATH)
    if module_path:
        raw["module_path"] = module_path
    timeout = source.get(TIMEOUT)
    if timeout:
        raw["timeout_seconds"] = timeout

    http: dict[str, Any] = {}
    for key, name in ((PROTOCOL, "protocol"), (HOST, "host"), (PORT, "port")):
        value = source.get(key)
        if value:
            http[name] = value
    raw["http"] = http

    producers = source.get(PRODUCERS)
    if producers:
        raw["producers"] = [item.strip() for item in producers.split(",") if item.strip()]

    logging: dict[str, Any] = {}
    enabled = source.get(LOGGING_ENABLED)
    if enabled:
        logging["enabled"] = enabled
    level = source.get(LOGGING_LEVEL)
    if level:
        logging["level"] = level.lower()
    jsonl = source.get(LOGGING_JSONL)
    if jsonl:
        logging["exporters"] = [{"kind": "jsonl", "settings": {"path": jsonl}}]
    raw["logging"] = logging

    try:
        return HarnessSettings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid server harness configuration: {exc}") from exc
