from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class ConfigurationSource:
    # Named settings resolved by priority: overrides, run-time parameters, process environment.
    overrides: Mapping[str, str] = field(default_factory=dict)
    parameters: Mapping[str, str] = field(default_factory=dict)
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))

    def get(self, key: str, *, env: str | None = None) -> str | None:
        if key in self.overrides:
            return self.overrides[key]
        if key in self.parameters:
            return self.parameters[key]
        return self.environ.get(env or environment_name(key))

    def with_overrides(self, overrides: Mapping[str, str]) -> ConfigurationSource:
        merged = dict(self.overrides)
        merged.update(overrides)
        return ConfigurationSource(overrides=merged, parameters=self.parameters, environ=self.environ)


def environment_name(key: str) -> str:
    # server.http.port -> SERVER_HTTP_PORT
    return key.upper().replace(".", "_").replace("-", "_")


def parse_parameter(text: str) -> tuple[str, str]:
    # KEY=VALUE from the command line.
    key, sep, value = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"server parameter must be KEY=VALUE: {text!r}")
    return key, value.strip()
