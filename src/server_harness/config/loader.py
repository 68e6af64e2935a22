from __future__ import annotations

from pathlib import Path

import yaml

from server_harness.errors import ConfigurationError


def load_yaml_config(path: Path) -> dict[str, object]:
    # Raw mapping from a YAML run-parameter file; validation happens in resolve_settings.
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to read server harness config {path}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Config root must be a mapping")
    return raw


def flatten_config(raw: dict[str, object], *, prefix: str = "") -> dict[str, str]:
    # Nested YAML mappings become dotted keys: {"server": {"timeout": 5}} -> {"server.timeout": "5"}.
    flat: dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key:
            raise ConfigurationError("Config keys must be non-empty strings")
        dotted = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(flatten_config(value, prefix=dotted))
        elif isinstance(value, list):
            flat[dotted] = ",".join(str(item) for item in value)
        elif isinstance(value, bool):
            flat[dotted] = "true" if value else "false"
        elif value is not None:
            flat[dotted] = str(value)
    return flat
