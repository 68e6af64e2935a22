from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from server_harness.config.settings import HarnessSettings
from server_harness.errors import ConfigurationError
from server_harness.topology import Topology

_MISSING_HOME = (
    "Server home not configured. Set server.home in the harness config file, "
    "--server-param server.home=..., or the SERVER_HOME environment variable."
)


@dataclass(frozen=True, slots=True)
class ServerConfiguration:
    # Everything a launcher needs to create a handle for one topology.
    topology: Topology
    home: Path
    timeout_seconds: int
    java_home: Path | None = None
    module_path: str | None = None
    arguments: tuple[str, ...] = field(default_factory=tuple)

    def command(self) -> list[str]:
        script = "domain" if self.topology is Topology.DOMAIN else "standalone"
        suffix = ".bat" if sys.platform.startswith("win") else ".sh"
        command = [str(self.home / "bin" / f"{script}{suffix}")]
        if self.module_path:
            command.extend(["-mp", self.module_path])
        command.extend(self.arguments)
        return command

    def environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env["JBOSS_HOME"] = str(self.home)
        if self.java_home is not None:
            env["JAVA_HOME"] = str(self.java_home)
        return env


class StandaloneConfigurationFactory:
    # Builds the single-node configuration from harness settings.
    topology = Topology.STANDALONE

    def configuration(self, settings: HarnessSettings) -> ServerConfiguration:
        return _build(self.topology, settings)


class DomainConfigurationFactory:
    # Builds the managed-domain configuration from harness settings.
    topology = Topology.DOMAIN

    def configuration(self, settings: HarnessSettings) -> ServerConfiguration:
        return _build(self.topology, settings)


def _build(topology: Topology, settings: HarnessSettings) -> ServerConfiguration:
    if settings.home is None:
        raise ConfigurationError(_MISSING_HOME)
    return ServerConfiguration(
        topology=topology,
        home=settings.home,
        timeout_seconds=settings.timeout_seconds,
        java_home=settings.java_home,
        module_path=settings.module_path,
    )
