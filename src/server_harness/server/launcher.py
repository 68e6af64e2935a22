from __future__ import annotations

from server_harness.config.server_configuration import ServerConfiguration
from server_harness.server.handle import ServerHandle


class ServerLauncher:
    # Creates a handle for a configuration; the handle is not started yet.
    def create(self, configuration: ServerConfiguration) -> ServerHandle:
        raise NotImplementedError("ServerLauncher.create must be implemented")
