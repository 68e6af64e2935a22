from __future__ import annotations

import subprocess
import time
from collections.abc import Callable
from threading import Lock

from server_harness.config.server_configuration import ServerConfiguration
from server_harness.errors import StartupError
from server_harness.server.deployment_manager import DeploymentManager, ManagementDeploymentManager
from server_harness.server.handle import ServerHandle
from server_harness.server.launcher import ServerLauncher
from server_harness.server.management import (
    ManagementClient,
    Operation,
    ResourceAddress,
    read_attribute,
)
from server_harness.topology import Topology

ManagementClientFactory = Callable[[ServerConfiguration], ManagementClient]


class ProcessServerHandle(ServerHandle):
    # Server running as a child process; readiness is polled through the management client.
    def __init__(
        self,
        configuration: ServerConfiguration,
        management_client_factory: ManagementClientFactory,
        *,
        poll_interval_seconds: float = 0.5,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
    ) -> None:
        super().__init__(configuration.topology)
        self.configuration = configuration
        self._client_factory = management_client_factory
        self._poll_interval_seconds = poll_interval_seconds
        self._popen = popen
        self._process: subprocess.Popen | None = None
        self._client: ManagementClient | None = None
        self._ready = False
        self._lock = Lock()

    def is_running(self) -> bool:
        process = self._process
        return self._ready and process is not None and process.poll() is None

    def management_client(self) -> ManagementClient:
        with self._lock:
            if self._client is None:
                self._client = self._client_factory(self.configuration)
            return self._client

    def deployment_manager(self) -> DeploymentManager:
        return ManagementDeploymentManager(self.management_client())

    def determine_host_address(self) -> ResourceAddress:
        if self.topology is not Topology.DOMAIN:
            return super().determine_host_address()
        result = self.management_client().execute(read_attribute(ResourceAddress(), "local-host-name"))
        if not result.success or not result.value:
            raise OSError(f"Could not determine the domain host name: {result.failure_message}")
        return ResourceAddress.of("host", str(result.value))

    def _launch(self, timeout_seconds: float) -> bool:
        if self._process is None or self._process.poll() is not None:
            self._ready = False
            try:
                self._process = self._popen(
                    self.configuration.command(),
                    env=self.configuration.environment(),
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as exc:
                raise StartupError(f"Failed to launch server from {self.configuration.home}") from exc
        deadline = time.monotonic() + timeout_seconds
        while time.monotonic() < deadline:
            if self._process.poll() is not None:
                return False
            if self._probe_ready():
                self._ready = True
                return True
            time.sleep(self._poll_interval_seconds)
        return False

    def _probe_ready(self) -> bool:
        try:
            if self.topology is Topology.DOMAIN:
                operation = read_attribute(self.determine_host_address(), "host-state")
            else:
                operation = read_attribute(ResourceAddress(), "server-state")
            result = self.management_client().execute(operation)
        except OSError:
            # Management interface not reachable yet.
            return False
        return result.success and str(result.value).lower() == "running"

    def _shutdown(self, timeout_seconds: float) -> None:
        process = self._process
        if process is None:
            return
        if self.topology is Topology.DOMAIN:
            operation = Operation(name="shutdown", address=self.determine_host_address())
        else:
            operation = Operation(name="shutdown", params={"suspend-timeout": int(timeout_seconds)})
        result = self.management_client().execute(operation)
        if not result.success:
            raise OSError(f"Server shutdown failed: {result.failure_message}")
        try:
            process.wait(timeout=timeout_seconds)
        except subprocess.TimeoutExpired as exc:
            raise TimeoutError(f"Server did not stop within {timeout_seconds} seconds") from exc
        self._ready = False
        self._close_client()

    def _kill(self) -> None:
        process = self._process
        self._ready = False
        if process is not None and process.poll() is None:
            process.kill()
            process.wait(timeout=10)
        self._close_client()

    def _close_client(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()


class ProcessServerLauncher(ServerLauncher):
    def __init__(
        self,
        management_client_factory: ManagementClientFactory,
        *,
        poll_interval_seconds: float = 0.5,
    ) -> None:
        self._client_factory = management_client_factory
        self._poll_interval_seconds = poll_interval_seconds

    def create(self, configuration: ServerConfiguration) -> ProcessServerHandle:
        return ProcessServerHandle(
            configuration,
            self._client_factory,
            poll_interval_seconds=self._poll_interval_seconds,
        )
