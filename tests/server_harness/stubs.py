from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from threading import Lock

from server_harness.config.server_configuration import ServerConfiguration
from server_harness.config.settings import HarnessSettings
from server_harness.context import GroupContext, group_id_for
from server_harness.integration.kv_store import StoreScope
from server_harness.server.deployment_manager import (
    DeploymentDescriptor,
    DeploymentManager,
    DeploymentResult,
    DeploymentUnit,
    UndeployDescriptor,
)
from server_harness.server.handle import ServerHandle
from server_harness.server.launcher import ServerLauncher
from server_harness.server.management import ManagementClient, Operation, OperationResult, ResourceAddress
from server_harness.topology import Topology


class StubManagementClient(ManagementClient):
    # Answers by (operation name, address text); unknown operations fail.
    def __init__(self, responses: dict[tuple[str, str], OperationResult | Exception] | None = None) -> None:
        self.responses = dict(responses or {})
        self.operations: list[Operation] = []

    def execute(self, operation: Operation) -> OperationResult:
        self.operations.append(operation)
        response = self.responses.get((operation.name, str(operation.address)))
        if isinstance(response, Exception):
            raise response
        if response is None:
            return OperationResult.failed(f"no response for {operation.name} {operation.address}")
        return response


class StubDeploymentManager(DeploymentManager):
    def __init__(self) -> None:
        self.deployed: list[DeploymentUnit] = []
        self.undeployed: list[UndeployDescriptor] = []
        self.deploy_result = DeploymentResult(success=True)
        self.undeploy_result = DeploymentResult(success=True)
        self.undeploy_error: Exception | None = None

    def deploy(self, unit: DeploymentUnit) -> DeploymentResult:
        self.deployed.append(unit)
        return self.deploy_result

    def undeploy(self, descriptor: UndeployDescriptor) -> DeploymentResult:
        self.undeployed.append(descriptor)
        if self.undeploy_error is not None:
            raise self.undeploy_error
        return self.undeploy_result

    def list_deployments(self) -> list[DeploymentDescriptor]:
        undeployed = {descriptor.name for descriptor in self.undeployed}
        return [
            DeploymentDescriptor(name=unit.name, server_groups=unit.server_groups)
            for unit in self.deployed
            if unit.name not in undeployed
        ]


class StubServerHandle(ServerHandle):
    # In-memory server: ready=False simulates a server that never signals readiness.
    def __init__(
        self,
        topology: Topology = Topology.STANDALONE,
        *,
        ready: bool = True,
        launch_delay: float = 0.0,
        client: StubManagementClient | None = None,
        manager: StubDeploymentManager | None = None,
    ) -> None:
        super().__init__(topology)
        self.ready = ready
        self.launch_delay = launch_delay
        self.client = client if client is not None else StubManagementClient()
        self.manager = manager if manager is not None else StubDeploymentManager()
        self.running = False
        self.launch_calls = 0
        self.shutdown_calls = 0
        self.kill_calls = 0
        self.shutdown_error: Exception | None = None
        self.launch_timeouts: list[float] = []

    def is_running(self) -> bool:
        return self.running

    def management_client(self) -> StubManagementClient:
        return self.client

    def deployment_manager(self) -> StubDeploymentManager:
        return self.manager

    def determine_host_address(self) -> ResourceAddress:
        if self.topology is not Topology.DOMAIN:
            return super().determine_host_address()
        return ResourceAddress.of("host", "primary")

    def _launch(self, timeout_seconds: float) -> bool:
        self.launch_calls += 1
        self.launch_timeouts.append(timeout_seconds)
        if self.launch_delay:
            time.sleep(self.launch_delay)
        self.running = self.ready
        return self.ready

    def _shutdown(self, timeout_seconds: float) -> None:
        self.shutdown_calls += 1
        if self.shutdown_error is not None:
            raise self.shutdown_error
        self.running = False

    def _kill(self) -> None:
        self.kill_calls += 1
        self.running = False


class StubLauncher(ServerLauncher):
    def __init__(self, factory: Callable[[ServerConfiguration], ServerHandle] | None = None) -> None:
        self._factory = factory or (lambda configuration: StubServerHandle(configuration.topology))
        self._lock = Lock()
        self.configurations: list[ServerConfiguration] = []
        self.handles: list[ServerHandle] = []

    @property
    def create_calls(self) -> int:
        with self._lock:
            return len(self.configurations)

    def create(self, configuration: ServerConfiguration) -> ServerHandle:
        handle = self._factory(configuration)
        with self._lock:
            self.configurations.append(configuration)
            self.handles.append(handle)
        return handle


def make_settings(**values: object) -> HarnessSettings:
    values.setdefault("home", Path("/opt/server"))
    return HarnessSettings.model_validate(values)


def make_group(test_class: type, settings: HarnessSettings | None = None, suite: StoreScope | None = None) -> GroupContext:
    suite = suite if suite is not None else StoreScope("suite")
    group_id = group_id_for(test_class)
    return GroupContext(
        group_id=group_id,
        test_class=test_class,
        scope=suite.child(group_id),
        settings=settings if settings is not None else make_settings(),
    )
