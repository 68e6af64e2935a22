from __future__ import annotations

from dataclasses import dataclass, field

from server_harness.server.management import ManagementClient, Operation, ResourceAddress, read_children_names


@dataclass(frozen=True, slots=True)
class DeploymentUnit:
    # Packaged content ready to push to the server.
    name: str
    content: bytes
    server_groups: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("DeploymentUnit.name must be a non-empty string")


@dataclass(frozen=True, slots=True)
class UndeployDescriptor:
    name: str
    server_groups: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class DeploymentDescriptor:
    name: str
    server_groups: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class DeploymentResult:
    success: bool
    failure_message: str | None = None


class DeploymentManager:
    # Deployment port of a running server.
    def deploy(self, unit: DeploymentUnit) -> DeploymentResult:
        raise NotImplementedError("DeploymentManager.deploy must be implemented")

    def undeploy(self, descriptor: UndeployDescriptor) -> DeploymentResult:
        raise NotImplementedError("DeploymentManager.undeploy must be implemented")

    def list_deployments(self) -> list[DeploymentDescriptor]:
        raise NotImplementedError("DeploymentManager.list_deployments must be implemented")


class ManagementDeploymentManager(DeploymentManager):
    # Deploys through management operations; server groups are used only for domain servers.
    def __init__(self, client: ManagementClient) -> None:
        self._client = client

    def deploy(self, unit: DeploymentUnit) -> DeploymentResult:
        content = ResourceAddress.of("deployment", unit.name)
        result = self._client.execute(
            Operation(
                name="add",
                address=content,
                params={"content": [{"bytes": unit.content}], "enabled": not unit.server_groups},
            )
        )
        if not result.success:
            return DeploymentResult(success=False, failure_message=result.failure_message)
        for group in sorted(unit.server_groups):
            result = self._client.execute(
                Operation(
                    name="add",
                    address=ResourceAddress.of("server-group", group, "deployment", unit.name),
                    params={"enabled": True},
                )
            )
            if not result.success:
                return DeploymentResult(success=False, failure_message=result.failure_message)
        return DeploymentResult(success=True)

    def undeploy(self, descriptor: UndeployDescriptor) -> DeploymentResult:
        failures: list[str] = []
        for group in sorted(descriptor.server_groups):
            result = self._client.execute(
                Operation(
                    name="remove",
                    address=ResourceAddress.of("server-group", group, "deployment", descriptor.name),
                )
            )
            if not result.success:
                failures.append(result.failure_message or f"failed to remove from {group}")
        result = self._client.execute(
            Operation(name="remove", address=ResourceAddress.of("deployment", descriptor.name))
        )
        if not result.success:
            failures.append(result.failure_message or f"failed to remove {descriptor.name}")
        if failures:
            return DeploymentResult(success=False, failure_message="; ".join(failures))
        return DeploymentResult(success=True)

    def list_deployments(self) -> list[DeploymentDescriptor]:
        result = self._client.execute(read_children_names(ResourceAddress(), "deployment"))
        if not result.success or not isinstance(result.value, list):
            return []
        return [DeploymentDescriptor(name=str(name)) for name in result.value]
