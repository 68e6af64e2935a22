from __future__ import annotations

import warnings

from server_harness.context import CacheKey, CacheScope, DeploymentRecord, GroupContext
from server_harness.deployment.resolver import DeploymentMethod, DeploymentResolver
from server_harness.errors import ConfigurationError, DeploymentFailureError, HarnessError, UndeployWarning
from server_harness.observability import LogSink, emit_log
from server_harness.server.deployment_manager import DeploymentUnit, UndeployDescriptor
from server_harness.server.handle import ServerHandle
from server_harness.topology import Topology


class DeploymentLifecycleManager:
    # Deploys and undeploys the artifact of one group; the record in the group scope is the source of truth.
    def __init__(self, resolver: DeploymentResolver | None = None, log_sink: LogSink | None = None) -> None:
        self.resolver = resolver if resolver is not None else DeploymentResolver()
        self._log_sink = log_sink

    def validate(self, group: GroupContext) -> DeploymentMethod | None:
        # Declaration errors that need no server: checked before anything is created or started.
        method = self.resolver.find_method(group.test_class)
        if method is not None and group.topology is Topology.DOMAIN:
            _require_server_groups(group, method.name, method.server_groups)
        return method

    def deploy_for(self, group: GroupContext, handle: ServerHandle) -> DeploymentRecord | None:
        with group.lock:
            existing = group.deployment_record()
            if existing is not None:
                return existing
            resolved = self.resolver.resolve(group)
            if resolved is None:
                return None

            if handle.topology is Topology.DOMAIN:
                _require_server_groups(group, resolved.method_name, resolved.server_groups)
                server_groups = resolved.server_groups
            else:
                server_groups = frozenset()

            archive = resolved.archive
            try:
                content = archive.export()
            except (OSError, ValueError) as exc:
                raise DeploymentFailureError(f"Failed to package deployment {archive.name}") from exc
            unit = DeploymentUnit(name=archive.name, content=content, server_groups=server_groups)

            try:
                result = handle.deployment_manager().deploy(unit)
            except HarnessError:
                raise
            except Exception as exc:
                raise DeploymentFailureError(f"Failed to deploy {archive.name}: {exc}") from exc
            if not result.success:
                raise DeploymentFailureError(f"Failed to deploy {archive.name}: {result.failure_message}")

            record = DeploymentRecord(name=archive.name, server_groups=server_groups)
            group.scope.set(CacheKey(CacheScope.DEPLOYMENT, group.group_id), record)
            emit_log(
                self._log_sink,
                level="info",
                message="deployment.deployed",
                group=group.group_id,
                deployment=record.name,
                server_groups=sorted(server_groups),
            )
            return record

    def undeploy_for(self, group: GroupContext, handle: ServerHandle) -> bool:
        # Never raises for an undeploy failure; the record and the resolved address are always evicted.
        with group.lock:
            record = group.deployment_record()
            if record is None:
                return False
            failure: str | None = None
            try:
                if handle.is_running():
                    result = handle.deployment_manager().undeploy(
                        UndeployDescriptor(name=record.name, server_groups=record.server_groups)
                    )
                    if not result.success:
                        failure = result.failure_message or "undeploy was not successful"
            except Exception as exc:
                failure = f"{type(exc).__name__}: {exc}"
            finally:
                self.evict(group)

            if failure is not None:
                emit_log(
                    self._log_sink,
                    level="warning",
                    message="deployment.undeploy_failed",
                    group=group.group_id,
                    deployment=record.name,
                    reason=failure,
                )
                warnings.warn(
                    UndeployWarning(f"Failed to undeploy {record.name} for {group.group_id}: {failure}"),
                    stacklevel=2,
                )
                return False
            emit_log(
                self._log_sink,
                level="info",
                message="deployment.undeployed",
                group=group.group_id,
                deployment=record.name,
            )
            return True

    def evict(self, group: GroupContext) -> None:
        group.scope.delete(CacheKey(CacheScope.DEPLOYMENT, group.group_id))
        group.scope.delete(CacheKey(CacheScope.ADDRESS, group.group_id))


def _require_server_groups(group: GroupContext, method_name: str, server_groups: frozenset[str]) -> None:
    if not server_groups:
        raise ConfigurationError(
            f"Deployment method {method_name} of {group.group_id} must declare at least "
            "one server group with @server_group for a domain server"
        )
