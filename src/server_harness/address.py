from __future__ import annotations

from dataclasses import dataclass, replace

from server_harness.config.settings import HarnessSettings
from server_harness.context import CacheKey, CacheScope, GroupContext
from server_harness.errors import ConfigurationError
from server_harness.injection.qualifiers import DomainServer, RequestPath, find_qualifier
from server_harness.observability import LogSink, emit_log
from server_harness.server.handle import ServerHandle
from server_harness.server.management import (
    ManagementClient,
    ResourceAddress,
    read_attribute,
    read_children_names,
)
from server_harness.topology import Topology

CONTEXT_ROOT = "context-root"


@dataclass(frozen=True, slots=True)
class Address:
    # Externally reachable address of a deployment: scheme://host:port[path].
    scheme: str
    host: str
    port: int
    path: str = ""

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}{self.path}"

    def join(self, relative: str) -> Address:
        # Exactly one "/" between the base and the relative part, however either is written.
        segment = relative.strip("/")
        base = self.path.rstrip("/")
        if not segment:
            return replace(self, path=base)
        return replace(self, path=f"{base}/{segment}")

    @classmethod
    def from_settings(cls, settings: HarnessSettings) -> Address:
        return cls(scheme=settings.http.protocol, host=settings.http.host, port=settings.http.resolved_port)


class AddressResolver:
    # Lazily resolves and memoizes one base address per group.
    def __init__(self, log_sink: LogSink | None = None) -> None:
        self._log_sink = log_sink

    def resolve(
        self,
        group: GroupContext,
        handle: ServerHandle | None,
        qualifiers: tuple[object, ...] = (),
    ) -> Address:
        base = self.resolve_base_address(group, handle, qualifiers)
        request_path = find_qualifier(qualifiers, RequestPath)
        if isinstance(request_path, RequestPath):
            return base.join(request_path.path)
        return base

    def resolve_base_address(
        self,
        group: GroupContext,
        handle: ServerHandle | None,
        qualifiers: tuple[object, ...] = (),
    ) -> Address:
        domain_server = find_qualifier(qualifiers, DomainServer)
        if isinstance(domain_server, DomainServer) and (handle is None or handle.topology is not Topology.DOMAIN):
            raise ConfigurationError(
                f"DomainServer({domain_server.name!r}) requires a domain server handle, got {handle!r}"
            )
        key = CacheKey(CacheScope.ADDRESS, group.group_id)
        return group.scope.compute_if_absent(
            key,
            lambda: self._compute(group, handle, domain_server if isinstance(domain_server, DomainServer) else None),
        )

    def _compute(self, group: GroupContext, handle: ServerHandle | None, domain_server: DomainServer | None) -> Address:
        static = Address.from_settings(group.settings)
        record = group.deployment_record()
        if record is None or handle is None:
            return static
        try:
            client = handle.management_client()
            address = self._deployment_address(client, handle, record.name, domain_server)
            result = client.execute(read_attribute(address, CONTEXT_ROOT))
        except Exception as exc:
            emit_log(
                self._log_sink,
                level="debug",
                message="address.fallback",
                group=group.group_id,
                deployment=record.name,
                reason=str(exc),
            )
            return static
        if not result.success or not isinstance(result.value, str):
            # Not every deployment is web-reachable.
            emit_log(
                self._log_sink,
                level="debug",
                message="address.fallback",
                group=group.group_id,
                deployment=record.name,
                reason=result.failure_message or "no context root",
            )
            return static
        context_root = result.value.strip("/")
        return replace(static, path=f"/{context_root}")

    def _deployment_address(
        self,
        client: ManagementClient,
        handle: ServerHandle,
        deployment_name: str,
        domain_server: DomainServer | None,
    ) -> ResourceAddress:
        if domain_server is not None:
            address = handle.determine_host_address().add("server", domain_server.name).add("deployment", deployment_name)
        else:
            address = ResourceAddress.of("deployment", deployment_name)
        if deployment_name.lower().endswith(".ear"):
            # The first web module of an enterprise archive provides the context root.
            result = client.execute(read_children_names(address, "subdeployment"))
            if result.success and isinstance(result.value, (list, tuple)):
                for name in result.value:
                    if isinstance(name, str) and name.lower().endswith(".war"):
                        address = address.add("subdeployment", name)
                        break
        return address.add("subsystem", "undertow")
