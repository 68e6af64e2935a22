from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from threading import RLock

from server_harness.config.settings import HarnessSettings
from server_harness.integration.kv_store import StoreScope
from server_harness.markers import ManualModeMeta, manual_mode_meta, server_test_meta
from server_harness.server.handle import ListenerRegistration
from server_harness.topology import Topology


class CacheScope(Enum):
    DEPLOYMENT = "deployment"
    ADDRESS = "address"


@dataclass(frozen=True, slots=True)
class CacheKey:
    # At most one value per (scope, group) pair.
    scope: CacheScope
    group_id: str


@dataclass(frozen=True, slots=True)
class DeploymentRecord:
    # Identity of one deployed artifact and, for domain servers, the node groups it went to.
    name: str
    server_groups: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class GroupInfo:
    # Test metadata handed to deployment methods.
    display_name: str
    tags: frozenset[str]
    test_class: type | None


@dataclass(slots=True)
class GroupContext:
    # Per-group view: identity, group-level store scope and the gate around deploy/undeploy.
    group_id: str
    test_class: type
    scope: StoreScope
    settings: HarnessSettings
    display_name: str = ""
    tags: frozenset[str] = frozenset()
    lock: RLock = field(default_factory=RLock)
    listener_registration: ListenerRegistration | None = None
    # Deployment failure raised from a start listener, reported back to this group.
    deployment_error: Exception | None = None

    def __post_init__(self) -> None:
        if not self.group_id:
            raise ValueError("GroupContext.group_id must be a non-empty string")
        if not self.display_name:
            self.display_name = self.test_class.__name__

    @property
    def topology(self) -> Topology:
        meta = server_test_meta(self.test_class)
        return meta.topology if meta is not None else Topology.STANDALONE

    @property
    def manual_mode(self) -> ManualModeMeta | None:
        return manual_mode_meta(self.test_class)

    def info(self) -> GroupInfo:
        return GroupInfo(display_name=self.display_name, tags=self.tags, test_class=self.test_class)

    def deployment_record(self) -> DeploymentRecord | None:
        record = self.scope.get(CacheKey(CacheScope.DEPLOYMENT, self.group_id))
        return record if isinstance(record, DeploymentRecord) else None


def group_id_for(test_class: type) -> str:
    return f"{test_class.__module__}.{test_class.__qualname__}"
