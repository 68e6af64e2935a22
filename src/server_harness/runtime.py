from __future__ import annotations

import importlib
from collections.abc import Callable
from types import ModuleType

from server_harness.address import AddressResolver
from server_harness.config.settings import HarnessSettings
from server_harness.context import GroupContext, group_id_for
from server_harness.errors import ConfigurationError
from server_harness.injection.injector import ResourceInjector
from server_harness.injection.producers import ProducerRegistry, build_registry
from server_harness.integration.kv_store import StoreScope
from server_harness.lifecycle.coordinator import ServerLifecycleCoordinator
from server_harness.lifecycle.deployments import DeploymentLifecycleManager
from server_harness.observability import LogSink, NullLogSink, build_log_sink
from server_harness.server.launcher import ServerLauncher

BUILTIN_PRODUCER_MODULE = "server_harness.injection.builtin"


class HarnessRuntime:
    # Session-wide composition of store, coordinator, deployments, addresses and injection.
    def __init__(
        self,
        settings: HarnessSettings,
        launcher: ServerLauncher,
        *,
        log_sink: LogSink | None = None,
        producer_modules: list[ModuleType] | None = None,
        suite_name: str = "suite",
    ) -> None:
        self.settings = settings
        self.log_sink = log_sink if log_sink is not None else _sink_from_settings(settings)
        self.suite_scope = StoreScope(suite_name)
        self.deployments = DeploymentLifecycleManager(log_sink=self.log_sink)
        self.coordinator = ServerLifecycleCoordinator(
            self.suite_scope,
            launcher,
            settings,
            deployments=self.deployments,
            log_sink=self.log_sink,
        )
        self.addresses = AddressResolver(log_sink=self.log_sink)
        modules = producer_modules if producer_modules is not None else load_producer_modules(settings.producers)
        self.registry: ProducerRegistry = build_registry(modules, self)
        self.injector = ResourceInjector(self.registry)
        self._groups: dict[str, GroupContext] = {}

    def group(self, test_class: type, *, display_name: str = "", tags: frozenset[str] = frozenset()) -> GroupContext:
        group_id = group_id_for(test_class)
        group = self._groups.get(group_id)
        if group is None:
            group = GroupContext(
                group_id=group_id,
                test_class=test_class,
                scope=self.suite_scope.child(group_id),
                settings=self.settings,
                display_name=display_name,
                tags=tags,
            )
            self._groups[group_id] = group
        return group

    def begin_group(self, group: GroupContext) -> None:
        # Misdeclared injection targets fail before the server is touched.
        self.injector.validate(group.test_class)
        self.coordinator.before_group(group)
        self.injector.inject_static(group)

    def end_group(self, group: GroupContext) -> None:
        try:
            self.coordinator.after_group(group)
        finally:
            self.injector.reset_static(group)
            self._groups.pop(group.group_id, None)
            self.suite_scope.discard_child(group.group_id)

    def inject_instance(self, group: GroupContext, instance: object) -> None:
        self.coordinator.check_group(group)
        self.injector.inject_instance(group, instance)

    def resolve_parameters(self, group: GroupContext, function: Callable[..., object]) -> dict[str, object]:
        self.coordinator.check_group(group)
        return self.injector.resolve_parameters(group, function)

    def close(self) -> None:
        try:
            self.suite_scope.close()
        finally:
            self.log_sink.close()


def load_producer_modules(names: list[str]) -> list[ModuleType]:
    # Built-in producers always come first; configured modules are appended in order.
    modules: list[ModuleType] = []
    for name in [BUILTIN_PRODUCER_MODULE, *names]:
        try:
            modules.append(importlib.import_module(name))
        except ImportError as exc:
            raise ConfigurationError(f"Cannot import producer module '{name}'") from exc
    return modules


def _sink_from_settings(settings: HarnessSettings) -> LogSink:
    if not settings.logging.enabled:
        return NullLogSink()
    return build_log_sink(settings.logging.model_dump())
