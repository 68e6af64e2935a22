from __future__ import annotations

from enum import Enum
from threading import Lock

from server_harness.config.server_configuration import (
    DomainConfigurationFactory,
    StandaloneConfigurationFactory,
)
from server_harness.config.settings import HarnessSettings
from server_harness.context import GroupContext
from server_harness.errors import (
    ConfigurationError,
    DeploymentFailureError,
    HarnessError,
    StartupError,
    StartupTimeoutError,
)
from server_harness.integration.kv_store import StoreScope
from server_harness.lifecycle.deployments import DeploymentLifecycleManager
from server_harness.observability import LogSink, emit_log
from server_harness.server.handle import ServerHandle, ServerListener
from server_harness.server.launcher import ServerLauncher
from server_harness.topology import Topology

SERVER_KEY = "server"


class ServerState(Enum):
    NOT_CREATED = "not_created"
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    KILLED = "killed"


class DeploymentListener(ServerListener):
    # Manual mode without autostart: deployment follows whoever starts and stops the server.
    def __init__(self, group: GroupContext, deployments: DeploymentLifecycleManager) -> None:
        self.group = group
        self._deployments = deployments

    def on_start(self, handle: ServerHandle) -> None:
        try:
            self._deployments.deploy_for(self.group, handle)
        except Exception as exc:
            self.group.deployment_error = exc
            raise
        self.group.deployment_error = None

    def on_stop(self, handle: ServerHandle) -> None:
        self._deployments.undeploy_for(self.group, handle)


class _StateListener(ServerListener):
    # Keeps the coordinator state in step with transitions made directly on the handle.
    def __init__(self, coordinator: ServerLifecycleCoordinator) -> None:
        self._coordinator = coordinator

    def on_start(self, handle: ServerHandle) -> None:
        self._coordinator._set_state(ServerState.RUNNING)

    def on_stop(self, handle: ServerHandle) -> None:
        self._coordinator._set_state(ServerState.STOPPED)


class _ServerResource:
    # Suite-scope entry for the shared handle; closing the suite scope stops the server.
    def __init__(self, coordinator: ServerLifecycleCoordinator, handle: ServerHandle) -> None:
        self.coordinator = coordinator
        self.handle = handle

    def close(self) -> None:
        self.coordinator.close()


class ServerLifecycleCoordinator:
    # Owns the one shared server handle of a suite and drives deployments per group.
    def __init__(
        self,
        suite_scope: StoreScope,
        launcher: ServerLauncher,
        settings: HarnessSettings,
        *,
        deployments: DeploymentLifecycleManager | None = None,
        log_sink: LogSink | None = None,
        standalone_factory: StandaloneConfigurationFactory | None = None,
        domain_factory: DomainConfigurationFactory | None = None,
    ) -> None:
        self.suite_scope = suite_scope
        self.launcher = launcher
        self.settings = settings
        self.deployments = deployments if deployments is not None else DeploymentLifecycleManager(log_sink=log_sink)
        self._log_sink = log_sink
        self._standalone_factory = standalone_factory or StandaloneConfigurationFactory()
        self._domain_factory = domain_factory or DomainConfigurationFactory()
        self._handle: ServerHandle | None = None
        self._state = ServerState.NOT_CREATED
        self._state_lock = Lock()
        self._start_lock = Lock()

    @property
    def state(self) -> ServerState:
        with self._state_lock:
            handle = self._handle
            state = self._state
        if handle is None:
            return ServerState.NOT_CREATED
        if handle.is_running():
            return ServerState.RUNNING
        if state is ServerState.RUNNING:
            # Stopped through the handle itself, e.g. by a manual-mode test.
            return ServerState.STOPPED
        return state

    def get_handle(self, group: GroupContext | None = None) -> ServerHandle | None:
        _ = group
        with self._state_lock:
            return self._handle

    def ensure_created(self, group: GroupContext) -> ServerHandle:
        resource = self.suite_scope.compute_if_absent(SERVER_KEY, lambda: self._create(group))
        assert isinstance(resource, _ServerResource)
        handle = resource.handle
        if handle.topology is not group.topology:
            raise ConfigurationError(
                f"{group.group_id} requires a {group.topology.value} server, but the shared server "
                f"was created as {handle.topology.value}"
            )
        return handle

    def ensure_running(self, group: GroupContext) -> ServerHandle:
        handle = self.ensure_created(group)
        with self._start_lock:
            if handle.is_running():
                self._set_state(ServerState.RUNNING)
                return handle
            timeout = self.settings.timeout_seconds
            emit_log(self._log_sink, level="info", message="server.starting", group=group.group_id, timeout=timeout)
            try:
                started = handle.start(timeout)
            except HarnessError:
                raise
            except Exception as exc:
                raise StartupError(f"Failed to start the shared server for {group.group_id}") from exc
            if not started:
                emit_log(
                    self._log_sink,
                    level="error",
                    message="server.start_timeout",
                    group=group.group_id,
                    timeout=timeout,
                )
                self._kill_handle(handle)
                raise StartupTimeoutError(
                    f"Server was not started within {timeout} seconds; it has been killed"
                )
            self._set_state(ServerState.RUNNING)
            emit_log(self._log_sink, level="info", message="server.started", group=group.group_id)
        return handle

    def before_group(self, group: GroupContext) -> ServerHandle:
        self.deployments.validate(group)
        handle = self.ensure_created(group)
        manual = group.manual_mode
        if manual is not None and not manual.autostart:
            listener = DeploymentListener(group, self.deployments)
            group.listener_registration = handle.add_listener(listener)
            return handle
        self.ensure_running(group)
        self.deployments.deploy_for(group, handle)
        return handle

    def after_group(self, group: GroupContext) -> None:
        try:
            handle = self.get_handle(group)
            if handle is not None:
                self.deployments.undeploy_for(group, handle)
        finally:
            registration = group.listener_registration
            if registration is not None:
                registration.remove()
                group.listener_registration = None
            group.deployment_error = None

    def check_group(self, group: GroupContext) -> None:
        # A deployment that failed inside a start listener fails the owning group's tests.
        error = group.deployment_error
        if error is not None:
            raise DeploymentFailureError(
                f"Deployment for {group.group_id} failed when the server was started: {error}"
            ) from error

    def close(self) -> None:
        # Graceful stop first; an I/O failure falls back to a kill and is not retried.
        handle = self.get_handle()
        if handle is None or not handle.is_running():
            return
        try:
            handle.shutdown(self.settings.timeout_seconds)
        except OSError as exc:
            emit_log(self._log_sink, level="warning", message="server.stop_failed", reason=str(exc))
            self._kill_handle(handle)
            return
        self._set_state(ServerState.STOPPED)
        emit_log(self._log_sink, level="info", message="server.stopped")

    def kill(self) -> None:
        handle = self.get_handle()
        if handle is not None:
            self._kill_handle(handle)

    def _create(self, group: GroupContext) -> _ServerResource:
        factory = self._domain_factory if group.topology is Topology.DOMAIN else self._standalone_factory
        configuration = factory.configuration(self.settings)
        handle = self.launcher.create(configuration)
        if handle.log_sink is None:
            handle.log_sink = self._log_sink
        handle.add_listener(_StateListener(self))
        with self._state_lock:
            self._handle = handle
            self._state = ServerState.CREATED
        emit_log(
            self._log_sink,
            level="info",
            message="server.created",
            group=group.group_id,
            topology=handle.topology.value,
        )
        return _ServerResource(self, handle)

    def _kill_handle(self, handle: ServerHandle) -> None:
        handle.kill()
        self._set_state(ServerState.KILLED)
        emit_log(self._log_sink, level="warning", message="server.killed")

    def _set_state(self, state: ServerState) -> None:
        with self._state_lock:
            self._state = state
