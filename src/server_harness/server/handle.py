from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from server_harness.errors import ConfigurationError
from server_harness.observability import LogSink, emit_log
from server_harness.server.deployment_manager import DeploymentManager
from server_harness.server.management import ManagementClient, ResourceAddress
from server_harness.topology import Topology


class ServerListener:
    # Start/stop callbacks, invoked in the thread that changes the handle's state.
    def on_start(self, handle: ServerHandle) -> None:
        _ = handle
        return None

    def on_stop(self, handle: ServerHandle) -> None:
        _ = handle
        return None


@dataclass(frozen=True, slots=True)
class ListenerRegistration:
    handle: ServerHandle
    listener: ServerListener

    def remove(self) -> None:
        self.handle.remove_listener(self.listener)


class ServerHandle:
    # Live reference to the external server. Subclasses implement the underscored primitives.
    def __init__(self, topology: Topology, *, log_sink: LogSink | None = None) -> None:
        self.topology = topology
        self.log_sink = log_sink
        self._listeners: list[ServerListener] = []
        self._listener_lock = Lock()

    def is_running(self) -> bool:
        raise NotImplementedError("ServerHandle.is_running must be implemented")

    def management_client(self) -> ManagementClient:
        raise NotImplementedError("ServerHandle.management_client must be implemented")

    def deployment_manager(self) -> DeploymentManager:
        raise NotImplementedError("ServerHandle.deployment_manager must be implemented")

    def determine_host_address(self) -> ResourceAddress:
        raise ConfigurationError(f"Server handle {self!r} is not a domain handle")

    def start(self, timeout_seconds: float) -> bool:
        # False means the server was launched but did not become ready in time.
        if self.is_running():
            return True
        if not self._launch(timeout_seconds):
            return False
        self._notify("start")
        return True

    def shutdown(self, timeout_seconds: float) -> None:
        if not self.is_running():
            return
        # Stop listeners run before the server goes away so they can still undeploy.
        self._notify("stop")
        self._shutdown(timeout_seconds)

    def kill(self) -> None:
        was_running = self.is_running()
        self._kill()
        if was_running:
            self._notify("stop")

    def add_listener(self, listener: ServerListener) -> ListenerRegistration:
        with self._listener_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)
        return ListenerRegistration(handle=self, listener=listener)

    def remove_listener(self, listener: ServerListener) -> None:
        with self._listener_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def listeners(self) -> list[ServerListener]:
        return self._snapshot_listeners()

    def _snapshot_listeners(self) -> list[ServerListener]:
        with self._listener_lock:
            return list(self._listeners)

    def _notify(self, event: str) -> None:
        # A failing listener belongs to one group; the transition and the other listeners go on.
        for listener in self._snapshot_listeners():
            callback = listener.on_start if event == "start" else listener.on_stop
            try:
                callback(self)
            except Exception as exc:
                emit_log(
                    self.log_sink,
                    level="error",
                    message="server.listener_failed",
                    event=event,
                    listener=type(listener).__name__,
                    reason=f"{type(exc).__name__}: {exc}",
                )

    def _launch(self, timeout_seconds: float) -> bool:
        raise NotImplementedError("ServerHandle._launch must be implemented")

    def _shutdown(self, timeout_seconds: float) -> None:
        raise NotImplementedError("ServerHandle._shutdown must be implemented")

    def _kill(self) -> None:
        raise NotImplementedError("ServerHandle._kill must be implemented")


class ManagedServerHandle(ServerHandle):
    # View of the shared handle for test code: lifecycle control stays with the coordinator.
    def __init__(self, delegate: ServerHandle) -> None:
        super().__init__(delegate.topology)
        self._delegate = delegate

    @property
    def delegate(self) -> ServerHandle:
        return self._delegate

    def is_running(self) -> bool:
        return self._delegate.is_running()

    def management_client(self) -> ManagementClient:
        return self._delegate.management_client()

    def deployment_manager(self) -> DeploymentManager:
        return self._delegate.deployment_manager()

    def determine_host_address(self) -> ResourceAddress:
        return self._delegate.determine_host_address()

    def start(self, timeout_seconds: float) -> bool:
        _ = timeout_seconds
        raise ConfigurationError("The shared server is managed by the harness and cannot be started from a test")

    def shutdown(self, timeout_seconds: float) -> None:
        _ = timeout_seconds
        raise ConfigurationError("The shared server is managed by the harness and cannot be shut down from a test")

    def kill(self) -> None:
        raise ConfigurationError("The shared server is managed by the harness and cannot be killed from a test")

    def add_listener(self, listener: ServerListener) -> ListenerRegistration:
        return self._delegate.add_listener(listener)

    def remove_listener(self, listener: ServerListener) -> None:
        self._delegate.remove_listener(listener)

    def listeners(self) -> list[ServerListener]:
        return self._delegate.listeners()
