from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from server_harness.config.server_configuration import ServerConfiguration
from server_harness.errors import StartupError
from server_harness.server.management import ManagementClient, Operation, OperationResult, ResourceAddress
from server_harness.server.process import ProcessServerHandle, ProcessServerLauncher
from server_harness.topology import Topology


class _FakeProcess:
    def __init__(self) -> None:
        self.returncode: int | None = None
        self.killed = False
        self.wait_timeout_expires = False

    def poll(self) -> int | None:
        return self.returncode

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    def wait(self, timeout: float | None = None) -> int:
        if self.wait_timeout_expires:
            raise subprocess.TimeoutExpired(cmd="server", timeout=timeout or 0)
        if self.returncode is None:
            self.returncode = 0
        return self.returncode


class _Popen:
    def __init__(self, process: _FakeProcess | None = None, error: OSError | None = None) -> None:
        self.process = process if process is not None else _FakeProcess()
        self.error = error
        self.commands: list[list[str]] = []

    def __call__(self, command: list[str], **kwargs: object) -> _FakeProcess:
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return self.process


class _Client(ManagementClient):
    # Reports "starting" for the first N probes, then "running".
    def __init__(self, starting_probes: int = 0) -> None:
        self.starting_probes = starting_probes
        self.operations: list[Operation] = []
        self.shutdown_result = OperationResult.ok()
        self.closed = False

    def execute(self, operation: Operation) -> OperationResult:
        self.operations.append(operation)
        if operation.name == "read-attribute" and operation.params["name"] == "local-host-name":
            return OperationResult.ok("primary")
        if operation.name == "read-attribute":
            if self.starting_probes:
                self.starting_probes -= 1
                return OperationResult.ok("starting")
            return OperationResult.ok("running")
        if operation.name == "shutdown":
            return self.shutdown_result
        return OperationResult.failed("unsupported")

    def close(self) -> None:
        self.closed = True


def _configuration(topology: Topology = Topology.STANDALONE) -> ServerConfiguration:
    return ServerConfiguration(topology=topology, home=Path("/opt/server"), timeout_seconds=5)


def _handle(client: _Client, popen: _Popen, topology: Topology = Topology.STANDALONE) -> ProcessServerHandle:
    return ProcessServerHandle(
        _configuration(topology),
        lambda configuration: client,
        poll_interval_seconds=0,
        popen=popen,
    )


def test_start_polls_until_running() -> None:
    client, popen = _Client(starting_probes=2), _Popen()
    handle = _handle(client, popen)
    assert handle.start(5) is True
    assert handle.is_running() is True
    assert popen.commands[0][0].endswith("standalone.sh")
    assert [op.params["name"] for op in client.operations] == ["server-state"] * 3


def test_start_returns_false_when_process_exits() -> None:
    popen = _Popen()
    popen.process.returncode = 1
    handle = _handle(_Client(), popen)
    assert handle.start(5) is False
    assert handle.is_running() is False


def test_start_returns_false_after_deadline() -> None:
    handle = _handle(_Client(starting_probes=10**9), _Popen())
    assert handle.start(0.01) is False


def test_launch_os_error_is_startup_error() -> None:
    handle = _handle(_Client(), _Popen(error=FileNotFoundError("standalone.sh")))
    with pytest.raises(StartupError):
        handle.start(5)


def test_domain_readiness_uses_host_state() -> None:
    client = _Client()
    handle = _handle(client, _Popen(), Topology.DOMAIN)
    assert handle.start(5) is True
    assert handle.determine_host_address() == ResourceAddress.of("host", "primary")
    probe = [op for op in client.operations if op.params.get("name") == "host-state"]
    assert str(probe[0].address) == "/host=primary"


def test_shutdown_failure_is_os_error() -> None:
    client = _Client()
    handle = _handle(client, _Popen())
    handle.start(5)
    client.shutdown_result = OperationResult.failed("denied")
    with pytest.raises(OSError, match="denied"):
        handle.shutdown(5)


def test_shutdown_wait_timeout_is_timeout_error() -> None:
    popen = _Popen()
    handle = _handle(_Client(), popen)
    handle.start(5)
    popen.process.wait_timeout_expires = True
    with pytest.raises(TimeoutError):
        handle.shutdown(5)


def test_graceful_shutdown_closes_client() -> None:
    client = _Client()
    handle = _handle(client, _Popen())
    handle.start(5)
    handle.shutdown(5)
    assert handle.is_running() is False
    assert client.closed is True


def test_kill_terminates_process() -> None:
    popen = _Popen()
    handle = _handle(_Client(), popen)
    handle.start(5)
    handle.kill()
    assert popen.process.killed is True
    assert handle.is_running() is False


def test_launcher_creates_unstarted_handle() -> None:
    handle = ProcessServerLauncher(lambda configuration: _Client()).create(_configuration())
    assert isinstance(handle, ProcessServerHandle)
    assert handle.is_running() is False
