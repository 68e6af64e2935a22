from __future__ import annotations

import pytest

_CONFTEST = '''
from server_harness.server.deployment_manager import DeploymentManager, DeploymentResult
from server_harness.server.handle import ServerHandle
from server_harness.server.launcher import ServerLauncher
from server_harness.server.management import ManagementClient, OperationResult

EVENTS = []


class Client(ManagementClient):
    def execute(self, operation):
        if operation.name == "read-attribute" and str(operation.address) == "/deployment=app.war/subsystem=undertow":
            return OperationResult.ok("/app")
        return OperationResult.failed("unknown resource")


class Manager(DeploymentManager):
    def deploy(self, unit):
        EVENTS.append(f"deploy:{unit.name}")
        return DeploymentResult(success=True)

    def undeploy(self, descriptor):
        EVENTS.append(f"undeploy:{descriptor.name}")
        return DeploymentResult(success=True)

    def list_deployments(self):
        return []


class Handle(ServerHandle):
    def __init__(self, topology):
        super().__init__(topology)
        self.running = False
        self.client = Client()
        self.manager = Manager()

    def is_running(self):
        return self.running

    def management_client(self):
        return self.client

    def deployment_manager(self):
        return self.manager

    def _launch(self, timeout_seconds):
        EVENTS.append("start")
        self.running = True
        return True

    def _shutdown(self, timeout_seconds):
        EVENTS.append("shutdown")
        self.running = False

    def _kill(self):
        EVENTS.append("kill")
        self.running = False


class Launcher(ServerLauncher):
    def create(self, configuration):
        EVENTS.append(f"create:{configuration.topology.value}")
        return Handle(configuration.topology)


def pytest_server_harness_launcher(config):
    return Launcher()


def pytest_unconfigure(config):
    (config.rootpath / "events.txt").write_text("\\n".join(EVENTS), encoding="utf-8")
'''

_APP_TESTS = '''
from typing import ClassVar

from server_harness.address import Address
from server_harness.deployment.archive import WebArchive
from server_harness.injection.qualifiers import RequestPath, ServerResource
from server_harness.markers import deployment_producer, server_test
from server_harness.server.handle import ServerHandle


@server_test
class TestApp:
    base: ClassVar[Address] = ServerResource()
    orders: Address = ServerResource(RequestPath("orders"))

    @deployment_producer
    @staticmethod
    def deployment() -> WebArchive:
        return WebArchive("app.war").add("index.html", "hello")

    def test_static_field(self):
        assert str(self.base) == "http://localhost:8080/app"

    def test_instance_field(self):
        assert str(self.orders) == "http://localhost:8080/app/orders"

    def test_parameter(self, tmp_path, handle: ServerHandle = ServerResource()):
        assert tmp_path.exists()
        assert handle.is_running()

    def test_group_fixture(self, server_group):
        assert server_group.deployment_record().name == "app.war"


def test_plain_function_is_untouched():
    assert True
'''

_PLUGIN_ARGS = ("-p", "server_harness.pytest_plugin", "--server-param", "server.home=/opt/server")


def test_plain_module_runs_with_plugin_loaded(pytester: pytest.Pytester) -> None:
    # No launcher, no settings: the plugin must stay out of the way of ordinary tests.
    pytester.makepyfile(
        test_plain='''
        import pytest


        @pytest.fixture
        def number():
            return 3


        def test_fixture_argument(number, tmp_path):
            assert number == 3
            assert tmp_path.exists()


        class TestPlainClass:
            def test_method(self, number):
                assert number == 3


        @pytest.mark.parametrize("value", [1, 2])
        def test_parametrized(value):
            assert value in (1, 2)
        '''
    )
    result = pytester.runpytest("-p", "server_harness.pytest_plugin")
    assert result.ret == pytest.ExitCode.OK
    result.assert_outcomes(passed=4)


def test_plugin_runs_group_lifecycle_and_injection(pytester: pytest.Pytester) -> None:
    pytester.makeconftest(_CONFTEST)
    pytester.makepyfile(test_app=_APP_TESTS)
    result = pytester.runpytest(*_PLUGIN_ARGS)
    result.assert_outcomes(passed=5)
    events = (pytester.path / "events.txt").read_text(encoding="utf-8").splitlines()
    assert events == ["create:standalone", "start", "deploy:app.war", "undeploy:app.war", "shutdown"]


def test_group_misconfiguration_errors_only_that_class(pytester: pytest.Pytester) -> None:
    pytester.makeconftest(_CONFTEST)
    pytester.makepyfile(
        test_groups='''
        from server_harness.deployment.archive import WebArchive
        from server_harness.markers import deployment_producer, generate_deployment, server_test


        @server_test
        class TestBroken:
            @deployment_producer
            @staticmethod
            def produced() -> WebArchive:
                return WebArchive("a.war")

            @generate_deployment()
            @staticmethod
            def generated(archive: WebArchive) -> None:
                pass

            def test_never_runs(self):
                assert False


        @server_test
        class TestHealthy:
            def test_runs(self):
                assert True
        '''
    )
    result = pytester.runpytest(*_PLUGIN_ARGS)
    result.assert_outcomes(passed=1, errors=1)
    result.stdout.fnmatch_lines(["*ConfigurationError*mutually exclusive*"])
    events = (pytester.path / "events.txt").read_text(encoding="utf-8").splitlines()
    # The broken class fails on its declarations alone; the server is created for the healthy one.
    assert events == ["create:standalone", "start", "shutdown"]


def test_missing_launcher_hook_errors_server_classes(pytester: pytest.Pytester) -> None:
    pytester.makepyfile(
        test_nolauncher='''
        from server_harness.markers import server_test


        @server_test
        class TestNeedsServer:
            def test_server(self):
                pass


        def test_plain():
            pass
        '''
    )
    result = pytester.runpytest(*_PLUGIN_ARGS)
    result.assert_outcomes(passed=1, errors=1)
    result.stdout.fnmatch_lines(["*pytest_server_harness_launcher*"])


def test_config_file_and_override_hook(pytester: pytest.Pytester) -> None:
    pytester.makeconftest(
        _CONFTEST
        + '''

def pytest_server_harness_overrides(config):
    return {"server.http.host": "override.test"}
'''
    )
    pytester.makefile(".yml", harness="server:\n  home: /opt/server\n  http:\n    host: file.test\n    port: 9090\n")
    pytester.makeini("[pytest]\nserver_harness_config = harness.yml\n")
    pytester.makepyfile(
        test_address='''
        from server_harness.address import Address
        from server_harness.injection.qualifiers import ServerResource
        from server_harness.markers import server_test


        @server_test
        class TestAddress:
            def test_static_address(self, address: Address = ServerResource()):
                assert str(address) == "http://override.test:9090"
        '''
    )
    result = pytester.runpytest("-p", "server_harness.pytest_plugin")
    result.assert_outcomes(passed=1)


def test_server_resource_parameter_outside_group_fails(pytester: pytest.Pytester) -> None:
    pytester.makeconftest(_CONFTEST)
    pytester.makepyfile(
        test_outside='''
        from server_harness.address import Address
        from server_harness.injection.qualifiers import ServerResource


        def test_outside(address: Address = ServerResource()):
            pass
        '''
    )
    result = pytester.runpytest(*_PLUGIN_ARGS)
    result.assert_outcomes(failed=1)
    result.stdout.fnmatch_lines(["*not in a @server_test or @domain_test class*"])


def test_invalid_server_param_is_usage_error(pytester: pytest.Pytester) -> None:
    pytester.makeconftest(_CONFTEST)
    pytester.makepyfile(
        test_param='''
        from server_harness.markers import server_test


        @server_test
        class TestServer:
            def test_server(self):
                pass
        '''
    )
    result = pytester.runpytest("-p", "server_harness.pytest_plugin", "--server-param", "server.home")
    assert result.ret != 0
    result.stdout.fnmatch_lines(["*KEY=VALUE*"])
