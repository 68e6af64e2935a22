from __future__ import annotations

import inspect
from collections.abc import Iterator
from pathlib import Path

import pytest

from server_harness import hookspecs
from server_harness.config.loader import flatten_config, load_yaml_config
from server_harness.config.settings import resolve_settings
from server_harness.config.source import ConfigurationSource, parse_parameter
from server_harness.context import GroupContext
from server_harness.errors import ConfigurationError
from server_harness.injection.injector import parameter_points
from server_harness.markers import server_test_meta
from server_harness.runtime import HarnessRuntime

_RUNTIME_KEY = pytest.StashKey[HarnessRuntime]()
_GROUP_FIXTURE = "_server_harness_group"


def pytest_addhooks(pluginmanager: pytest.PytestPluginManager) -> None:
    pluginmanager.add_hookspecs(hookspecs)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("server-harness", "shared application server")
    group.addoption(
        "--server-param",
        action="append",
        default=[],
        dest="server_params",
        metavar="KEY=VALUE",
        help="Run-time server setting, e.g. server.home=/opt/server (repeatable).",
    )
    parser.addini("server_harness_config", "YAML file with server harness settings.", default="")


def runtime_for(config: pytest.Config) -> HarnessRuntime:
    # Built on first use so that suites without server tests never read server settings.
    runtime = config.stash.get(_RUNTIME_KEY, None)
    if runtime is None:
        runtime = _build_runtime(config)
        config.stash[_RUNTIME_KEY] = runtime
    return runtime


def _build_runtime(config: pytest.Config) -> HarnessRuntime:
    parameters: dict[str, str] = {}
    config_file = config.getini("server_harness_config")
    if config_file:
        path = Path(config_file)
        if not path.is_absolute():
            path = config.rootpath / path
        parameters.update(flatten_config(load_yaml_config(path)))
    for item in config.getoption("server_params") or []:
        try:
            key, value = parse_parameter(item)
        except ValueError as exc:
            raise pytest.UsageError(str(exc)) from exc
        parameters[key] = value

    overrides: dict[str, str] = {}
    # Hook results come back last-registered first; earlier plugins win on conflicts.
    for result in reversed(config.hook.pytest_server_harness_overrides(config=config)):
        if result:
            overrides.update({str(key): str(value) for key, value in result.items()})

    settings = resolve_settings(ConfigurationSource(overrides=overrides, parameters=parameters))
    launcher = config.hook.pytest_server_harness_launcher(config=config)
    if launcher is None:
        raise ConfigurationError(
            "No server launcher available; implement the pytest_server_harness_launcher hook in a conftest or plugin"
        )
    return HarnessRuntime(settings, launcher)


@pytest.fixture(scope="session")
def server_harness(request: pytest.FixtureRequest) -> HarnessRuntime:
    return runtime_for(request.config)


@pytest.fixture(scope="class", autouse=True)
def _server_harness_group(request: pytest.FixtureRequest) -> Iterator[GroupContext | None]:
    test_class = request.cls
    if test_class is None or server_test_meta(test_class) is None:
        yield None
        return
    runtime = runtime_for(request.config)
    tags = frozenset(marker.name for marker in request.node.iter_markers())
    group = runtime.group(test_class, display_name=test_class.__name__, tags=tags)
    try:
        runtime.begin_group(group)
    except Exception:
        runtime.end_group(group)
        raise
    try:
        yield group
    finally:
        runtime.end_group(group)


@pytest.fixture(autouse=True)
def _server_harness_instance(request: pytest.FixtureRequest, _server_harness_group: GroupContext | None) -> None:
    if _server_harness_group is not None and request.instance is not None:
        runtime_for(request.config).inject_instance(_server_harness_group, request.instance)


@pytest.fixture
def server_group(_server_harness_group: GroupContext | None) -> GroupContext:
    if _server_harness_group is None:
        raise ConfigurationError("server_group is only available inside a @server_test or @domain_test class")
    return _server_harness_group


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    # Calls the test itself when it has ServerResource parameters; pytest does not see defaulted arguments.
    test_function = pyfuncitem.obj
    points = parameter_points(test_function)
    if not points:
        return None
    group = pyfuncitem.funcargs.get(_GROUP_FIXTURE)
    if not isinstance(group, GroupContext):
        raise ConfigurationError(
            f"{pyfuncitem.nodeid} has ServerResource parameters but is not in a @server_test or @domain_test class"
        )
    injected = {point.name for point in points}
    arguments = {
        name: pyfuncitem.funcargs[name]
        for name in inspect.signature(test_function).parameters
        if name not in injected and name in pyfuncitem.funcargs
    }
    arguments.update(runtime_for(pyfuncitem.config).resolve_parameters(group, test_function))
    result = test_function(**arguments)
    if inspect.iscoroutine(result):
        result.close()
        raise ConfigurationError(f"{pyfuncitem.nodeid}: coroutine tests cannot take ServerResource parameters")
    return True


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    _ = exitstatus
    runtime = session.config.stash.get(_RUNTIME_KEY, None)
    if runtime is not None:
        del session.config.stash[_RUNTIME_KEY]
        runtime.close()
