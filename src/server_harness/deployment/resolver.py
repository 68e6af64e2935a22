from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass

from server_harness.context import GroupContext, GroupInfo
from server_harness.deployment.archive import Archive, ArchiveKind
from server_harness.errors import ConfigurationError
from server_harness.markers import (
    DEPLOYMENT_PRODUCER_ATTR,
    GENERATE_DEPLOYMENT_ATTR,
    SERVER_GROUP_ATTR,
    GenerateDeploymentMeta,
    ServerGroupMeta,
    class_members,
    method_meta,
)

_EMPTY = inspect.Parameter.empty


@dataclass(frozen=True, slots=True)
class DeploymentMethod:
    # A validated declaring method found on a group's class hierarchy.
    name: str
    function: object
    style: str
    server_groups: frozenset[str]
    kind: ArchiveKind = ArchiveKind.INFER


@dataclass(frozen=True, slots=True)
class ResolvedDeployment:
    archive: Archive
    server_groups: frozenset[str]
    method_name: str


class DeploymentResolver:
    # Finds, validates and invokes the single deployment-declaring method of a group.
    def resolve(self, group: GroupContext) -> ResolvedDeployment | None:
        method = self.find_method(group.test_class)
        if method is None:
            return None
        if method.style == "producer":
            archive = self._invoke_producer(group, method)
        else:
            archive = self._invoke_generator(group, method)
        return ResolvedDeployment(archive=archive, server_groups=method.server_groups, method_name=method.name)

    def find_method(self, test_class: type) -> DeploymentMethod | None:
        producers: list[tuple[str, object]] = []
        generators: list[tuple[str, object]] = []
        for name, member in class_members(test_class):
            if method_meta(member, DEPLOYMENT_PRODUCER_ATTR) is not None:
                producers.append((name, member))
            if method_meta(member, GENERATE_DEPLOYMENT_ATTR) is not None:
                generators.append((name, member))

        if producers and generators:
            raise ConfigurationError(
                f"{test_class.__qualname__} declares both @deployment_producer and @generate_deployment "
                f"methods ({_names(producers)} / {_names(generators)}); they are mutually exclusive"
            )
        found = producers or generators
        if not found:
            return None
        if len(found) > 1:
            raise ConfigurationError(
                f"Found more than one deployment method in {test_class.__qualname__}: {_names(found)}"
            )

        name, member = found[0]
        if not isinstance(member, staticmethod):
            raise ConfigurationError(
                f"Deployment method {name} in {test_class.__qualname__} must be a staticmethod"
            )
        function = member.__func__
        group_meta = method_meta(member, SERVER_GROUP_ATTR)
        server_groups = group_meta.names if isinstance(group_meta, ServerGroupMeta) else frozenset()
        if producers:
            _validate_producer(name, function)
            return DeploymentMethod(name=name, function=function, style="producer", server_groups=server_groups)
        meta = method_meta(member, GENERATE_DEPLOYMENT_ATTR)
        assert isinstance(meta, GenerateDeploymentMeta)
        kind = _validate_generator(test_class, name, function, meta.kind)
        return DeploymentMethod(
            name=name, function=function, style="generator", server_groups=server_groups, kind=kind
        )

    def _invoke_producer(self, group: GroupContext, method: DeploymentMethod) -> Archive:
        args = _info_args(method.function, group, skip=0)
        try:
            archive = method.function(*args)  # type: ignore[operator]
        except Exception as exc:
            raise ConfigurationError(f"Failed to execute deployment method {method.name}") from exc
        if not isinstance(archive, Archive):
            raise ConfigurationError(
                f"Deployment method {method.name} must return an Archive, but returned {type(archive).__name__}"
            )
        return archive

    def _invoke_generator(self, group: GroupContext, method: DeploymentMethod) -> Archive:
        archive_type = method.kind.archive_type
        assert archive_type is not None
        archive = archive_type(f"{group.test_class.__name__}{method.kind.extension}")
        args = [archive, *_info_args(method.function, group, skip=1)]
        try:
            method.function(*args)  # type: ignore[operator]
        except Exception as exc:
            raise ConfigurationError(f"Failed to execute deployment method {method.name}") from exc
        return archive


def _validate_producer(name: str, function: object) -> None:
    hints = _hints(function)
    returned = hints.get("return", _EMPTY)
    if returned is not _EMPTY and not (isinstance(returned, type) and issubclass(returned, Archive)):
        raise ConfigurationError(f"Method '{name}' must return an Archive, but is annotated {returned!r}")
    parameters = _parameters(function)
    if len(parameters) > 1:
        raise ConfigurationError(
            f"Method {name} has too many parameters. Only one parameter of type GroupInfo is allowed."
        )
    if parameters:
        _check_info_parameter(name, parameters[0], hints)


def _validate_generator(test_class: type, name: str, function: object, kind: ArchiveKind) -> ArchiveKind:
    hints = _hints(function)
    returned = hints.get("return", _EMPTY)
    if returned is not _EMPTY and returned is not type(None):
        raise ConfigurationError(f"Method '{name}' must return None")
    parameters = _parameters(function)
    if not parameters:
        raise ConfigurationError(f"Method '{name}' must have at least one parameter.")
    if len(parameters) > 2:
        raise ConfigurationError(f"Method {name} has too many parameters. Only two parameters are allowed.")

    declared = hints.get(parameters[0].name, _EMPTY)
    if kind is ArchiveKind.INFER:
        inferred = ArchiveKind.infer(declared)
        if inferred is None:
            raise ConfigurationError(
                f"Could not infer the archive kind for parameter '{parameters[0].name}' of {name} "
                f"in {test_class.__qualname__}; annotate it with a known Archive type or pass kind=..."
            )
        kind = inferred
    elif declared is not _EMPTY:
        if not (isinstance(declared, type) and issubclass(declared, Archive)):
            raise ConfigurationError(
                f"Method {name} must take an Archive type as the first parameter, but was {declared!r}"
            )
        assert kind.archive_type is not None
        if not issubclass(kind.archive_type, declared):
            raise ConfigurationError(
                f"Parameter '{parameters[0].name}' must be assignable from {kind.archive_type.__name__}"
            )
    if len(parameters) == 2:
        _check_info_parameter(name, parameters[1], hints)
    return kind


def _check_info_parameter(name: str, parameter: inspect.Parameter, hints: dict[str, object]) -> None:
    declared = hints.get(parameter.name, _EMPTY)
    if declared is _EMPTY:
        return
    if not (isinstance(declared, type) and issubclass(declared, GroupInfo)):
        raise ConfigurationError(
            f"Method {name} parameter '{parameter.name}' must be of type GroupInfo, but was {declared!r}"
        )


def _info_args(function: object, group: GroupContext, *, skip: int) -> list[object]:
    if len(_parameters(function)) > skip:
        return [group.info()]
    return []


def _parameters(function: object) -> list[inspect.Parameter]:
    return list(inspect.signature(function).parameters.values())  # type: ignore[arg-type]


def _hints(function: object) -> dict[str, object]:
    try:
        return typing.get_type_hints(function)
    except Exception as exc:
        raise ConfigurationError(f"Could not resolve annotations of deployment method {function!r}") from exc


def _names(found: list[tuple[str, object]]) -> list[str]:
    return [name for name, _member in found]
