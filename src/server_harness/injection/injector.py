from __future__ import annotations

import inspect
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar, Final

from server_harness.context import GroupContext
from server_harness.errors import ConfigurationError
from server_harness.injection.producers import ProducerRegistry
from server_harness.injection.qualifiers import ServerResource
from server_harness.markers import class_members


@dataclass(frozen=True, slots=True)
class InjectionPoint:
    # One annotated field or parameter carrying a ServerResource marker.
    name: str
    target_type: object
    qualifiers: tuple[object, ...]
    static: bool = False
    marker: ServerResource | None = None


class ResourceInjector:
    # Populates static fields, instance fields and parameters from the producer registry.
    def __init__(self, registry: ProducerRegistry) -> None:
        self.registry = registry
        self._points: dict[type, list[InjectionPoint]] = {}

    def validate(self, test_class: type) -> list[InjectionPoint]:
        # Raised before anything is produced, so a misdeclared field never sees a partial injection.
        points = self._points.get(test_class)
        if points is None:
            points = _field_points(test_class)
            self._points[test_class] = points
        return points

    def inject_static(self, group: GroupContext) -> None:
        for point in self.validate(group.test_class):
            if point.static:
                setattr(group.test_class, point.name, self.registry.produce(group, point.target_type, point.qualifiers))

    def reset_static(self, group: GroupContext) -> None:
        # Put the markers back so the class can be collected again in the same process.
        for point in self.validate(group.test_class):
            if point.static and point.marker is not None:
                setattr(group.test_class, point.name, point.marker)

    def inject_instance(self, group: GroupContext, instance: object) -> None:
        for point in self.validate(type(instance)):
            if not point.static:
                setattr(instance, point.name, self.registry.produce(group, point.target_type, point.qualifiers))

    def resolve_parameters(self, group: GroupContext, function: Callable[..., object]) -> dict[str, object]:
        resolved: dict[str, object] = {}
        for point in parameter_points(function):
            resolved[point.name] = self.registry.produce(group, point.target_type, point.qualifiers)
        return resolved


def parameter_points(function: Callable[..., object]) -> list[InjectionPoint]:
    parameters = [
        parameter
        for parameter in inspect.signature(function).parameters.values()
        if isinstance(parameter.default, ServerResource)
    ]
    if not parameters:
        return []
    hints = _resolve_hints(function, getattr(function, "__qualname__", repr(function)))
    points: list[InjectionPoint] = []
    for parameter in parameters:
        declared = hints.get(parameter.name)
        if declared is None:
            raise ConfigurationError(
                f"Parameter '{parameter.name}' of {function.__qualname__} needs a type annotation to be injected"
            )
        points.append(
            InjectionPoint(
                name=parameter.name,
                target_type=declared,
                qualifiers=parameter.default.qualifiers,
                marker=parameter.default,
            )
        )
    return points


def _field_points(test_class: type) -> list[InjectionPoint]:
    markers = _markers(test_class)
    if not markers:
        return []
    hints = _resolve_hints(test_class, test_class.__qualname__)
    points: list[InjectionPoint] = []
    for name, marker in markers.items():
        declared = hints.get(name)
        if declared is None:
            raise ConfigurationError(
                f"Field '{name}' of {test_class.__qualname__} needs a type annotation to be injected"
            )
        origin = typing.get_origin(declared)
        if declared is Final or origin is Final:
            raise ConfigurationError(
                f"Field '{name}' of {test_class.__qualname__} is Final and cannot be injected"
            )
        static = declared is ClassVar or origin is ClassVar
        if static:
            args = typing.get_args(declared)
            if not args:
                raise ConfigurationError(f"Field '{name}' of {test_class.__qualname__} must be ClassVar[<type>]")
            declared = args[0]
        points.append(
            InjectionPoint(
                name=name,
                target_type=declared,
                qualifiers=marker.qualifiers,
                static=static,
                marker=marker,
            )
        )
    return points


def _markers(test_class: type) -> dict[str, ServerResource]:
    # A subclass can replace an inherited marker, or hide it with a plain value.
    return {name: value for name, value in class_members(test_class) if isinstance(value, ServerResource)}


def _resolve_hints(target: object, label: str) -> dict[str, object]:
    try:
        return typing.get_type_hints(target)
    except Exception as exc:
        raise ConfigurationError(f"Could not resolve type annotations of {label}") from exc
