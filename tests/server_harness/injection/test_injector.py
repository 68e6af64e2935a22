from __future__ import annotations

from typing import ClassVar, Final

import pytest

from server_harness.context import GroupContext
from server_harness.errors import ConfigurationError, InjectionError
from server_harness.injection.injector import ResourceInjector, parameter_points
from server_harness.injection.producers import ProducerRegistry, ResourceProducer
from server_harness.injection.qualifiers import DomainServer, RequestPath, ServerResource
from tests.server_harness.stubs import make_group


class _Token:
    pass


class _Echo(ResourceProducer):
    # Returns the qualifiers it was asked with, so tests can see what reached the producer.
    target_types = (_Token,)

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[object, ...]] = []

    def produce(self, group: GroupContext, target_type: object, qualifiers: tuple[object, ...]) -> object:
        self.calls.append(qualifiers)
        return ("token", group.group_id, qualifiers)


class _Fields:
    shared: ClassVar[_Token] = ServerResource()
    own: _Token = ServerResource(RequestPath("orders"))
    plain: int = 1


class _FinalField:
    frozen: Final[_Token] = ServerResource()


class _UnannotatedField:
    missing = ServerResource()


class _UnknownType:
    value: str = ServerResource()


class _Child(_Fields):
    # Redeclares an inherited field without a marker.
    own: _Token = None  # type: ignore[assignment]


def _injector() -> tuple[ResourceInjector, _Echo]:
    registry = ProducerRegistry()
    echo = _Echo()
    registry.register(echo)
    return ResourceInjector(registry), echo


def test_validate_finds_static_and_instance_points() -> None:
    injector, _ = _injector()
    points = {point.name: point for point in injector.validate(_Fields)}
    assert set(points) == {"shared", "own"}
    assert points["shared"].static is True
    assert points["shared"].target_type is _Token
    assert points["own"].static is False
    assert points["own"].qualifiers == (RequestPath("orders"),)


def test_final_target_is_configuration_error() -> None:
    injector, echo = _injector()
    with pytest.raises(ConfigurationError, match="Final"):
        injector.validate(_FinalField)
    assert echo.calls == []


def test_unannotated_marker_is_configuration_error() -> None:
    injector, _ = _injector()
    with pytest.raises(ConfigurationError, match="annotation"):
        injector.validate(_UnannotatedField)


def test_static_injection_sets_class_attribute_and_reset_restores_marker() -> None:
    class _Group(_Fields):
        pass

    injector, _ = _injector()
    group = make_group(_Group)
    injector.inject_static(group)
    assert _Group.shared == ("token", group.group_id, ())
    assert isinstance(_Fields.shared, ServerResource)

    injector.reset_static(group)
    assert isinstance(_Group.shared, ServerResource)


def test_instance_injection_sets_fields_per_instance() -> None:
    injector, echo = _injector()
    group = make_group(_Fields)
    first, second = _Fields(), _Fields()
    injector.inject_instance(group, first)
    injector.inject_instance(group, second)
    assert first.own == ("token", group.group_id, (RequestPath("orders"),))
    assert second.own == first.own
    assert len(echo.calls) == 2
    assert first.plain == 1


def test_redeclared_field_hides_inherited_marker() -> None:
    injector, _ = _injector()
    assert [point.name for point in injector.validate(_Child)] == ["shared"]


def test_missing_producer_is_injection_error() -> None:
    injector, _ = _injector()
    with pytest.raises(InjectionError):
        injector.inject_instance(make_group(_UnknownType), _UnknownType())


def _with_parameters(
    fixture_value: int,
    token: _Token = ServerResource(DomainServer("server-one")),
    other: int = 3,
) -> None:
    _ = (fixture_value, token, other)


def _untyped(token=ServerResource()) -> None:  # type: ignore[no-untyped-def]
    _ = token


def test_parameter_points_only_cover_marker_defaults() -> None:
    points = parameter_points(_with_parameters)
    assert [(point.name, point.target_type, point.qualifiers) for point in points] == [
        ("token", _Token, (DomainServer("server-one"),))
    ]


def test_resolve_parameters_produces_values() -> None:
    injector, _ = _injector()
    group = make_group(_Fields)
    assert injector.resolve_parameters(group, _with_parameters) == {
        "token": ("token", group.group_id, (DomainServer("server-one"),))
    }


def test_untyped_parameter_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="annotation"):
        parameter_points(_untyped)


def test_domain_server_requires_name() -> None:
    with pytest.raises(ValueError):
        DomainServer("")
