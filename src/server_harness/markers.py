from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TypeVar

from server_harness.deployment.archive import ArchiveKind
from server_harness.topology import Topology

T = TypeVar("T")

SERVER_TEST_ATTR = "__server_test_meta__"
MANUAL_MODE_ATTR = "__manual_mode_meta__"
DEPLOYMENT_PRODUCER_ATTR = "__deployment_producer_meta__"
GENERATE_DEPLOYMENT_ATTR = "__generate_deployment_meta__"
SERVER_GROUP_ATTR = "__server_group_meta__"


@dataclass(frozen=True, slots=True)
class ServerTestMeta:
    # Marks a test class as a group sharing the server; topology is fixed per class.
    topology: Topology


@dataclass(frozen=True, slots=True)
class ManualModeMeta:
    # Opt-out of automatic start; autostart=True starts the server for this group only.
    autostart: bool = False


@dataclass(frozen=True, slots=True)
class DeploymentProducerMeta:
    pass


@dataclass(frozen=True, slots=True)
class GenerateDeploymentMeta:
    kind: ArchiveKind = ArchiveKind.INFER


@dataclass(frozen=True, slots=True)
class ServerGroupMeta:
    names: frozenset[str]


def server_test(target: type[T]) -> type[T]:
    setattr(target, SERVER_TEST_ATTR, ServerTestMeta(topology=Topology.STANDALONE))
    return target


def domain_test(target: type[T]) -> type[T]:
    setattr(target, SERVER_TEST_ATTR, ServerTestMeta(topology=Topology.DOMAIN))
    return target


def manual_mode(*, autostart: bool = False) -> Callable[[type[T]], type[T]]:
    meta = ManualModeMeta(autostart=autostart)

    def _decorate(target: type[T]) -> type[T]:
        setattr(target, MANUAL_MODE_ATTR, meta)
        return target

    return _decorate


def deployment_producer(target: T) -> T:
    # Style A: static method returning an Archive, optionally taking GroupInfo.
    _mark(target, DEPLOYMENT_PRODUCER_ATTR, DeploymentProducerMeta())
    return target


def generate_deployment(*, kind: ArchiveKind = ArchiveKind.INFER) -> Callable[[T], T]:
    # Style B: static method filling a harness-created Archive, optionally taking GroupInfo.
    meta = GenerateDeploymentMeta(kind=kind)

    def _decorate(target: T) -> T:
        _mark(target, GENERATE_DEPLOYMENT_ATTR, meta)
        return target

    return _decorate


def server_group(*names: str) -> Callable[[T], T]:
    # Domain node groups a deployment method's artifact is pushed to; ignored for standalone groups.
    for name in names:
        if not isinstance(name, str) or not name:
            raise ValueError("server_group names must be non-empty strings")
    meta = ServerGroupMeta(names=frozenset(names))

    def _decorate(target: T) -> T:
        _mark(target, SERVER_GROUP_ATTR, meta)
        return target

    return _decorate


def server_test_meta(test_class: type) -> ServerTestMeta | None:
    meta = getattr(test_class, SERVER_TEST_ATTR, None)
    return meta if isinstance(meta, ServerTestMeta) else None


def manual_mode_meta(test_class: type) -> ManualModeMeta | None:
    meta = getattr(test_class, MANUAL_MODE_ATTR, None)
    return meta if isinstance(meta, ManualModeMeta) else None


def method_meta(member: object, attr: str) -> object | None:
    # Markers may sit on the staticmethod wrapper or on the wrapped function.
    meta = getattr(member, attr, None)
    if meta is None:
        meta = getattr(getattr(member, "__func__", None), attr, None)
    return meta


def class_members(test_class: type) -> Iterator[tuple[str, object]]:
    # Attribute-lookup order: an override in a subclass hides the parent's declaration.
    seen: set[str] = set()
    for klass in test_class.__mro__:
        if klass is object:
            continue
        for name, member in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            yield name, member


def _mark(target: object, attr: str, meta: object) -> None:
    func = getattr(target, "__func__", None)
    setattr(func if func is not None else target, attr, meta)
