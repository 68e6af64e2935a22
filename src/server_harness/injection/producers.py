from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from types import ModuleType
from typing import TYPE_CHECKING, TypeVar

from server_harness.context import GroupContext
from server_harness.errors import ConfigurationError, InjectionError

if TYPE_CHECKING:
    from server_harness.runtime import HarnessRuntime

T = TypeVar("T")

PRODUCER_ATTR = "__producer_meta__"


@dataclass(frozen=True, slots=True)
class ProducerMeta:
    # Metadata marker for producer classes picked up by discovery.
    name: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("ProducerMeta.name must be a non-empty string")


class ResourceProducer:
    """Capability interface for server-derived injection values.

    Matching is by identity against ``target_types``; subclasses may narrow it
    further by overriding ``can_produce`` (for example on qualifiers).
    """

    target_types: tuple[type, ...] = ()

    def __init__(self, runtime: HarnessRuntime | None = None) -> None:
        self.runtime = runtime

    def can_produce(self, group: GroupContext, target_type: object, qualifiers: tuple[object, ...]) -> bool:
        _ = (group, qualifiers)
        return target_type in self.target_types

    def produce(self, group: GroupContext, target_type: object, qualifiers: tuple[object, ...]) -> object:
        raise NotImplementedError("ResourceProducer.produce must be implemented")


def producer(*, name: str | None = None) -> Callable[[T], T]:
    def _decorate(target: T) -> T:
        resolved_name = name if name is not None else getattr(target, "__name__", "")
        setattr(target, PRODUCER_ATTR, ProducerMeta(name=resolved_name))
        return target

    return _decorate


def discover_producers(modules: list[ModuleType]) -> list[type[ResourceProducer]]:
    # Module order first, then definition order inside each module.
    discovered: list[type[ResourceProducer]] = []
    seen_targets: dict[str, type] = {}
    for module in modules:
        for value in module.__dict__.values():
            # Own attribute only: subclasses of a marked producer are not discovered implicitly.
            meta = vars(value).get(PRODUCER_ATTR) if isinstance(value, type) else getattr(value, PRODUCER_ATTR, None)
            if not isinstance(meta, ProducerMeta):
                continue
            if not isinstance(value, type) or not issubclass(value, ResourceProducer):
                raise ConfigurationError(f"Producer '{meta.name}' must be a ResourceProducer subclass")
            if meta.name in seen_targets:
                if seen_targets[meta.name] is value:
                    # Same class re-exported through multiple modules is not a conflict.
                    continue
                raise ConfigurationError(f"Duplicate producer name discovered: {meta.name}")
            seen_targets[meta.name] = value
            discovered.append(value)
    return discovered


class ProducerRegistry:
    # First-match registry: registration order decides which producer wins.
    def __init__(self) -> None:
        self._producers: list[ResourceProducer] = []

    def register(self, resource_producer: ResourceProducer) -> None:
        if not isinstance(resource_producer, ResourceProducer):
            raise TypeError(f"{resource_producer!r} is not a ResourceProducer")
        self._producers.append(resource_producer)

    def producers(self) -> list[ResourceProducer]:
        return list(self._producers)

    def resolve(
        self,
        target_type: object,
        qualifiers: tuple[object, ...],
        group: GroupContext,
    ) -> ResourceProducer | None:
        for candidate in self._producers:
            if candidate.can_produce(group, target_type, qualifiers):
                return candidate
        return None

    def produce(self, group: GroupContext, target_type: object, qualifiers: tuple[object, ...] = ()) -> object:
        matched = self.resolve(target_type, qualifiers, group)
        if matched is None:
            raise InjectionError(f"No producer found for {_type_name(target_type)} in {group.group_id}")
        try:
            return matched.produce(group, target_type, qualifiers)
        except ConfigurationError:
            raise
        except Exception as exc:
            raise InjectionError(
                f"Producer {type(matched).__name__} failed to produce {_type_name(target_type)}: {exc}"
            ) from exc


def build_registry(modules: list[ModuleType], runtime: HarnessRuntime | None = None) -> ProducerRegistry:
    registry = ProducerRegistry()
    for producer_cls in discover_producers(modules):
        registry.register(producer_cls(runtime))
    return registry


def _type_name(target_type: object) -> str:
    return getattr(target_type, "__qualname__", None) or repr(target_type)
