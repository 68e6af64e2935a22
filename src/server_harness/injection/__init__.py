# Server resource injection: markers, producer registry and the injector.

from server_harness.injection.injector import InjectionPoint, ResourceInjector, parameter_points
from server_harness.injection.producers import (
    ProducerMeta,
    ProducerRegistry,
    ResourceProducer,
    build_registry,
    discover_producers,
    producer,
)
from server_harness.injection.qualifiers import DomainServer, RequestPath, ServerResource, find_qualifier

__all__ = [
    "DomainServer",
    "InjectionPoint",
    "ProducerMeta",
    "ProducerRegistry",
    "RequestPath",
    "ResourceInjector",
    "ResourceProducer",
    "ServerResource",
    "build_registry",
    "discover_producers",
    "find_qualifier",
    "parameter_points",
    "producer",
]
