from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ResourceAddress:
    # Path to a managed resource, e.g. deployment=app.war/subsystem=undertow.
    segments: tuple[tuple[str, str], ...] = ()

    @classmethod
    def of(cls, *pairs: str) -> ResourceAddress:
        if len(pairs) % 2:
            raise ValueError("ResourceAddress.of expects type/name pairs")
        return cls(tuple((pairs[index], pairs[index + 1]) for index in range(0, len(pairs), 2)))

    def add(self, key: str, value: str) -> ResourceAddress:
        return ResourceAddress(self.segments + ((key, value),))

    def __str__(self) -> str:
        if not self.segments:
            return "/"
        return "".join(f"/{key}={value}" for key, value in self.segments)


@dataclass(frozen=True, slots=True)
class Operation:
    name: str
    address: ResourceAddress = field(default_factory=ResourceAddress)
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class OperationResult:
    success: bool
    value: Any = None
    failure_message: str | None = None

    @classmethod
    def ok(cls, value: Any = None) -> OperationResult:
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, message: str) -> OperationResult:
        return cls(success=False, failure_message=message)


class ManagementClient:
    """Opaque client for the running server's management interface.

    Implementations raise ``OSError`` for transport failures and report
    management-level failures through an unsuccessful ``OperationResult``.
    """

    def execute(self, operation: Operation) -> OperationResult:
        raise NotImplementedError("ManagementClient.execute must be implemented")

    def close(self) -> None:
        return None


def read_attribute(address: ResourceAddress, name: str) -> Operation:
    return Operation(name="read-attribute", address=address, params={"name": name})


def read_children_names(address: ResourceAddress, child_type: str) -> Operation:
    return Operation(name="read-children-names", address=address, params={"child-type": child_type})
