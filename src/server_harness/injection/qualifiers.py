from __future__ import annotations

from dataclasses import dataclass


class ServerResource:
    # Marker value for injection points: fields assigned to it and parameters defaulting to it.
    __slots__ = ("qualifiers",)

    def __init__(self, *qualifiers: object) -> None:
        self.qualifiers: tuple[object, ...] = tuple(qualifiers)

    def __repr__(self) -> str:
        inner = ", ".join(repr(q) for q in self.qualifiers)
        return f"ServerResource({inner})"


@dataclass(frozen=True, slots=True)
class RequestPath:
    # Relative path joined onto a resolved address.
    path: str


@dataclass(frozen=True, slots=True)
class DomainServer:
    # Named domain server whose view of the deployment is used for address resolution.
    name: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("DomainServer.name must be a non-empty string")


def find_qualifier(qualifiers: tuple[object, ...], qualifier_type: type) -> object | None:
    for qualifier in qualifiers:
        if type(qualifier) is qualifier_type:
            return qualifier
    return None
