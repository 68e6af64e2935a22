from __future__ import annotations

from collections.abc import Callable, Hashable
from threading import Lock
from typing import TypeVar

T = TypeVar("T")

_MISSING = object()


class KVStore:
    # Keyed state port used for server handles, deployment records and resolved addresses.
    def get(self, key: Hashable) -> object | None:
        raise NotImplementedError("KVStore.get must be implemented")

    def set(self, key: Hashable, value: object) -> None:
        raise NotImplementedError("KVStore.set must be implemented")

    def delete(self, key: Hashable) -> None:
        raise NotImplementedError("KVStore.delete must be implemented")

    def compute_if_absent(self, key: Hashable, factory: Callable[[], T]) -> T:
        raise NotImplementedError("KVStore.compute_if_absent must be implemented")


class InMemoryKvStore(KVStore):
    # Thread-safe in-memory store; compute_if_absent is single-flight per key.
    def __init__(self) -> None:
        self._store: dict[Hashable, object] = {}
        self._gates: dict[Hashable, Lock] = {}
        self._lock = Lock()

    def get(self, key: Hashable) -> object | None:
        with self._lock:
            return self._store.get(key)

    def set(self, key: Hashable, value: object) -> None:
        with self._lock:
            self._store[key] = value

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._store.pop(key, None)

    def contains(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._store

    def values(self) -> list[object]:
        # Insertion order snapshot.
        with self._lock:
            return list(self._store.values())

    def compute_if_absent(self, key: Hashable, factory: Callable[[], T]) -> T:
        while True:
            with self._lock:
                existing = self._store.get(key, _MISSING)
                if existing is not _MISSING:
                    return existing  # type: ignore[return-value]
                gate = self._gates.get(key)
                owner = gate is None
                if owner:
                    gate = Lock()
                    gate.acquire()
                    self._gates[key] = gate
            assert gate is not None
            if not owner:
                # Wait for the owner, then re-check: a failed factory leaves the key absent.
                with gate:
                    pass
                continue
            try:
                value = factory()
                with self._lock:
                    self._store[key] = value
                return value
            finally:
                with self._lock:
                    self._gates.pop(key, None)
                gate.release()


class StoreScope:
    # One node of the suite -> group -> case store tree; lookups never delegate to the parent.
    def __init__(self, name: str, parent: StoreScope | None = None) -> None:
        if not name:
            raise ValueError("StoreScope.name must be a non-empty string")
        self.name = name
        self.parent = parent
        self.store = InMemoryKvStore()
        self._children: dict[str, StoreScope] = {}
        self._lock = Lock()

    @property
    def path(self) -> str:
        if self.parent is None:
            return self.name
        return f"{self.parent.path}/{self.name}"

    def child(self, name: str) -> StoreScope:
        with self._lock:
            scope = self._children.get(name)
            if scope is None:
                scope = StoreScope(name, parent=self)
                self._children[name] = scope
            return scope

    def discard_child(self, name: str) -> None:
        with self._lock:
            scope = self._children.pop(name, None)
        if scope is not None:
            scope.close()

    def get(self, key: Hashable) -> object | None:
        return self.store.get(key)

    def set(self, key: Hashable, value: object) -> None:
        self.store.set(key, value)

    def delete(self, key: Hashable) -> None:
        self.store.delete(key)

    def compute_if_absent(self, key: Hashable, factory: Callable[[], T]) -> T:
        return self.store.compute_if_absent(key, factory)

    def close(self) -> None:
        # Children first, then own closeable values in reverse insertion order.
        with self._lock:
            children = list(self._children.values())
            self._children.clear()
        for child in reversed(children):
            child.close()
        for value in reversed(self.store.values()):
            close = getattr(value, "close", None)
            if callable(close):
                close()
