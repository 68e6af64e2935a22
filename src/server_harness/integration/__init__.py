# Integration package: keyed stores shared by lifecycle components.

from server_harness.integration.kv_store import InMemoryKvStore, KVStore, StoreScope

__all__ = [
    "KVStore",
    "InMemoryKvStore",
    "StoreScope",
]
