# Archives produced by deployment methods. The resolver lives in server_harness.deployment.resolver.

from server_harness.deployment.archive import (
    Archive,
    ArchiveKind,
    EnterpriseArchive,
    JavaArchive,
    ResourceAdapterArchive,
    WebArchive,
)

__all__ = [
    "Archive",
    "ArchiveKind",
    "EnterpriseArchive",
    "JavaArchive",
    "ResourceAdapterArchive",
    "WebArchive",
]
