# Shared server lifecycle and per-group deployments.

from server_harness.lifecycle.coordinator import (
    SERVER_KEY,
    DeploymentListener,
    ServerLifecycleCoordinator,
    ServerState,
)
from server_harness.lifecycle.deployments import DeploymentLifecycleManager

__all__ = [
    "SERVER_KEY",
    "DeploymentLifecycleManager",
    "DeploymentListener",
    "ServerLifecycleCoordinator",
    "ServerState",
]
