# Ports of the external server: handle, management client, deployment manager, launcher.

from server_harness.server.deployment_manager import (
    DeploymentDescriptor,
    DeploymentManager,
    DeploymentResult,
    DeploymentUnit,
    ManagementDeploymentManager,
    UndeployDescriptor,
)
from server_harness.server.handle import ListenerRegistration, ManagedServerHandle, ServerHandle, ServerListener
from server_harness.server.launcher import ServerLauncher
from server_harness.server.management import (
    ManagementClient,
    Operation,
    OperationResult,
    ResourceAddress,
    read_attribute,
    read_children_names,
)
from server_harness.server.process import ProcessServerHandle, ProcessServerLauncher
from server_harness.topology import Topology

__all__ = [
    "DeploymentDescriptor",
    "DeploymentManager",
    "DeploymentResult",
    "DeploymentUnit",
    "ListenerRegistration",
    "ManagedServerHandle",
    "ManagementClient",
    "ManagementDeploymentManager",
    "Operation",
    "OperationResult",
    "ProcessServerHandle",
    "ProcessServerLauncher",
    "ResourceAddress",
    "ServerHandle",
    "ServerLauncher",
    "ServerListener",
    "Topology",
    "UndeployDescriptor",
    "read_attribute",
    "read_children_names",
]
