from __future__ import annotations

from server_harness.address import Address
from server_harness.context import GroupContext
from server_harness.errors import InjectionError
from server_harness.injection.producers import ResourceProducer, producer
from server_harness.server.deployment_manager import DeploymentManager
from server_harness.server.handle import ManagedServerHandle, ServerHandle
from server_harness.server.management import ManagementClient


class _HandleBackedProducer(ResourceProducer):
    def _handle(self, group: GroupContext) -> ServerHandle:
        if self.runtime is None:
            raise InjectionError(f"{type(self).__name__} is not bound to a harness runtime")
        handle = self.runtime.coordinator.get_handle(group)
        if handle is None:
            raise InjectionError(f"No server handle has been created for {group.group_id}")
        return handle


@producer(name="server_handle")
class ServerHandleProducer(_HandleBackedProducer):
    # Manual-mode groups control the real handle; everyone else gets the managed view.
    target_types = (ServerHandle,)

    def produce(self, group: GroupContext, target_type: object, qualifiers: tuple[object, ...]) -> object:
        handle = self._handle(group)
        if group.manual_mode is not None:
            return handle
        return ManagedServerHandle(handle)


@producer(name="management_client")
class ManagementClientProducer(_HandleBackedProducer):
    target_types = (ManagementClient,)

    def produce(self, group: GroupContext, target_type: object, qualifiers: tuple[object, ...]) -> object:
        return self._handle(group).management_client()


@producer(name="deployment_manager")
class DeploymentManagerProducer(_HandleBackedProducer):
    target_types = (DeploymentManager,)

    def produce(self, group: GroupContext, target_type: object, qualifiers: tuple[object, ...]) -> object:
        return self._handle(group).deployment_manager()


@producer(name="address")
class AddressProducer(ResourceProducer):
    # Base address of the group's deployment, joined with a RequestPath qualifier when present.
    target_types = (Address,)

    def produce(self, group: GroupContext, target_type: object, qualifiers: tuple[object, ...]) -> object:
        if self.runtime is None:
            raise InjectionError("AddressProducer is not bound to a harness runtime")
        handle = self.runtime.coordinator.get_handle(group)
        return self.runtime.addresses.resolve(group, handle, qualifiers)
