"""Lifecycle contract, its generic implementations and ordered composites."""

from shootops.component.base import DeployMigrateWaiter, Deployer, DeployWaiter, MigrateRestorer
from shootops.component.dns import (
    DNSEntry,
    DNSOwner,
    DNSProvider,
    EntryValues,
    IncludeExclude,
    OwnerValues,
    ProviderValues,
    dns_state_of,
)
from shootops.component.extension import ExtensionResource
from shootops.component.health import DNSStateError, NotReadyError, check_dns_object, check_extension_object
from shootops.component.ops import OrderedDeployer, op_destroy, op_destroy_and_wait, op_waiter
from shootops.component.resource import (
    ResourceComponent,
    wait_until_object_deleted,
    wait_until_object_migrated,
    wait_until_object_ready,
)

__all__ = [
    "DNSEntry",
    "DNSOwner",
    "DNSProvider",
    "DNSStateError",
    "DeployMigrateWaiter",
    "DeployWaiter",
    "Deployer",
    "EntryValues",
    "ExtensionResource",
    "IncludeExclude",
    "MigrateRestorer",
    "NotReadyError",
    "OrderedDeployer",
    "OwnerValues",
    "ProviderValues",
    "ResourceComponent",
    "check_dns_object",
    "check_extension_object",
    "dns_state_of",
    "op_destroy",
    "op_destroy_and_wait",
    "op_waiter",
    "wait_until_object_deleted",
    "wait_until_object_migrated",
    "wait_until_object_ready",
]
