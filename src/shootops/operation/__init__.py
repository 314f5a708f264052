"""Per-shoot operation: component wiring, DNS ownership and the shoot flows."""

from shootops.operation.dns import (
    DNSComponents,
    DNSRestoreDeployer,
    needs_additional_dns_providers,
    needs_external_dns,
    needs_internal_dns,
)
from shootops.operation.operation import ComponentFactories, ExtensionComponents, Operation

__all__ = [
    "ComponentFactories",
    "DNSComponents",
    "DNSRestoreDeployer",
    "ExtensionComponents",
    "Operation",
    "needs_additional_dns_providers",
    "needs_external_dns",
    "needs_internal_dns",
]
