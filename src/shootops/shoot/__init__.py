"""Shoot/seed models and the required-extension readiness gate."""

from shootops.shoot.extensions import (
    ControllerInstallation,
    ControllerRegistration,
    ControllerResource,
    ExtensionID,
    available_extensions,
    check_required_extensions,
    compute_required_extensions,
)
from shootops.shoot.models import (
    DNS_UNMANAGED,
    DNSProviderSpec,
    Domain,
    ExtensionSpec,
    IncludeExcludeSpec,
    Seed,
    Shoot,
    ShootDNS,
    WorkerPool,
)

__all__ = [
    "DNS_UNMANAGED",
    "ControllerInstallation",
    "ControllerRegistration",
    "ControllerResource",
    "DNSProviderSpec",
    "Domain",
    "ExtensionID",
    "ExtensionSpec",
    "IncludeExcludeSpec",
    "Seed",
    "Shoot",
    "ShootDNS",
    "WorkerPool",
    "available_extensions",
    "check_required_extensions",
    "compute_required_extensions",
]
