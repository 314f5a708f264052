"""
Readiness gate for the extensions a shoot needs.

Before a reconciliation starts, every (kind, type) capability the shoot
depends on must be advertised by a controller that is installed and healthy
on the seed. The gate fails fast with one error naming every missing pair.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, NamedTuple

import structlog

from shootops.core.errors import ConfigurationError, MissingExtensionsError
from shootops.resources.models import (
    KIND_BACKUP_BUCKET,
    KIND_BACKUP_ENTRY,
    KIND_CONTAINER_RUNTIME,
    KIND_CONTROL_PLANE,
    KIND_DNS_RECORD,
    KIND_EXTENSION,
    KIND_INFRASTRUCTURE,
    KIND_NETWORK,
    KIND_OPERATING_SYSTEM_CONFIG,
    KIND_WORKER,
)
from shootops.shoot.models import DNS_UNMANAGED, Seed, Shoot

logger = structlog.get_logger()


class ExtensionID(NamedTuple):
    kind: str
    type: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.type}"


@dataclass
class ControllerResource:
    kind: str
    type: str
    globally_enabled: bool = False

    @property
    def id(self) -> ExtensionID:
        return ExtensionID(self.kind, self.type)


@dataclass
class ControllerRegistration:
    """The capabilities an extension controller advertises."""

    name: str
    resources: list[ControllerResource] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> ControllerRegistration:
        if not isinstance(data, dict) or not data.get("name"):
            raise ConfigurationError("controller registration needs a name")
        resources = []
        for i, res in enumerate(data.get("resources") or []):
            if not isinstance(res, dict) or not res.get("kind") or not res.get("type"):
                raise ConfigurationError(
                    f"controller registration {data['name']!r} resource[{i}] needs kind and type"
                )
            resources.append(
                ControllerResource(
                    kind=res["kind"],
                    type=res["type"],
                    globally_enabled=bool(res.get("globallyEnabled", False)),
                )
            )
        return cls(name=data["name"], resources=resources)


@dataclass
class ControllerInstallation:
    """A registration installed on one seed, with its reported conditions."""

    registration: ControllerRegistration
    seed: str
    installed: bool = False
    healthy: bool = False

    @property
    def operational(self) -> bool:
        return self.installed and self.healthy


def compute_required_extensions(
    shoot: Shoot,
    seed: Seed,
    registrations: Iterable[ControllerRegistration] = (),
) -> set[ExtensionID]:
    """Compute every (kind, type) capability reconciling `shoot` on `seed` needs."""
    required: set[ExtensionID] = set()

    if seed.backup_provider:
        required.add(ExtensionID(KIND_BACKUP_BUCKET, seed.backup_provider))
        required.add(ExtensionID(KIND_BACKUP_ENTRY, seed.backup_provider))

    # The seed's control plane extension may carry webhooks exposing shoot control planes.
    required.add(ExtensionID(KIND_CONTROL_PLANE, seed.provider_type))

    required.add(ExtensionID(KIND_CONTROL_PLANE, shoot.provider_type))
    required.add(ExtensionID(KIND_INFRASTRUCTURE, shoot.provider_type))
    required.add(ExtensionID(KIND_NETWORK, shoot.networking_type))
    required.add(ExtensionID(KIND_WORKER, shoot.provider_type))

    disabled: set[ExtensionID] = set()
    for extension in shoot.extensions:
        extension_id = ExtensionID(KIND_EXTENSION, extension.type)
        if extension.disabled:
            disabled.add(extension_id)
        else:
            required.add(extension_id)

    for pool in shoot.workers:
        if pool.image_name:
            required.add(ExtensionID(KIND_OPERATING_SYSTEM_CONFIG, pool.image_name))
        for runtime in pool.container_runtimes:
            required.add(ExtensionID(KIND_CONTAINER_RUNTIME, runtime))

    if seed.shoot_dns_enabled and not shoot.disable_dns:
        if shoot.dns is not None:
            for provider in shoot.dns.providers:
                if provider.primary and provider.type and provider.type != DNS_UNMANAGED:
                    required.add(ExtensionID(KIND_DNS_RECORD, provider.type))
        for domain in (shoot.internal_domain, shoot.external_domain):
            if domain is not None and domain.provider != DNS_UNMANAGED:
                required.add(ExtensionID(KIND_DNS_RECORD, domain.provider))

    for registration in registrations:
        for resource in registration.resources:
            if resource.kind != KIND_EXTENSION or not resource.globally_enabled:
                continue
            if resource.id not in disabled:
                required.add(resource.id)

    return required


def available_extensions(installations: Iterable[ControllerInstallation], seed: str | None = None) -> set[ExtensionID]:
    """Capabilities of installations that are both installed and healthy."""
    available: set[ExtensionID] = set()
    for installation in installations:
        if seed is not None and installation.seed != seed:
            continue
        if not installation.operational:
            continue
        available.update(resource.id for resource in installation.registration.resources)
    return available


def check_required_extensions(
    required: Iterable[ExtensionID],
    installations: Iterable[ControllerInstallation],
    seed: str | None = None,
) -> None:
    """Raise MissingExtensionsError naming every required pair nobody serves."""
    available = available_extensions(installations, seed)
    missing = sorted(set(required) - available)
    if missing:
        logger.warning("required_extensions_missing", missing=[str(m) for m in missing])
        raise MissingExtensionsError(missing)
    logger.debug("required_extensions_ready")
