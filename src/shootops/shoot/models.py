"""Shoot and seed descriptions the orchestrator works from."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shootops.core.errors import ConfigurationError, ValidationError

DNS_UNMANAGED = "unmanaged"


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    value = data.get(key)
    if value in (None, ""):
        raise ConfigurationError(f"{where} is missing required field {key!r}", details={"field": key})
    return value


def _mapping(data: Any, where: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{where} must be a mapping, got {type(data).__name__}")
    return data


@dataclass
class IncludeExcludeSpec:
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any, where: str) -> IncludeExcludeSpec:
        data = _mapping(data, where)
        return cls(include=list(data.get("include") or []), exclude=list(data.get("exclude") or []))


@dataclass
class Domain:
    """A DNS domain plus the provider and credentials able to manage it."""

    domain: str
    provider: str
    secret_name: str | None = None
    include_domains: list[str] = field(default_factory=list)
    exclude_domains: list[str] = field(default_factory=list)
    include_zones: list[str] = field(default_factory=list)
    exclude_zones: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any, where: str = "domain") -> Domain:
        data = _mapping(data, where)
        domains = IncludeExcludeSpec.from_dict(data.get("domains"), f"{where}.domains")
        zones = IncludeExcludeSpec.from_dict(data.get("zones"), f"{where}.zones")
        return cls(
            domain=_require(data, "domain", where),
            provider=_require(data, "provider", where),
            secret_name=data.get("secretName"),
            include_domains=domains.include,
            exclude_domains=domains.exclude,
            include_zones=zones.include,
            exclude_zones=zones.exclude,
        )


@dataclass
class DNSProviderSpec:
    """A DNS provider declared in the shoot spec; only primary ones back the external domain."""

    type: str | None = None
    secret_name: str | None = None
    primary: bool = False
    domains: IncludeExcludeSpec = field(default_factory=IncludeExcludeSpec)
    zones: IncludeExcludeSpec = field(default_factory=IncludeExcludeSpec)

    @classmethod
    def from_dict(cls, data: Any, where: str) -> DNSProviderSpec:
        data = _mapping(data, where)
        return cls(
            type=data.get("type"),
            secret_name=data.get("secretName"),
            primary=bool(data.get("primary", False)),
            domains=IncludeExcludeSpec.from_dict(data.get("domains"), f"{where}.domains"),
            zones=IncludeExcludeSpec.from_dict(data.get("zones"), f"{where}.zones"),
        )


@dataclass
class ShootDNS:
    domain: str | None = None
    providers: list[DNSProviderSpec] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> ShootDNS:
        data = _mapping(data, "dns")
        return cls(
            domain=data.get("domain"),
            providers=[
                DNSProviderSpec.from_dict(p, f"dns.providers[{i}]")
                for i, p in enumerate(data.get("providers") or [])
            ],
        )


@dataclass
class WorkerPool:
    name: str
    machine_type: str = ""
    image_name: str | None = None
    image_version: str | None = None
    container_runtimes: list[str] = field(default_factory=list)
    minimum: int = 1
    maximum: int = 1

    @classmethod
    def from_dict(cls, data: Any, where: str) -> WorkerPool:
        data = _mapping(data, where)
        machine = _mapping(data.get("machine"), f"{where}.machine")
        image = _mapping(machine.get("image"), f"{where}.machine.image")
        cri = _mapping(data.get("cri"), f"{where}.cri")
        return cls(
            name=_require(data, "name", where),
            machine_type=machine.get("type", ""),
            image_name=image.get("name"),
            image_version=image.get("version"),
            container_runtimes=[
                _require(_mapping(cr, f"{where}.cri.containerRuntimes"), "type", f"{where}.cri.containerRuntimes")
                for cr in cri.get("containerRuntimes") or []
            ],
            minimum=int(data.get("minimum", 1)),
            maximum=int(data.get("maximum", 1)),
        )


@dataclass
class ExtensionSpec:
    type: str
    disabled: bool = False
    provider_config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, where: str) -> ExtensionSpec:
        data = _mapping(data, where)
        return cls(
            type=_require(data, "type", where),
            disabled=bool(data.get("disabled", False)),
            provider_config=dict(data.get("providerConfig") or {}),
        )


@dataclass
class Shoot:
    """
    The cluster being reconciled.

    ``seed_namespace`` is where the shoot's managed resources live on the
    management host; ``cluster_identity`` is persistent across migrations and
    seeds the DNS owner ids.
    """

    name: str
    project: str
    seed_namespace: str
    cluster_identity: str
    provider_type: str
    networking_type: str
    region: str = ""
    workers: list[WorkerPool] = field(default_factory=list)
    extensions: list[ExtensionSpec] = field(default_factory=list)
    dns: ShootDNS | None = None
    external_domain: Domain | None = None
    internal_domain: Domain | None = None
    api_server_address: str = ""
    disable_dns: bool = False

    @property
    def external_cluster_domain(self) -> str | None:
        if self.dns is None or not self.dns.domain:
            return None
        return f"api.{self.dns.domain}"

    @property
    def internal_cluster_domain(self) -> str | None:
        if self.internal_domain is None:
            return None
        return f"api.{self.name}.{self.project}.{self.internal_domain.domain}"

    @classmethod
    def from_dict(cls, data: Any) -> Shoot:
        data = _mapping(data, "shoot")
        provider = _mapping(data.get("provider"), "shoot.provider")
        networking = _mapping(data.get("networking"), "shoot.networking")
        name = _require(data, "name", "shoot")
        project = data.get("project") or data.get("namespace") or "garden"
        external = data.get("externalDomain")
        internal = data.get("internalDomain")
        shoot = cls(
            name=name,
            project=project,
            seed_namespace=data.get("seedNamespace") or f"shoot--{project}--{name}",
            cluster_identity=_require(data, "clusterIdentity", "shoot"),
            provider_type=_require(provider, "type", "shoot.provider"),
            networking_type=_require(networking, "type", "shoot.networking"),
            region=data.get("region", ""),
            workers=[
                WorkerPool.from_dict(w, f"shoot.provider.workers[{i}]")
                for i, w in enumerate(provider.get("workers") or [])
            ],
            extensions=[
                ExtensionSpec.from_dict(e, f"shoot.extensions[{i}]")
                for i, e in enumerate(data.get("extensions") or [])
            ],
            dns=ShootDNS.from_dict(data["dns"]) if data.get("dns") is not None else None,
            external_domain=Domain.from_dict(external, "shoot.externalDomain") if external else None,
            internal_domain=Domain.from_dict(internal, "shoot.internalDomain") if internal else None,
            api_server_address=data.get("apiServerAddress", ""),
            disable_dns=bool(data.get("disableDNS", False)),
        )
        shoot.validate()
        return shoot

    def validate(self) -> None:
        """Reject descriptions that are well-formed but contradict themselves."""
        problems: list[str] = []
        seen: set[str] = set()
        for pool in self.workers:
            if pool.name in seen:
                problems.append(f"duplicate worker pool {pool.name!r}")
            seen.add(pool.name)
            if pool.minimum > pool.maximum:
                problems.append(f"worker pool {pool.name!r} has minimum {pool.minimum} > maximum {pool.maximum}")
        if self.dns is not None and sum(p.primary for p in self.dns.providers) > 1:
            problems.append("more than one primary dns provider")
        if problems:
            raise ValidationError(
                f"shoot {self.name!r} is invalid: " + "; ".join(problems),
                details={"problems": len(problems)},
            )


@dataclass
class Seed:
    """The management host the shoot's control plane runs on."""

    name: str
    provider_type: str
    backup_provider: str | None = None
    shoot_dns_enabled: bool = True

    @classmethod
    def from_dict(cls, data: Any) -> Seed:
        data = _mapping(data, "seed")
        provider = _mapping(data.get("provider"), "seed.provider")
        backup = _mapping(data.get("backup"), "seed.backup")
        settings = _mapping(data.get("settings"), "seed.settings")
        shoot_dns = _mapping(settings.get("shootDNS"), "seed.settings.shootDNS")
        return cls(
            name=_require(data, "name", "seed"),
            provider_type=_require(provider, "type", "seed.provider"),
            backup_provider=backup.get("provider"),
            shoot_dns_enabled=bool(shoot_dns.get("enabled", True)),
        )
