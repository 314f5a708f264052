"""
DNS provider, entry and owner components.

The three cooperate to publish one DNS name: the provider holds credentials
and the domains/zones it may manage, the entry is the record itself, and the
owner is the single-writer token (``active`` plus an owner id unique per
management host) that decides which host may write records of that owner id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shootops.collaborators import SecretData
from shootops.component.health import DNSStateError, check_dns_object
from shootops.component.resource import ResourceComponent
from shootops.context import OperationContext
from shootops.resources.client import ResourceClient, delete_ignore_not_found
from shootops.resources.models import (
    ANNOTATION_CHECKSUM_SECRET,
    KIND_DNS_ENTRY,
    KIND_DNS_OWNER,
    KIND_DNS_PROVIDER,
    KIND_SECRET,
    ManagedResource,
)

__all__ = [
    "DNSEntry",
    "DNSOwner",
    "DNSProvider",
    "DNSStateError",
    "EntryValues",
    "IncludeExclude",
    "OwnerValues",
    "ProviderValues",
    "dns_state_of",
]

SECRET_PREFIX = "extensions-dns-"


@dataclass
class IncludeExclude:
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        data: dict[str, list[str]] = {}
        if self.include:
            data["include"] = list(self.include)
        if self.exclude:
            data["exclude"] = list(self.exclude)
        return data


@dataclass
class ProviderValues:
    name: str
    purpose: str
    provider: str = ""
    secret: SecretData | None = None
    domains: IncludeExclude | None = None
    zones: IncludeExclude | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class EntryValues:
    name: str
    dns_name: str = ""
    targets: list[str] = field(default_factory=list)
    owner_id: str = ""
    ttl: int = 120


@dataclass
class OwnerValues:
    name: str
    owner_id: str = ""
    active: bool = True


def dns_state_of(err: BaseException | None) -> str | None:
    """Find the DNS state carried somewhere in an error's chain."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        if isinstance(err, DNSStateError):
            return err.state
        last_error = getattr(err, "last_error", None)
        if isinstance(last_error, BaseException):
            state = dns_state_of(last_error)
            if state is not None:
                return state
        err = err.__cause__
    return None


class _DNSComponent(ResourceComponent):
    def health_check(self, obj: ManagedResource) -> None:
        check_dns_object(obj)


class DNSProvider(_DNSComponent):
    """Credentials secret plus the provider object referencing it."""

    kind = KIND_DNS_PROVIDER

    def __init__(
        self,
        client: ResourceClient,
        namespace: str,
        values: ProviderValues,
        *,
        interval: float | None = None,
        timeout: float | None = None,
    ) -> None:
        self.values = values
        super().__init__(client, namespace, values.name, interval=interval, timeout=timeout)

    @property
    def secret_name(self) -> str:
        return f"{SECRET_PREFIX}{self.values.name}"

    def desired(self) -> ManagedResource:
        values = self.values
        spec: dict[str, Any] = {
            "type": values.provider,
            "purpose": values.purpose,
            "secretRef": {"name": self.secret_name},
        }
        if values.domains is not None:
            spec["domains"] = values.domains.to_dict()
        if values.zones is not None:
            spec["zones"] = values.zones.to_dict()
        annotations = dict(values.annotations)
        if values.secret is not None:
            annotations[ANNOTATION_CHECKSUM_SECRET] = values.secret.checksum
        return ManagedResource(
            kind=self.kind,
            namespace=self.namespace,
            name=self.name,
            spec=spec,
            labels=dict(values.labels),
            annotations=annotations,
        )

    async def deploy(self, ctx: OperationContext) -> None:
        secret = self.values.secret
        if secret is not None:
            await self.client.apply(
                ManagedResource(
                    kind=KIND_SECRET,
                    namespace=self.namespace,
                    name=self.secret_name,
                    spec={"data": dict(secret.data)},
                    labels=dict(self.values.labels),
                )
            )
        await super().deploy(ctx)

    async def destroy(self, ctx: OperationContext) -> None:
        await super().destroy(ctx)
        await delete_ignore_not_found(self.client, KIND_SECRET, self.namespace, self.secret_name)


class DNSEntry(_DNSComponent):
    kind = KIND_DNS_ENTRY

    def __init__(
        self,
        client: ResourceClient,
        namespace: str,
        values: EntryValues,
        *,
        interval: float | None = None,
        timeout: float | None = None,
    ) -> None:
        self.values = values
        super().__init__(client, namespace, values.name, interval=interval, timeout=timeout)

    def desired(self) -> ManagedResource:
        values = self.values
        spec: dict[str, Any] = {
            "dnsName": values.dns_name,
            "targets": list(values.targets),
            "ttl": values.ttl,
        }
        if values.owner_id:
            spec["ownerId"] = values.owner_id
        return ManagedResource(kind=self.kind, namespace=self.namespace, name=self.name, spec=spec)


class DNSOwner(_DNSComponent):
    """Owner claim; deploying it with ``active=True`` takes authority over the owner id."""

    kind = KIND_DNS_OWNER

    def __init__(
        self,
        client: ResourceClient,
        namespace: str,
        values: OwnerValues,
        *,
        interval: float | None = None,
        timeout: float | None = None,
    ) -> None:
        self.values = values
        super().__init__(client, namespace, values.name, interval=interval, timeout=timeout)

    def desired(self) -> ManagedResource:
        return ManagedResource(
            kind=self.kind,
            namespace=self.namespace,
            name=self.name,
            spec={"ownerId": self.values.owner_id, "active": self.values.active},
        )
