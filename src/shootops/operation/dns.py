"""
DNS ownership for a shoot: the internal and external provider/entry/owner
triplets plus the additional providers declared in the shoot spec.

Normal creation order is Owner, Provider, Entry so that the owner claim
exists before a record is advertised; deletion runs the reverse. Triplets
that are no longer needed are torn down Entry, Provider, Owner. Migration
releases the Owner first so the actual DNS record survives the hand-off, and
restoring on the new host uses a relaxed-then-strict bootstrap because the
entry cannot become ready before the owner is claimed there.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from shootops.collaborators import SecretData
from shootops.component.base import DeployWaiter
from shootops.component.dns import (
    EntryValues,
    IncludeExclude,
    OwnerValues,
    ProviderValues,
    dns_state_of,
)
from shootops.component.health import DNS_STATE_ERROR, DNS_STATE_INVALID, DNS_STATE_STALE
from shootops.component.ops import OrderedDeployer, op_destroy, op_destroy_and_wait, op_waiter
from shootops.context import OperationContext
from shootops.core.errors import ConfigurationError
from shootops.flow.tasks import parallel
from shootops.resources.models import KIND_DNS_PROVIDER, LABEL_ROLE
from shootops.shoot.models import DNS_UNMANAGED, Domain, Shoot

if TYPE_CHECKING:
    from shootops.operation.operation import Operation

logger = structlog.get_logger()

DNS_INTERNAL_NAME = "internal"
DNS_EXTERNAL_NAME = "external"
DNS_PROVIDER_ROLE_ADDITIONAL = "managed-dns-provider"
DNS_REALM_ANNOTATION = "dns.shootops.dev/realms"

# Entry states expected while the owner has not been claimed on a new host.
RESTORE_TOLERATED_STATES = frozenset({DNS_STATE_ERROR, DNS_STATE_INVALID, DNS_STATE_STALE})

# Credential keys a provider type cannot work without; other types are not checked.
DNS_PROVIDER_SECRET_KEYS: dict[str, tuple[str, ...]] = {
    "aws-route53": ("accessKeyID", "secretAccessKey"),
    "azure-dns": ("clientID", "clientSecret", "subscriptionID", "tenantID"),
    "google-clouddns": ("serviceaccount.json",),
}


@dataclass
class DNSComponents:
    """The internal and external triplets; each member may be a destroy wrapper."""

    internal_provider: DeployWaiter
    internal_entry: DeployWaiter
    internal_owner: DeployWaiter
    external_provider: DeployWaiter
    external_entry: DeployWaiter
    external_owner: DeployWaiter


def needs_internal_dns(shoot: Shoot) -> bool:
    return (
        not shoot.disable_dns
        and shoot.internal_domain is not None
        and shoot.internal_domain.provider != DNS_UNMANAGED
    )


def needs_external_dns(shoot: Shoot) -> bool:
    domain = shoot.external_cluster_domain
    return (
        not shoot.disable_dns
        and domain is not None
        and not domain.endswith(".nip.io")
        and shoot.external_domain is not None
        and shoot.external_domain.provider != DNS_UNMANAGED
    )


def needs_additional_dns_providers(shoot: Shoot) -> bool:
    return not shoot.disable_dns and shoot.dns is not None and bool(shoot.dns.providers)


def owner_id(shoot: Shoot, purpose: str) -> str:
    return f"{shoot.cluster_identity}-{purpose}"


def generate_dns_provider_name(secret_name: str, provider_type: str) -> str:
    return f"{provider_type}-{secret_name}"


def _realm_annotations(op: Operation) -> dict[str, str]:
    return {DNS_REALM_ANNOTATION: f"{op.namespace},"}


def _dns_options(op: Operation) -> dict[str, float]:
    return {"timeout": op.settings.dns_wait_timeout}


def _triplet(
    op: Operation,
    purpose: str,
    provider_values: ProviderValues | None,
    entry_values: EntryValues | None,
    owner_values: OwnerValues | None,
) -> tuple[DeployWaiter, DeployWaiter, DeployWaiter]:
    """Build provider, entry and owner; without values they are destroy wrappers."""
    factories = op.factories
    options = _dns_options(op)
    if provider_values is None or entry_values is None or owner_values is None:
        return (
            op_destroy(
                factories.dns_provider(
                    op.client, op.namespace, ProviderValues(name=purpose, purpose=purpose), **options
                )
            ),
            op_destroy(
                factories.dns_entry(
                    op.client,
                    op.namespace,
                    EntryValues(name=purpose, ttl=op.settings.dns_entry_ttl_seconds),
                    **options,
                )
            ),
            op_destroy(factories.dns_owner(op.client, op.namespace, OwnerValues(name=purpose), **options)),
        )
    return (
        factories.dns_provider(op.client, op.namespace, provider_values, **options),
        factories.dns_entry(op.client, op.namespace, entry_values, **options),
        factories.dns_owner(op.client, op.namespace, owner_values, **options),
    )


def _targets(shoot: Shoot) -> list[str]:
    return [shoot.api_server_address] if shoot.api_server_address else []


def build_dns_components(op: Operation) -> DNSComponents:
    shoot = op.shoot
    ttl = op.settings.dns_entry_ttl_seconds

    internal: tuple[ProviderValues | None, EntryValues | None, OwnerValues | None] = (None, None, None)
    if needs_internal_dns(shoot):
        domain = shoot.internal_domain
        assert domain is not None and shoot.internal_cluster_domain is not None
        internal = (
            ProviderValues(
                name=DNS_INTERNAL_NAME,
                purpose=DNS_INTERNAL_NAME,
                provider=domain.provider,
                secret=_domain_secret(op, domain, "internal domain"),
                domains=IncludeExclude(include=[shoot.internal_cluster_domain]),
                zones=IncludeExclude(include=domain.include_zones, exclude=domain.exclude_zones),
            ),
            EntryValues(
                name=DNS_INTERNAL_NAME,
                dns_name=shoot.internal_cluster_domain,
                targets=_targets(shoot),
                owner_id=owner_id(shoot, DNS_INTERNAL_NAME),
                ttl=ttl,
            ),
            OwnerValues(name=DNS_INTERNAL_NAME, owner_id=owner_id(shoot, DNS_INTERNAL_NAME), active=True),
        )

    external: tuple[ProviderValues | None, EntryValues | None, OwnerValues | None] = (None, None, None)
    if needs_external_dns(shoot):
        domain = shoot.external_domain
        cluster_domain = shoot.external_cluster_domain
        assert domain is not None and cluster_domain is not None
        external = (
            ProviderValues(
                name=DNS_EXTERNAL_NAME,
                purpose=DNS_EXTERNAL_NAME,
                provider=domain.provider,
                secret=_domain_secret(op, domain, "external domain"),
                domains=IncludeExclude(
                    include=sorted(set(domain.include_domains) | {cluster_domain}),
                    exclude=domain.exclude_domains,
                ),
                zones=IncludeExclude(include=domain.include_zones, exclude=domain.exclude_zones),
                annotations=_realm_annotations(op),
            ),
            EntryValues(
                name=DNS_EXTERNAL_NAME,
                dns_name=cluster_domain,
                targets=_targets(shoot),
                owner_id=owner_id(shoot, DNS_EXTERNAL_NAME),
                ttl=ttl,
            ),
            OwnerValues(name=DNS_EXTERNAL_NAME, owner_id=owner_id(shoot, DNS_EXTERNAL_NAME), active=True),
        )

    internal_provider, internal_entry, internal_owner = _triplet(op, DNS_INTERNAL_NAME, *internal)
    external_provider, external_entry, external_owner = _triplet(op, DNS_EXTERNAL_NAME, *external)
    return DNSComponents(
        internal_provider=internal_provider,
        internal_entry=internal_entry,
        internal_owner=internal_owner,
        external_provider=external_provider,
        external_entry=external_entry,
        external_owner=external_owner,
    )


def _domain_secret(op: Operation, domain: Domain, where: str) -> SecretData:
    if not domain.secret_name:
        raise ConfigurationError(f"{where} does not reference a secret", details={"domain": where})
    return provider_secret(op, domain.secret_name, domain.provider, where)


def provider_secret(op: Operation, secret_name: str, provider_type: str, where: str) -> SecretData:
    """Fetch a provider's credentials and check the keys its type needs."""
    secret = op.secrets.get(secret_name)
    for key in DNS_PROVIDER_SECRET_KEYS.get(provider_type, ()):
        try:
            secret.require(key)
        except ConfigurationError as exc:
            raise ConfigurationError(
                f"{where}: secret {secret_name!r} for {provider_type} lacks key {key!r}",
                details={"secret": secret_name, "key": key},
            ) from exc
    return secret


class DNSRestoreDeployer:
    """
    Bootstraps a DNS triplet from scratch on the host a shoot was migrated to.

    1. deploy the provider and wait strictly,
    2. deploy the entry and wait, tolerating Error/Invalid/Stale,
    3. deploy the owner (claiming the owner id) and wait strictly,
    4. wait for the entry again, now strictly.
    """

    def __init__(self, provider: DeployWaiter | None, entry: DeployWaiter, owner: DeployWaiter) -> None:
        self.provider = provider
        self.entry = entry
        self.owner = owner

    async def deploy(self, ctx: OperationContext) -> None:
        if self.provider is not None:
            await self.provider.deploy(ctx)
            await self.provider.wait(ctx)

        await self.entry.deploy(ctx)
        try:
            await self.entry.wait(ctx)
        except Exception as exc:
            state = dns_state_of(exc)
            if state not in RESTORE_TOLERATED_STATES:
                raise
            logger.info("dns_entry_state_tolerated", state=state)

        await self.owner.deploy(ctx)
        await self.owner.wait(ctx)

        await self.entry.wait(ctx)

    async def destroy(self, ctx: OperationContext) -> None:
        return None

    async def wait(self, ctx: OperationContext) -> None:
        return None

    async def wait_cleanup(self, ctx: OperationContext) -> None:
        return None


async def deploy_internal_dns(op: Operation, ctx: OperationContext, *, restoring: bool = False) -> None:
    dns = op.dns
    if needs_internal_dns(op.shoot):
        if restoring:
            await DNSRestoreDeployer(dns.internal_provider, dns.internal_entry, dns.internal_owner).deploy(ctx)
            return
        await OrderedDeployer(dns.internal_owner, dns.internal_provider, dns.internal_entry).deploy(ctx)
        return
    await OrderedDeployer(dns.internal_entry, dns.internal_provider, dns.internal_owner).deploy(ctx)


async def deploy_external_dns(op: Operation, ctx: OperationContext, *, restoring: bool = False) -> None:
    dns = op.dns
    if needs_external_dns(op.shoot):
        if restoring:
            await DNSRestoreDeployer(dns.external_provider, dns.external_entry, dns.external_owner).deploy(ctx)
            return
        await OrderedDeployer(dns.external_owner, dns.external_provider, dns.external_entry).deploy(ctx)
        return
    await OrderedDeployer(dns.external_entry, dns.external_provider, dns.external_owner).deploy(ctx)


async def destroy_internal_dns(op: Operation, ctx: OperationContext) -> None:
    """Tear down Entry, Provider, Owner, each waited for before the next."""
    dns = op.dns
    await OrderedDeployer(dns.internal_owner, dns.internal_provider, dns.internal_entry).destroy(ctx)


async def destroy_external_dns(op: Operation, ctx: OperationContext) -> None:
    dns = op.dns
    await OrderedDeployer(dns.external_owner, dns.external_provider, dns.external_entry).destroy(ctx)


async def migrate_internal_dns(op: Operation, ctx: OperationContext) -> None:
    """Remove the internal triplet handles without removing the record from the provider."""
    dns = op.dns
    await op_destroy_and_wait(dns.internal_owner, dns.internal_provider, dns.internal_entry).deploy(ctx)


async def migrate_external_dns(op: Operation, ctx: OperationContext, *, keep_provider: bool) -> None:
    dns = op.dns
    if keep_provider:
        # Owner before entry so that the actual DNS record is preserved.
        await op_destroy_and_wait(dns.external_owner, dns.external_entry).deploy(ctx)
        await op_waiter(dns.external_provider).deploy(ctx)
        return
    await op_destroy_and_wait(dns.external_owner, dns.external_provider, dns.external_entry).deploy(ctx)


async def additional_dns_providers(op: Operation) -> dict[str, DeployWaiter]:
    """
    Providers declared in the shoot spec besides the primary one, keyed by name.

    Providers labelled as additional that are no longer declared are returned
    as destroy wrappers.
    """
    shoot = op.shoot
    options = _dns_options(op)
    labels = {LABEL_ROLE: DNS_PROVIDER_ROLE_ADDITIONAL}
    providers: dict[str, DeployWaiter] = {}

    if needs_additional_dns_providers(shoot):
        assert shoot.dns is not None
        for i, spec in enumerate(shoot.dns.providers):
            if spec.primary:
                continue
            if not spec.type:
                raise ConfigurationError(f"dns provider[{i}] doesn't specify a type", details={"index": i})
            if spec.type == DNS_UNMANAGED:
                op.log.info("dns_provider_skipped", index=i, type=DNS_UNMANAGED)
                continue
            if not spec.secret_name:
                raise ConfigurationError(f"dns provider[{i}] doesn't specify a secretName", details={"index": i})

            secret = provider_secret(op, spec.secret_name, spec.type, f"dns provider[{i}]")
            name = generate_dns_provider_name(spec.secret_name, spec.type)
            providers[name] = op.factories.dns_provider(
                op.client,
                op.namespace,
                ProviderValues(
                    name=name,
                    purpose=name,
                    provider=spec.type,
                    secret=secret,
                    domains=IncludeExclude(include=spec.domains.include, exclude=spec.domains.exclude),
                    zones=IncludeExclude(include=spec.zones.include, exclude=spec.zones.exclude),
                    labels=dict(labels),
                    annotations=_realm_annotations(op),
                ),
                **options,
            )

    for existing in await op.client.list(KIND_DNS_PROVIDER, op.namespace, labels=labels):
        if existing.name in providers:
            continue
        providers[existing.name] = op_destroy(
            op.factories.dns_provider(
                op.client,
                op.namespace,
                ProviderValues(name=existing.name, purpose=existing.name, labels=dict(labels)),
                **options,
            )
        )
    return providers


async def deploy_additional_dns_providers(op: Operation, ctx: OperationContext) -> None:
    providers = await additional_dns_providers(op)
    await parallel(*(op_waiter(provider).deploy for provider in providers.values()))(ctx)


async def destroy_additional_dns_providers(op: Operation, ctx: OperationContext) -> None:
    """Destroy every provider labelled as additional, concurrently."""
    labels = {LABEL_ROLE: DNS_PROVIDER_ROLE_ADDITIONAL}
    existing = await op.client.list(KIND_DNS_PROVIDER, op.namespace, labels=labels)
    components = [
        op.factories.dns_provider(
            op.client,
            op.namespace,
            ProviderValues(name=obj.name, purpose=obj.name, labels=dict(labels)),
            **_dns_options(op),
        )
        for obj in existing
    ]
    await parallel(*(op_waiter(component).destroy for component in components))(ctx)
