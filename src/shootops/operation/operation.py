"""
The per-run coordinator for one shoot.

All components are built once when the operation is constructed, from
factories the caller may replace (tests inject recording stubs this way).
Configuration problems such as missing secrets surface here, before
anything is written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from shootops.collaborators import SecretStore
from shootops.component.dns import DNSEntry, DNSOwner, DNSProvider
from shootops.component.extension import ExtensionResource
from shootops.config.settings import Settings, get_settings
from shootops.context import OperationContext
from shootops.core.errorcodes import DEFAULT_CLASSIFIER, ErrorClassifier
from shootops.logging import bind_context
from shootops.operation.dns import build_dns_components
from shootops.operation.flows import delete_shoot, migrate_shoot, reconcile_shoot, restore_shoot
from shootops.resources.client import ResourceClient
from shootops.resources.models import (
    KIND_BACKUP_ENTRY,
    KIND_CONTAINER_RUNTIME,
    KIND_CONTROL_PLANE,
    KIND_EXTENSION,
    KIND_INFRASTRUCTURE,
    KIND_NETWORK,
    KIND_OPERATING_SYSTEM_CONFIG,
    KIND_WORKER,
)
from shootops.resources.state import ShootState, ShootStateStore
from shootops.shoot.extensions import ControllerInstallation, ControllerRegistration
from shootops.shoot.models import Seed, Shoot


@dataclass
class ComponentFactories:
    """Constructors of the components an operation drives."""

    extension: Callable[..., Any] = ExtensionResource
    dns_provider: Callable[..., Any] = DNSProvider
    dns_entry: Callable[..., Any] = DNSEntry
    dns_owner: Callable[..., Any] = DNSOwner


@dataclass
class ExtensionComponents:
    infrastructure: ExtensionResource
    network: ExtensionResource
    control_plane: ExtensionResource
    worker: ExtensionResource
    operating_system_configs: list[ExtensionResource] = field(default_factory=list)
    container_runtimes: list[ExtensionResource] = field(default_factory=list)
    extensions: list[ExtensionResource] = field(default_factory=list)
    backup_entry: ExtensionResource | None = None

    def all(self) -> list[ExtensionResource]:
        components = [self.infrastructure, self.network, self.control_plane, self.worker]
        components.extend(self.operating_system_configs)
        components.extend(self.container_runtimes)
        components.extend(self.extensions)
        if self.backup_entry is not None:
            components.append(self.backup_entry)
        return components


class Operation:
    """Everything one reconcile/delete/migrate/restore pass of a shoot needs."""

    def __init__(
        self,
        shoot: Shoot,
        seed: Seed,
        client: ResourceClient,
        *,
        secrets: SecretStore,
        settings: Settings | None = None,
        factories: ComponentFactories | None = None,
        classifiers: Mapping[str, ErrorClassifier] | None = None,
        registrations: Sequence[ControllerRegistration] = (),
        installations: Sequence[ControllerInstallation] | None = None,
        state_store: ShootStateStore | None = None,
        keep_dns_provider: bool | None = None,
    ) -> None:
        self.shoot = shoot
        self.seed = seed
        self.client = client
        self.secrets = secrets
        self.settings = settings or get_settings()
        self.factories = factories or ComponentFactories()
        self.classifiers = dict(classifiers or {})
        self.registrations = list(registrations)
        self.installations = list(installations) if installations is not None else None
        self.namespace = shoot.seed_namespace
        self.state_store = state_store or ShootStateStore(client, self.namespace)
        self.keep_dns_provider = (
            self.settings.dns_keep_provider_on_migration if keep_dns_provider is None else keep_dns_provider
        )
        self.log = bind_context(shoot=shoot.name, namespace=self.namespace)

        self.extensions = self._build_extensions()
        self.dns = build_dns_components(self)

    def operation_context(self) -> OperationContext:
        return self.settings.operation_context()

    def classifier_for(self, kind: str) -> ErrorClassifier:
        return self.classifiers.get(kind, DEFAULT_CLASSIFIER)

    def _extension(self, kind: str, name: str, type_: str, **kwargs: Any) -> ExtensionResource:
        return self.factories.extension(
            self.client,
            kind,
            self.namespace,
            name,
            type_,
            classifier=self.classifier_for(kind),
            **kwargs,
        )

    def _build_extensions(self) -> ExtensionComponents:
        shoot = self.shoot
        pools = [
            {
                "name": pool.name,
                "machineType": pool.machine_type,
                "image": {"name": pool.image_name, "version": pool.image_version},
                "minimum": pool.minimum,
                "maximum": pool.maximum,
            }
            for pool in shoot.workers
        ]
        components = ExtensionComponents(
            infrastructure=self._extension(
                KIND_INFRASTRUCTURE, shoot.name, shoot.provider_type, values={"region": shoot.region}
            ),
            network=self._extension(KIND_NETWORK, shoot.name, shoot.networking_type),
            control_plane=self._extension(
                KIND_CONTROL_PLANE,
                shoot.name,
                shoot.provider_type,
                purpose="normal",
                values={"region": shoot.region},
            ),
            worker=self._extension(
                KIND_WORKER, shoot.name, shoot.provider_type, values={"region": shoot.region, "pools": pools}
            ),
        )
        for pool in shoot.workers:
            if pool.image_name:
                components.operating_system_configs.append(
                    self._extension(
                        KIND_OPERATING_SYSTEM_CONFIG,
                        f"osc-{pool.name}",
                        pool.image_name,
                        purpose="provision",
                        values={"pool": pool.name},
                    )
                )
            for runtime in pool.container_runtimes:
                components.container_runtimes.append(
                    self._extension(
                        KIND_CONTAINER_RUNTIME,
                        f"{runtime}-{pool.name}",
                        runtime,
                        values={"workerPool": pool.name},
                    )
                )
        for extension in shoot.extensions:
            if extension.disabled:
                continue
            components.extensions.append(
                self._extension(
                    KIND_EXTENSION,
                    extension.type,
                    extension.type,
                    values={"providerConfig": extension.provider_config} if extension.provider_config else None,
                )
            )
        if self.seed.backup_provider:
            components.backup_entry = self._extension(
                KIND_BACKUP_ENTRY,
                f"{self.namespace}--{shoot.cluster_identity}",
                self.seed.backup_provider,
            )
        return components

    async def reconcile(self, ctx: OperationContext, snapshot: ShootState | None = None) -> None:
        await reconcile_shoot(self, ctx, snapshot)

    async def delete(self, ctx: OperationContext) -> None:
        await delete_shoot(self, ctx)

    async def migrate(self, ctx: OperationContext) -> ShootState:
        return await migrate_shoot(self, ctx)

    async def restore(self, ctx: OperationContext) -> None:
        await restore_shoot(self, ctx)
