"""
Reconcile, delete, migrate and restore flows of a shoot.

Each flow is a task graph; independent tasks run concurrently, and a failed
task skips everything that depends on it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from shootops.component.extension import ExtensionResource
from shootops.context import OperationContext
from shootops.core.errors import ConfigurationError
from shootops.flow.graph import Graph, Task
from shootops.flow.tasks import TaskFn, parallel
from shootops.operation import dns
from shootops.resources.models import MIGRATABLE_KINDS
from shootops.resources.state import ShootState, capture_shoot_state
from shootops.shoot.extensions import check_required_extensions, compute_required_extensions

if TYPE_CHECKING:
    from shootops.operation.operation import Operation


def _deploy_and_wait(component: ExtensionResource, snapshot: ShootState | None) -> TaskFn:
    async def run(ctx: OperationContext) -> None:
        if snapshot is not None:
            await component.restore(ctx, snapshot)
        else:
            await component.deploy(ctx)
        await component.wait(ctx)

    return run


def _deploy_all(components: Iterable[ExtensionResource], snapshot: ShootState | None) -> TaskFn:
    return parallel(*(_deploy_and_wait(c, snapshot) for c in components))


def _destroy_and_wait(component: ExtensionResource) -> TaskFn:
    async def run(ctx: OperationContext) -> None:
        await component.destroy(ctx)
        await component.wait_cleanup(ctx)

    return run


def _destroy_all(components: Iterable[ExtensionResource]) -> TaskFn:
    return parallel(*(_destroy_and_wait(c) for c in components))


def _bind(fn, op: Operation, **kwargs) -> TaskFn:
    async def run(ctx: OperationContext) -> None:
        await fn(op, ctx, **kwargs)

    return run


def check_readiness(op: Operation) -> None:
    """Run the required-extension gate; skipped when no installations are known."""
    if op.installations is None:
        op.log.warning("readiness_gate_skipped", reason="no controller installations given")
        return
    required = compute_required_extensions(op.shoot, op.seed, op.registrations)
    check_required_extensions(required, op.installations, op.seed.name)


def reconcile_graph(op: Operation, snapshot: ShootState | None = None) -> Graph:
    ext = op.extensions
    restoring = snapshot is not None
    graph = Graph("reconcile", log=op.log)

    infrastructure = graph.add(Task("deploy_infrastructure", _deploy_and_wait(ext.infrastructure, snapshot)))
    graph.add(
        Task(
            "deploy_backup_entry",
            _deploy_and_wait(ext.backup_entry, snapshot) if ext.backup_entry else parallel(),
            skip=ext.backup_entry is None,
        )
    )
    internal_dns = graph.add(Task("deploy_internal_dns", _bind(dns.deploy_internal_dns, op, restoring=restoring)))
    external_dns = graph.add(
        Task(
            "deploy_external_dns",
            _bind(dns.deploy_external_dns, op, restoring=restoring),
            dependencies=(internal_dns,),
        )
    )
    graph.add(
        Task(
            "deploy_additional_dns_providers",
            _bind(dns.deploy_additional_dns_providers, op),
            dependencies=(external_dns,),
        )
    )
    control_plane = graph.add(
        Task(
            "deploy_control_plane",
            _deploy_and_wait(ext.control_plane, snapshot),
            dependencies=(infrastructure,),
        )
    )
    network = graph.add(Task("deploy_network", _deploy_and_wait(ext.network, snapshot)))
    osc = graph.add(
        Task(
            "deploy_operating_system_configs",
            _deploy_all(ext.operating_system_configs, snapshot),
            skip=not ext.operating_system_configs,
        )
    )
    worker = graph.add(
        Task(
            "deploy_worker",
            _deploy_and_wait(ext.worker, snapshot),
            dependencies=(control_plane, network, osc),
        )
    )
    graph.add(
        Task(
            "deploy_container_runtimes",
            _deploy_all(ext.container_runtimes, snapshot),
            dependencies=(worker,),
            skip=not ext.container_runtimes,
        )
    )
    graph.add(
        Task("deploy_extensions", _deploy_all(ext.extensions, snapshot), skip=not ext.extensions)
    )
    return graph


def delete_graph(op: Operation) -> Graph:
    ext = op.extensions
    graph = Graph("delete", log=op.log)

    worker = graph.add(Task("destroy_worker", _destroy_and_wait(ext.worker)))
    runtimes = graph.add(
        Task("destroy_container_runtimes", _destroy_all(ext.container_runtimes), skip=not ext.container_runtimes)
    )
    extensions = graph.add(Task("destroy_extensions", _destroy_all(ext.extensions), skip=not ext.extensions))
    osc = graph.add(
        Task(
            "destroy_operating_system_configs",
            _destroy_all(ext.operating_system_configs),
            dependencies=(worker,),
            skip=not ext.operating_system_configs,
        )
    )
    control_plane = graph.add(
        Task("destroy_control_plane", _destroy_and_wait(ext.control_plane), dependencies=(worker,))
    )
    network = graph.add(Task("destroy_network", _destroy_and_wait(ext.network), dependencies=(worker,)))
    infrastructure = graph.add(
        Task(
            "destroy_infrastructure",
            _destroy_and_wait(ext.infrastructure),
            dependencies=(worker, control_plane, network),
        )
    )
    external_dns = graph.add(Task("destroy_external_dns", _bind(dns.destroy_external_dns, op)))
    internal_dns = graph.add(
        Task(
            "destroy_internal_dns",
            _bind(dns.destroy_internal_dns, op),
            dependencies=(external_dns,),
        )
    )
    additional_dns = graph.add(
        Task("destroy_additional_dns_providers", _bind(dns.destroy_additional_dns_providers, op))
    )
    graph.add(
        Task(
            "destroy_backup_entry",
            _destroy_and_wait(ext.backup_entry) if ext.backup_entry else parallel(),
            dependencies=(
                worker,
                runtimes,
                extensions,
                osc,
                infrastructure,
                internal_dns,
                additional_dns,
            ),
            skip=ext.backup_entry is None,
        )
    )
    return graph


async def reconcile_shoot(op: Operation, ctx: OperationContext, snapshot: ShootState | None = None) -> None:
    check_readiness(op)
    op.log.info("shoot_reconcile_started", restoring=snapshot is not None)
    await reconcile_graph(op, snapshot).run(ctx)
    op.log.info("shoot_reconciled")


async def delete_shoot(op: Operation, ctx: OperationContext) -> None:
    op.log.info("shoot_delete_started")
    await delete_graph(op).run(ctx)
    op.log.info("shoot_deleted")


async def migrate_shoot(op: Operation, ctx: OperationContext) -> ShootState:
    """
    Hand the shoot over to another seed.

    Extension resources are told to detach, their state is captured into a
    persisted ShootState, then the handles are removed (the physical resources
    survive) and the DNS triplets are migrated.
    """
    components = op.extensions.all()
    persisted: list[ShootState] = []

    async def persist_state(ctx: OperationContext) -> None:
        state = await capture_shoot_state(op.client, op.shoot.name, op.namespace, MIGRATABLE_KINDS)
        persisted.append(await op.state_store.persist(state))

    graph = Graph("migrate", log=op.log)
    migrate = graph.add(Task("migrate_extensions", parallel(*(c.migrate for c in components))))
    migrated = graph.add(
        Task(
            "wait_extensions_migrated",
            parallel(*(c.wait_migrate for c in components)),
            dependencies=(migrate,),
        )
    )
    persist = graph.add(Task("persist_shoot_state", persist_state, dependencies=(migrated,)))
    destroyed = graph.add(
        Task("destroy_extension_handles", _destroy_all(components), dependencies=(persist,))
    )
    graph.add(
        Task("migrate_internal_dns", _bind(dns.migrate_internal_dns, op), dependencies=(destroyed,))
    )
    graph.add(
        Task(
            "migrate_external_dns",
            _bind(dns.migrate_external_dns, op, keep_provider=op.keep_dns_provider),
            dependencies=(destroyed,),
        )
    )

    op.log.info("shoot_migrate_started", keep_dns_provider=op.keep_dns_provider)
    await graph.run(ctx)
    op.log.info("shoot_migrated", shoot_state_version=persisted[0].version)
    return persisted[0]


async def restore_shoot(op: Operation, ctx: OperationContext) -> None:
    """Rebuild the shoot on this seed from the latest persisted ShootState."""
    snapshot = await op.state_store.load(op.shoot.name)
    if snapshot is None:
        raise ConfigurationError(
            f"no ShootState found for shoot {op.shoot.name!r}", details={"namespace": op.namespace}
        )
    await reconcile_shoot(op, ctx, snapshot)
