"""Lifecycle contract every managed resource exposes."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from shootops.context import OperationContext
from shootops.resources.state import ShootState


@runtime_checkable
class Deployer(Protocol):
    """Writes or removes the desired state; never waits for convergence."""

    async def deploy(self, ctx: OperationContext) -> None:
        ...

    async def destroy(self, ctx: OperationContext) -> None:
        ...


@runtime_checkable
class DeployWaiter(Deployer, Protocol):
    """A deployer whose convergence can be awaited."""

    async def wait(self, ctx: OperationContext) -> None:
        """Poll until the resource is ready."""
        ...

    async def wait_cleanup(self, ctx: OperationContext) -> None:
        """Poll until the resource is absent."""
        ...


@runtime_checkable
class MigrateRestorer(Protocol):
    """Resources that take part in moving a cluster between management hosts."""

    async def migrate(self, ctx: OperationContext) -> None:
        ...

    async def wait_migrate(self, ctx: OperationContext) -> None:
        ...

    async def restore(self, ctx: OperationContext, snapshot: ShootState) -> None:
        ...


@runtime_checkable
class DeployMigrateWaiter(DeployWaiter, MigrateRestorer, Protocol):
    """Full lifecycle: deploy/wait/destroy/wait_cleanup plus migrate/restore."""
