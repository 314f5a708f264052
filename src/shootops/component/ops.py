"""
Composite deployers that fix the order in which components converge.

Whether the declared order or its reverse is right for creation depends on
what the components guard, so callers pick the wrapper per dependency chain.
"""

from __future__ import annotations

import structlog

from shootops.component.base import DeployWaiter
from shootops.context import OperationContext

logger = structlog.get_logger()


class OrderedDeployer:
    """
    Deploy+wait each component in declared order; destroy in reverse order.

    Both directions stop at the first failure. Because every step is waited
    for before the next one starts, ``wait`` and ``wait_cleanup`` are no-ops.
    """

    def __init__(self, *components: DeployWaiter) -> None:
        self.components = components

    def __repr__(self) -> str:
        return f"OrderedDeployer{self.components!r}"

    async def deploy(self, ctx: OperationContext) -> None:
        for component in self.components:
            await component.deploy(ctx)
            await component.wait(ctx)

    async def destroy(self, ctx: OperationContext) -> None:
        for component in reversed(self.components):
            await component.destroy(ctx)
            await component.wait_cleanup(ctx)

    async def wait(self, ctx: OperationContext) -> None:
        return None

    async def wait_cleanup(self, ctx: OperationContext) -> None:
        return None


class _Destroyer:
    """Turns a component's destroy path into its deploy path."""

    def __init__(self, component: DeployWaiter) -> None:
        self.component = component

    def __repr__(self) -> str:
        return f"op_destroy({self.component!r})"

    async def deploy(self, ctx: OperationContext) -> None:
        await self.component.destroy(ctx)

    async def wait(self, ctx: OperationContext) -> None:
        await self.component.wait_cleanup(ctx)

    async def destroy(self, ctx: OperationContext) -> None:
        await self.component.destroy(ctx)

    async def wait_cleanup(self, ctx: OperationContext) -> None:
        await self.component.wait_cleanup(ctx)


class _DestroyAndWait:
    def __init__(self, components: tuple[DeployWaiter, ...]) -> None:
        self.components = components

    def __repr__(self) -> str:
        return f"op_destroy_and_wait{self.components!r}"

    async def _teardown(self, ctx: OperationContext) -> None:
        for component in self.components:
            await component.destroy(ctx)
            await component.wait_cleanup(ctx)

    async def deploy(self, ctx: OperationContext) -> None:
        await self._teardown(ctx)

    async def destroy(self, ctx: OperationContext) -> None:
        await self._teardown(ctx)

    async def wait(self, ctx: OperationContext) -> None:
        return None

    async def wait_cleanup(self, ctx: OperationContext) -> None:
        return None


class _Waiter:
    def __init__(self, component: DeployWaiter) -> None:
        self.component = component

    def __repr__(self) -> str:
        return f"op_waiter({self.component!r})"

    async def deploy(self, ctx: OperationContext) -> None:
        await self.component.deploy(ctx)
        await self.component.wait(ctx)

    async def destroy(self, ctx: OperationContext) -> None:
        await self.component.destroy(ctx)
        await self.component.wait_cleanup(ctx)

    async def wait(self, ctx: OperationContext) -> None:
        return None

    async def wait_cleanup(self, ctx: OperationContext) -> None:
        return None


def op_destroy(component: DeployWaiter) -> DeployWaiter:
    """Wrap a component that is no longer needed: deploying it destroys it."""
    return _Destroyer(component)


def op_destroy_and_wait(*components: DeployWaiter) -> DeployWaiter:
    """Destroy and wait for each component in the declared order."""
    return _DestroyAndWait(components)


def op_waiter(component: DeployWaiter) -> DeployWaiter:
    """Deploying (or destroying) the wrapper also waits for convergence."""
    return _Waiter(component)
