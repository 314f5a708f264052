from __future__ import annotations

from typing import Any

from shootops.component.resource import (
    ResourceComponent,
    operation_annotations,
    wait_until_object_migrated,
)
from shootops.context import OperationContext
from shootops.core.errorcodes import DEFAULT_CLASSIFIER, ErrorClassifier
from shootops.resources.client import ResourceClient, get_or_none
from shootops.resources.models import (
    OPERATION_MIGRATE,
    OPERATION_RESTORE,
    OPERATION_WAIT_FOR_STATE,
    ManagedResource,
)
from shootops.resources.state import ShootState


class ExtensionResource(ResourceComponent):
    """
    Lifecycle of one extension object (Infrastructure, Worker, Network, ...).

    The resource spec is ``{"type": ..., "purpose": ..., **values}``; what goes into
    ``values`` is the business of the extension that reconciles the kind.
    Deletion must be confirmed with an annotation before the reconciler
    honors it.
    """

    requires_deletion_confirmation = True

    def __init__(
        self,
        client: ResourceClient,
        kind: str,
        namespace: str,
        name: str,
        type_: str,
        *,
        purpose: str | None = None,
        values: dict[str, Any] | None = None,
        labels: dict[str, str] | None = None,
        interval: float | None = None,
        timeout: float | None = None,
        classifier: ErrorClassifier = DEFAULT_CLASSIFIER,
    ) -> None:
        self.kind = kind
        self.type = type_
        self.purpose = purpose
        self.values = dict(values or {})
        self.labels = dict(labels or {})
        super().__init__(
            client,
            namespace,
            name,
            interval=interval,
            timeout=timeout,
            classifier=classifier,
        )

    def desired(self) -> ManagedResource:
        spec: dict[str, Any] = {"type": self.type}
        if self.purpose is not None:
            spec["purpose"] = self.purpose
        spec.update(self.values)
        return ManagedResource(
            kind=self.kind,
            namespace=self.namespace,
            name=self.name,
            spec=spec,
            labels=dict(self.labels),
        )

    async def migrate(self, ctx: OperationContext) -> None:
        """Tell the reconciler to detach from the physical resource without deleting it."""
        if await get_or_none(self.client, self.kind, self.namespace, self.name) is None:
            self.log.debug("migrate_skipped_absent")
            return
        await self.client.patch_annotations(
            self.kind, self.namespace, self.name, operation_annotations(OPERATION_MIGRATE)
        )
        self.log.info("resource_migrate_requested")

    async def wait_migrate(self, ctx: OperationContext) -> None:
        await wait_until_object_migrated(
            ctx,
            self.client,
            self.kind,
            self.namespace,
            self.name,
            interval=self.interval,
            timeout=self.timeout,
        )

    async def restore(self, ctx: OperationContext, snapshot: ShootState) -> None:
        """
        Recreate the object from a snapshot.

        The object is written with the wait-for-state annotation so that the
        reconciler holds off until the captured state is in place; only then
        the restore annotation hands it over. Callers follow with ``wait``.
        """
        await self.client.apply(self._with_operation(OPERATION_WAIT_FOR_STATE))
        entry = snapshot.get(self.kind, self.name, self.purpose)
        state_blob = dict(entry.state_blob) if entry and entry.state_blob is not None else None
        resources = [dict(r) for r in entry.resources] if entry else []
        await self.client.update_status_state(
            self.kind, self.namespace, self.name, state_blob, resources
        )
        await self.client.patch_annotations(
            self.kind, self.namespace, self.name, operation_annotations(OPERATION_RESTORE)
        )
        self.log.info("resource_restore_requested", state_found=entry is not None)
