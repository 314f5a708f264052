from __future__ import annotations

import asyncio
import copy
from typing import Any, Callable

from shootops.core.errors import ProviderError
from shootops.resources.client import NotFoundError
from shootops.resources.models import (
    ANNOTATION_CONFIRM_DELETION,
    ANNOTATION_OPERATION,
    LastError,
    LastOperation,
    ManagedResource,
    OperationState,
    OperationType,
)

Reconciler = Callable[["InMemoryResourceStore", ManagedResource], None]


class InMemoryResourceStore:
    """
    Asyncio-backed declarative store for local runs and tests.

    Every write yields to the event loop once, so concurrent tasks interleave
    the way they would against a remote API. The optional ``reconciler``
    callback runs after each write and plays the external reconciler; the
    ``set_status``/``finish_deletion`` helpers do the same by hand.
    """

    def __init__(
        self,
        *,
        reconciler: Reconciler | None = None,
        finalize_deletes: bool = True,
        confirmation_required: set[str] | None = None,
    ) -> None:
        self._objects: dict[tuple[str, str, str], ManagedResource] = {}
        self.reconciler = reconciler
        self.finalize_deletes = finalize_deletes
        self.confirmation_required = set(confirmation_required or ())
        self.journal: list[tuple[str, str, str, str]] = []
        self.failures: dict[tuple[str, str, str, str], Exception] = {}

    # Client protocol

    async def get(self, kind: str, namespace: str, name: str) -> ManagedResource:
        await asyncio.sleep(0)
        self._maybe_fail("get", kind, namespace, name)
        obj = self._objects.get((kind, namespace, name))
        if obj is None:
            raise NotFoundError(kind, namespace, name)
        return obj.deepcopy()

    async def list(
        self,
        kind: str,
        namespace: str,
        labels: dict[str, str] | None = None,
    ) -> list[ManagedResource]:
        await asyncio.sleep(0)
        selector = labels or {}
        return [
            obj.deepcopy()
            for (k, ns, _), obj in sorted(self._objects.items())
            if k == kind
            and ns == namespace
            and all(obj.labels.get(key) == value for key, value in selector.items())
        ]

    async def apply(self, resource: ManagedResource) -> ManagedResource:
        await asyncio.sleep(0)
        self._maybe_fail("apply", *resource.key)
        current = self._objects.get(resource.key)
        if current is None:
            current = ManagedResource(
                kind=resource.kind,
                namespace=resource.namespace,
                name=resource.name,
                spec=copy.deepcopy(resource.spec),
                generation=1,
            )
            self._objects[resource.key] = current
        elif current.spec != resource.spec:
            current.spec = copy.deepcopy(resource.spec)
            current.generation += 1
        current.labels.update(resource.labels)
        current.annotations.update(resource.annotations)
        self.journal.append(("apply", *resource.key))
        self._reconcile(current)
        return current.deepcopy()

    async def patch_annotations(
        self,
        kind: str,
        namespace: str,
        name: str,
        annotations: dict[str, str],
    ) -> ManagedResource:
        await asyncio.sleep(0)
        self._maybe_fail("patch", kind, namespace, name)
        current = self._objects.get((kind, namespace, name))
        if current is None:
            raise NotFoundError(kind, namespace, name)
        current.annotations.update(annotations)
        self.journal.append(("patch", kind, namespace, name))
        self._reconcile(current)
        return current.deepcopy()

    async def update_status_state(
        self,
        kind: str,
        namespace: str,
        name: str,
        state_blob: dict[str, Any] | None,
        resources: list[dict[str, Any]],
    ) -> ManagedResource:
        await asyncio.sleep(0)
        current = self._objects.get((kind, namespace, name))
        if current is None:
            raise NotFoundError(kind, namespace, name)
        current.status.state_blob = copy.deepcopy(state_blob)
        current.status.resources = copy.deepcopy(resources)
        self.journal.append(("status", kind, namespace, name))
        return current.deepcopy()

    async def delete(self, kind: str, namespace: str, name: str) -> None:
        await asyncio.sleep(0)
        self._maybe_fail("delete", kind, namespace, name)
        current = self._objects.get((kind, namespace, name))
        if current is None:
            raise NotFoundError(kind, namespace, name)
        if kind in self.confirmation_required and current.annotations.get(
            ANNOTATION_CONFIRM_DELETION
        ) != "true":
            raise ProviderError(
                f"{kind} {namespace}/{name} must be confirmed for deletion first",
                details={"annotation": ANNOTATION_CONFIRM_DELETION},
            )
        self.journal.append(("delete", kind, namespace, name))
        current.deletion_requested = True
        if self.finalize_deletes:
            del self._objects[(kind, namespace, name)]
        else:
            self._reconcile(current)

    # Reconciler-side helpers

    def exists(self, kind: str, namespace: str, name: str) -> bool:
        return (kind, namespace, name) in self._objects

    def peek(self, kind: str, namespace: str, name: str) -> ManagedResource:
        """Return the stored object itself (not a copy) for reconciler-side edits."""
        try:
            return self._objects[(kind, namespace, name)]
        except KeyError:
            raise NotFoundError(kind, namespace, name) from None

    def set_status(
        self,
        kind: str,
        namespace: str,
        name: str,
        *,
        state: OperationState | None = None,
        operation: OperationType = OperationType.RECONCILE,
        observed: bool = True,
        dns_state: str | None = None,
        message: str | None = None,
        last_error: LastError | None = None,
        state_blob: dict[str, Any] | None = None,
    ) -> None:
        """Record what a reconciler reports; recording an operation consumes its annotation."""
        obj = self.peek(kind, namespace, name)
        if observed:
            obj.status.observed_generation = obj.generation
        if state is not None:
            obj.status.last_operation = LastOperation(type=operation, state=state)
            obj.annotations.pop(ANNOTATION_OPERATION, None)
        if dns_state is not None:
            obj.status.state = dns_state
        if message is not None:
            obj.status.message = message
        obj.status.last_error = last_error
        if state_blob is not None:
            obj.status.state_blob = state_blob

    def finish_deletion(self, kind: str, namespace: str, name: str) -> None:
        self._objects.pop((kind, namespace, name), None)

    def put(self, resource: ManagedResource) -> None:
        """Seed an object as if it had been created earlier."""
        self._objects[resource.key] = resource.deepcopy()

    def fail_on(self, verb: str, kind: str, namespace: str, name: str, error: Exception) -> None:
        """Make the given verb fail for one object."""
        self.failures[(verb, kind, namespace, name)] = error

    def writes(self, verb: str | None = None) -> list[tuple[str, str, str, str]]:
        return [entry for entry in self.journal if verb is None or entry[0] == verb]

    def _maybe_fail(self, verb: str, kind: str, namespace: str, name: str) -> None:
        error = self.failures.get((verb, kind, namespace, name))
        if error is not None:
            raise error

    def _reconcile(self, obj: ManagedResource) -> None:
        if self.reconciler is not None:
            self.reconciler(self, obj)
