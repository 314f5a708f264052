from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from shootops.core.errors import ProviderError
from shootops.resources.models import ManagedResource


class NotFoundError(ProviderError):
    """The requested object does not exist."""

    def __init__(self, kind: str, namespace: str, name: str):
        super().__init__(
            f"{kind} {namespace}/{name} not found",
            details={"kind": kind, "namespace": namespace, "name": name},
        )
        self.kind = kind
        self.namespace = namespace
        self.name = name


@runtime_checkable
class ResourceClient(Protocol):
    """
    Read/write access to the declarative store.

    Implementations must be safe for concurrent use by many tasks. The
    orchestrator only writes specs, labels and annotations; status belongs to
    the external reconcilers (restoring a snapshot's state is the exception).
    """

    async def get(self, kind: str, namespace: str, name: str) -> ManagedResource:
        ...

    async def list(
        self,
        kind: str,
        namespace: str,
        labels: dict[str, str] | None = None,
    ) -> list[ManagedResource]:
        ...

    async def apply(self, resource: ManagedResource) -> ManagedResource:
        """Create the object or update its spec, labels and annotations."""
        ...

    async def patch_annotations(
        self,
        kind: str,
        namespace: str,
        name: str,
        annotations: dict[str, str],
    ) -> ManagedResource:
        ...

    async def update_status_state(
        self,
        kind: str,
        namespace: str,
        name: str,
        state_blob: dict[str, Any] | None,
        resources: list[dict[str, Any]],
    ) -> ManagedResource:
        ...

    async def delete(self, kind: str, namespace: str, name: str) -> None:
        """Request deletion; raises NotFoundError when the object is absent."""
        ...


async def get_or_none(
    client: ResourceClient, kind: str, namespace: str, name: str
) -> ManagedResource | None:
    try:
        return await client.get(kind, namespace, name)
    except NotFoundError:
        return None


async def delete_ignore_not_found(client: ResourceClient, kind: str, namespace: str, name: str) -> bool:
    """Delete an object; return False when it was already gone."""
    try:
        await client.delete(kind, namespace, name)
    except NotFoundError:
        return False
    return True
