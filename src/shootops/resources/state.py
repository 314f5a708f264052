"""
ShootState snapshots.

A snapshot captures, per managed resource, everything needed to recreate it
on another management host: the desired spec and the opaque reconciler state.
Snapshots are immutable; every persist produces a new version.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import structlog

from shootops.resources.client import ResourceClient, get_or_none
from shootops.resources.models import ManagedResource

logger = structlog.get_logger()

SHOOT_STATE_KIND = "ShootState"


@dataclass(frozen=True)
class ResourceState:
    """Captured spec and reconciler state of one managed resource."""

    kind: str
    name: str
    purpose: str | None
    spec: Mapping[str, Any]
    state_blob: Mapping[str, Any] | None = None
    resources: tuple[Mapping[str, Any], ...] = ()

    @property
    def key(self) -> tuple[str, str, str | None]:
        return (self.kind, self.name, self.purpose)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "purpose": self.purpose,
            "spec": copy.deepcopy(dict(self.spec)),
            "stateBlob": copy.deepcopy(dict(self.state_blob)) if self.state_blob is not None else None,
            "resources": [copy.deepcopy(dict(r)) for r in self.resources],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceState:
        blob = data.get("stateBlob")
        return cls(
            kind=data["kind"],
            name=data["name"],
            purpose=data.get("purpose"),
            spec=MappingProxyType(copy.deepcopy(data.get("spec") or {})),
            state_blob=MappingProxyType(copy.deepcopy(blob)) if blob is not None else None,
            resources=tuple(MappingProxyType(copy.deepcopy(r)) for r in data.get("resources") or []),
        )

    @classmethod
    def from_resource(cls, resource: ManagedResource) -> ResourceState:
        return cls.from_dict(
            {
                "kind": resource.kind,
                "name": resource.name,
                "purpose": resource.spec.get("purpose"),
                "spec": resource.spec,
                "stateBlob": resource.status.state_blob,
                "resources": resource.status.resources,
            }
        )


@dataclass(frozen=True)
class ShootState:
    """Immutable, versioned capture of a cluster's managed resources."""

    shoot: str
    namespace: str
    version: int = 0
    entries: tuple[ResourceState, ...] = field(default_factory=tuple)

    def get(self, kind: str, name: str, purpose: str | None = None) -> ResourceState | None:
        for entry in self.entries:
            if entry.kind != kind or entry.name != name:
                continue
            if purpose is None or entry.purpose is None or entry.purpose == purpose:
                return entry
        return None

    def kinds(self) -> set[str]:
        return {entry.kind for entry in self.entries}

    def to_dict(self) -> dict[str, Any]:
        return {
            "shoot": self.shoot,
            "namespace": self.namespace,
            "version": self.version,
            "entries": [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShootState:
        return cls(
            shoot=data["shoot"],
            namespace=data["namespace"],
            version=int(data.get("version", 0)),
            entries=tuple(ResourceState.from_dict(e) for e in data.get("entries") or []),
        )


async def capture_shoot_state(
    client: ResourceClient,
    shoot: str,
    namespace: str,
    kinds: Iterable[str],
) -> ShootState:
    """Capture spec and reconciler state of every object of the given kinds."""
    entries: list[ResourceState] = []
    for kind in kinds:
        for resource in await client.list(kind, namespace):
            entries.append(ResourceState.from_resource(resource))
    logger.info("shoot_state_captured", shoot=shoot, namespace=namespace, entries=len(entries))
    return ShootState(shoot=shoot, namespace=namespace, entries=tuple(entries))


class ShootStateStore:
    """Persists snapshots through the resource client as ShootState objects."""

    def __init__(self, client: ResourceClient, namespace: str) -> None:
        self._client = client
        self._namespace = namespace

    async def load(self, shoot: str) -> ShootState | None:
        obj = await get_or_none(self._client, SHOOT_STATE_KIND, self._namespace, shoot)
        if obj is None:
            return None
        return ShootState.from_dict(obj.spec)

    async def persist(self, state: ShootState) -> ShootState:
        """Store the snapshot as the next version and return the stored copy."""
        previous = await self.load(state.shoot)
        version = (previous.version if previous else 0) + 1
        stored = ShootState(
            shoot=state.shoot,
            namespace=state.namespace,
            version=version,
            entries=state.entries,
        )
        await self._client.apply(
            ManagedResource(
                kind=SHOOT_STATE_KIND,
                namespace=self._namespace,
                name=state.shoot,
                spec=stored.to_dict(),
            )
        )
        logger.info("shoot_state_persisted", shoot=state.shoot, version=version)
        return stored
