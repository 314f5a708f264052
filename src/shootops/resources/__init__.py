"""Managed resources, the store clients and ShootState snapshots."""

from shootops.resources.client import NotFoundError, ResourceClient, delete_ignore_not_found, get_or_none
from shootops.resources.memory import InMemoryResourceStore
from shootops.resources.models import (
    LastError,
    LastOperation,
    ManagedResource,
    OperationState,
    OperationType,
    ResourceStatus,
)
from shootops.resources.state import ResourceState, ShootState, ShootStateStore, capture_shoot_state

__all__ = [
    "InMemoryResourceStore",
    "LastError",
    "LastOperation",
    "ManagedResource",
    "NotFoundError",
    "OperationState",
    "OperationType",
    "ResourceClient",
    "ResourceState",
    "ResourceStatus",
    "ShootState",
    "ShootStateStore",
    "capture_shoot_state",
    "delete_ignore_not_found",
    "get_or_none",
]
