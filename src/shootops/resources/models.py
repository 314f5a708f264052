"""Managed resource model: handles to externally reconciled, declarative objects."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ANNOTATION_OPERATION = "shootops.dev/operation"
ANNOTATION_OPERATION_TIMESTAMP = "shootops.dev/timestamp"
ANNOTATION_CONFIRM_DELETION = "confirmation.shootops.dev/deletion"
ANNOTATION_CHECKSUM_SECRET = "checksum/secret"

OPERATION_RECONCILE = "reconcile"
OPERATION_MIGRATE = "migrate"
OPERATION_RESTORE = "restore"
OPERATION_WAIT_FOR_STATE = "wait-for-state"

LABEL_ROLE = "shootops.dev/role"


class OperationType(str, Enum):
    """Type of the last operation an external reconciler performed."""

    CREATE = "Create"
    RECONCILE = "Reconcile"
    DELETE = "Delete"
    MIGRATE = "Migrate"
    RESTORE = "Restore"


class OperationState(str, Enum):
    """State of the last operation an external reconciler performed."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    SUCCEEDED = "Succeeded"
    ERROR = "Error"
    FAILED = "Failed"
    ABORTED = "Aborted"


@dataclass
class LastOperation:
    type: OperationType
    state: OperationState
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "state": self.state.value, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LastOperation:
        return cls(
            type=OperationType(data["type"]),
            state=OperationState(data["state"]),
            description=data.get("description", ""),
        )


@dataclass
class LastError:
    description: str
    codes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"description": self.description, "codes": list(self.codes)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LastError:
        return cls(description=data.get("description", ""), codes=list(data.get("codes") or []))


@dataclass
class ResourceStatus:
    """
    Status written exclusively by the external reconciler.

    ``state`` is the provider-specific state string some kinds report (DNS
    objects report Ready/Pending/Error/Invalid/Stale). ``state_blob`` and
    ``resources`` are the opaque reconciler state captured for migration.
    """

    observed_generation: int = 0
    last_operation: LastOperation | None = None
    last_error: LastError | None = None
    state: str | None = None
    message: str | None = None
    state_blob: dict[str, Any] | None = None
    resources: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"observedGeneration": self.observed_generation}
        if self.last_operation is not None:
            data["lastOperation"] = self.last_operation.to_dict()
        if self.last_error is not None:
            data["lastError"] = self.last_error.to_dict()
        if self.state is not None:
            data["state"] = self.state
        if self.message is not None:
            data["message"] = self.message
        if self.state_blob is not None:
            data["stateBlob"] = self.state_blob
        if self.resources:
            data["resources"] = self.resources
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ResourceStatus:
        data = data or {}
        last_operation = data.get("lastOperation")
        last_error = data.get("lastError")
        return cls(
            observed_generation=int(data.get("observedGeneration", 0)),
            last_operation=LastOperation.from_dict(last_operation) if last_operation else None,
            last_error=LastError.from_dict(last_error) if last_error else None,
            state=data.get("state"),
            message=data.get("message"),
            state_blob=data.get("stateBlob"),
            resources=list(data.get("resources") or []),
        )


@dataclass
class ManagedResource:
    """
    A named, namespaced handle to an externally reconciled object.

    ``generation`` is bumped by the store on every spec change; the resource
    is ready only when the reconciler observed that generation and reports
    success.
    """

    kind: str
    namespace: str
    name: str
    spec: dict[str, Any] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    generation: int = 0
    status: ResourceStatus = field(default_factory=ResourceStatus)
    deletion_requested: bool = False

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.kind, self.namespace, self.name)

    def describe(self) -> str:
        return f"{self.kind} {self.namespace}/{self.name}"

    def deepcopy(self) -> ManagedResource:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "name": self.name,
            "namespace": self.namespace,
            "generation": self.generation,
        }
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        if self.deletion_requested:
            metadata["deletionRequested"] = True
        return {
            "kind": self.kind,
            "metadata": metadata,
            "spec": copy.deepcopy(self.spec),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ManagedResource:
        metadata = data.get("metadata") or {}
        return cls(
            kind=data["kind"],
            namespace=metadata.get("namespace", ""),
            name=metadata["name"],
            spec=copy.deepcopy(data.get("spec") or {}),
            labels=dict(metadata.get("labels") or {}),
            annotations=dict(metadata.get("annotations") or {}),
            generation=int(metadata.get("generation", 0)),
            status=ResourceStatus.from_dict(data.get("status")),
            deletion_requested=bool(
                metadata.get("deletionRequested") or metadata.get("deletionTimestamp")
            ),
        )


# Resource kinds driven by the orchestrator.
KIND_INFRASTRUCTURE = "Infrastructure"
KIND_NETWORK = "Network"
KIND_CONTROL_PLANE = "ControlPlane"
KIND_WORKER = "Worker"
KIND_OPERATING_SYSTEM_CONFIG = "OperatingSystemConfig"
KIND_CONTAINER_RUNTIME = "ContainerRuntime"
KIND_EXTENSION = "Extension"
KIND_BACKUP_BUCKET = "BackupBucket"
KIND_BACKUP_ENTRY = "BackupEntry"
KIND_DNS_RECORD = "DNSRecord"
KIND_DNS_PROVIDER = "DNSProvider"
KIND_DNS_ENTRY = "DNSEntry"
KIND_DNS_OWNER = "DNSOwner"
KIND_SECRET = "Secret"

# Kinds carrying reconciler state that survives a migration.
MIGRATABLE_KINDS = (
    KIND_INFRASTRUCTURE,
    KIND_NETWORK,
    KIND_CONTROL_PLANE,
    KIND_WORKER,
    KIND_OPERATING_SYSTEM_CONFIG,
    KIND_CONTAINER_RUNTIME,
    KIND_EXTENSION,
    KIND_BACKUP_ENTRY,
)
