"""
Health policies for managed resources.

A health check inspects a fetched object and raises when it is not ready.
Readiness is decided per kind: extension kinds are ready when the reconciler
observed the current generation and its last operation succeeded; DNS kinds
report a provider-specific state that has to be ``Ready``.
"""

from __future__ import annotations

from typing import Callable

from shootops.core.errorcodes import DEFAULT_CLASSIFIER, ErrorClassifier, ErrorWithCodes
from shootops.resources.models import ANNOTATION_OPERATION, ManagedResource, OperationState

HealthCheck = Callable[[ManagedResource], None]

DNS_STATE_READY = "Ready"
DNS_STATE_PENDING = "Pending"
DNS_STATE_ERROR = "Error"
DNS_STATE_INVALID = "Invalid"
DNS_STATE_STALE = "Stale"


class NotReadyError(Exception):
    """The object has not converged yet."""


class DNSStateError(NotReadyError):
    """A DNS object reports a state other than Ready."""

    def __init__(self, state: str | None, message: str | None = None):
        self.state = state
        text = f"state {state or 'unknown'}"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)


def _check_generation(obj: ManagedResource) -> None:
    if obj.status.observed_generation != obj.generation:
        raise NotReadyError(
            f"observed generation outdated ({obj.status.observed_generation}/{obj.generation})"
        )


def check_extension_object(
    obj: ManagedResource,
    classifier: ErrorClassifier = DEFAULT_CLASSIFIER,
) -> None:
    """
    Ready iff the reconciler picked up the latest request and succeeded.

    The reconciler removes the operation annotation when it acts on it, so a
    status left over from an earlier pass never counts while the annotation
    is still present.
    """
    last_error = obj.status.last_error
    if last_error is not None:
        codes = last_error.codes or classifier.codes_for(last_error.description)
        raise ErrorWithCodes(f"error during reconciliation: {last_error.description}", codes)
    _check_generation(obj)
    operation = obj.annotations.get(ANNOTATION_OPERATION)
    if operation is not None:
        raise NotReadyError(f"operation {operation!r} is not yet picked up by the reconciler")
    last_operation = obj.status.last_operation
    if last_operation is None:
        raise NotReadyError("extension did not record a last operation yet")
    if last_operation.state != OperationState.SUCCEEDED:
        raise NotReadyError(f"last operation {last_operation.type.value} is {last_operation.state.value}")


def check_dns_object(obj: ManagedResource) -> None:
    _check_generation(obj)
    if obj.status.state != DNS_STATE_READY:
        raise DNSStateError(obj.status.state, obj.status.message)
