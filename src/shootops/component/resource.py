"""
Generic lifecycle implementation for a single managed resource.

Deploy and destroy are plain writes. Wait, wait_cleanup and wait_migrate
poll the object through the retry engine:

- fetching the object fails with "not found" -> minor (not created yet),
- fetching fails otherwise -> severe,
- the health check reports an error with codes -> minor, escalated to severe
  once the severe threshold is exceeded,
- any other health check failure -> minor.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone

import structlog

from shootops.component.health import HealthCheck, NotReadyError, check_extension_object
from shootops.context import OperationContext
from shootops.core.errorcodes import DEFAULT_CLASSIFIER, ErrorClassifier, ErrorWithCodes
from shootops.resources.client import NotFoundError, ResourceClient, delete_ignore_not_found
from shootops.resources.models import (
    ANNOTATION_CONFIRM_DELETION,
    ANNOTATION_OPERATION,
    ANNOTATION_OPERATION_TIMESTAMP,
    OPERATION_RECONCILE,
    ManagedResource,
    OperationState,
    OperationType,
)
from shootops.retry import (
    MinorError,
    PollTimeoutError,
    SevereError,
    minor_or_severe_error,
    until_timeout,
)

logger = structlog.get_logger()


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def operation_annotations(operation: str) -> dict[str, str]:
    return {ANNOTATION_OPERATION: operation, ANNOTATION_OPERATION_TIMESTAMP: utc_timestamp()}


def _severe_attempts(ctx: OperationContext, interval: float) -> int:
    if interval <= 0:
        return 0
    return int(ctx.severe_threshold / interval)


async def _fetch(client: ResourceClient, kind: str, namespace: str, name: str) -> ManagedResource:
    try:
        return await client.get(kind, namespace, name)
    except NotFoundError as exc:
        raise MinorError(exc) from exc
    except Exception as exc:
        raise SevereError(exc) from exc


async def wait_until_object_ready(
    ctx: OperationContext,
    client: ResourceClient,
    kind: str,
    namespace: str,
    name: str,
    *,
    health_check: HealthCheck,
    interval: float | None = None,
    timeout: float | None = None,
    classifier: ErrorClassifier | None = None,
) -> ManagedResource:
    """Poll an object until `health_check` passes and return the healthy object."""
    interval = ctx.interval if interval is None else interval
    timeout = ctx.timeout if timeout is None else timeout
    threshold = _severe_attempts(ctx, interval)
    attempts = 0
    healthy: list[ManagedResource] = []

    async def condition(_: OperationContext) -> None:
        nonlocal attempts
        attempts += 1
        obj = await _fetch(client, kind, namespace, name)
        try:
            health_check(obj)
        except ErrorWithCodes as exc:
            if exc.codes:
                raise minor_or_severe_error(attempts, threshold, exc) from exc
            raise MinorError(exc) from exc
        except NotReadyError as exc:
            raise MinorError(exc) from exc
        healthy[:] = [obj]

    description = f"{kind} {namespace}/{name}"
    try:
        await until_timeout(ctx, interval, timeout, condition, classifier=classifier)
    except PollTimeoutError as exc:
        raise PollTimeoutError(
            f"error while waiting for {description} to become ready",
            last_error=exc.last_error,
            classifier=classifier,
        ) from exc
    except SevereError as exc:
        raise SevereError(
            ErrorWithCodes(f"error while waiting for {description} to become ready: {exc.cause}", exc.codes)
        ) from exc
    return healthy[0]


async def wait_until_object_deleted(
    ctx: OperationContext,
    client: ResourceClient,
    kind: str,
    namespace: str,
    name: str,
    *,
    interval: float | None = None,
    timeout: float | None = None,
    classifier: ErrorClassifier | None = None,
) -> None:
    """Poll until the object is absent, surfacing the last error it reported."""
    interval = ctx.interval if interval is None else interval
    timeout = ctx.timeout if timeout is None else timeout
    description = f"{kind} {namespace}/{name}"

    async def condition(_: OperationContext) -> None:
        try:
            obj = await client.get(kind, namespace, name)
        except NotFoundError:
            return
        except Exception as exc:
            raise SevereError(exc) from exc
        last_error = obj.status.last_error
        if last_error is not None:
            raise MinorError(
                ErrorWithCodes(f"{description} is still present, last error: {last_error.description}", last_error.codes)
            )
        raise MinorError(f"{description} is still present")

    try:
        await until_timeout(ctx, interval, timeout, condition, classifier=classifier)
    except PollTimeoutError as exc:
        raise PollTimeoutError(
            f"error while waiting for {description} to be deleted",
            last_error=exc.last_error,
            classifier=classifier,
        ) from exc


async def wait_until_object_migrated(
    ctx: OperationContext,
    client: ResourceClient,
    kind: str,
    namespace: str,
    name: str,
    *,
    interval: float | None = None,
    timeout: float | None = None,
) -> None:
    """Poll until the object reports a successful Migrate operation (or is gone)."""
    interval = ctx.interval if interval is None else interval
    timeout = ctx.timeout if timeout is None else timeout
    description = f"{kind} {namespace}/{name}"

    async def condition(_: OperationContext) -> None:
        try:
            obj = await client.get(kind, namespace, name)
        except NotFoundError:
            return
        except Exception as exc:
            raise SevereError(exc) from exc
        last_operation = obj.status.last_operation
        if (
            last_operation is not None
            and last_operation.type == OperationType.MIGRATE
            and last_operation.state == OperationState.SUCCEEDED
        ):
            return
        raise MinorError(f"migration of {description} did not succeed yet")

    try:
        await until_timeout(ctx, interval, timeout, condition)
    except PollTimeoutError as exc:
        raise PollTimeoutError(
            f"error while waiting for {description} to be migrated",
            last_error=exc.last_error,
        ) from exc


class ResourceComponent:
    """
    Deploy/wait/destroy/wait_cleanup for one named object of one kind.

    Subclasses describe the desired object in ``desired()``; the health policy
    and the error classifier are chosen per kind.
    """

    kind: str = ""
    requires_deletion_confirmation: bool = False

    def __init__(
        self,
        client: ResourceClient,
        namespace: str,
        name: str,
        *,
        interval: float | None = None,
        timeout: float | None = None,
        classifier: ErrorClassifier = DEFAULT_CLASSIFIER,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.name = name
        self.interval = interval
        self.timeout = timeout
        self.classifier = classifier
        self.log = logger.bind(kind=self.kind, namespace=namespace, name=name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.namespace}/{self.name})"

    def desired(self) -> ManagedResource:
        raise NotImplementedError

    def health_check(self, obj: ManagedResource) -> None:
        check_extension_object(obj, self.classifier)

    def _with_operation(self, operation: str) -> ManagedResource:
        resource = self.desired()
        resource.spec = copy.deepcopy(resource.spec)
        resource.annotations.update(operation_annotations(operation))
        return resource

    async def deploy(self, ctx: OperationContext) -> None:
        await self.client.apply(self._with_operation(OPERATION_RECONCILE))
        self.log.info("resource_deployed")

    async def wait(self, ctx: OperationContext) -> None:
        await wait_until_object_ready(
            ctx,
            self.client,
            self.kind,
            self.namespace,
            self.name,
            health_check=self.health_check,
            interval=self.interval,
            timeout=self.timeout,
            classifier=self.classifier,
        )

    async def destroy(self, ctx: OperationContext) -> None:
        if self.requires_deletion_confirmation:
            try:
                await self.client.patch_annotations(
                    self.kind, self.namespace, self.name, {ANNOTATION_CONFIRM_DELETION: "true"}
                )
            except NotFoundError:
                self.log.debug("resource_already_absent")
                return
        if await delete_ignore_not_found(self.client, self.kind, self.namespace, self.name):
            self.log.info("resource_deletion_requested")

    async def wait_cleanup(self, ctx: OperationContext) -> None:
        await wait_until_object_deleted(
            ctx,
            self.client,
            self.kind,
            self.namespace,
            self.name,
            interval=self.interval,
            timeout=self.timeout,
            classifier=self.classifier,
        )
