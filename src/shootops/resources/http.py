"""HTTP resource client for a Kubernetes-style declarative API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from circuitbreaker import circuit
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shootops.core.errors import ProviderError
from shootops.resources.client import NotFoundError
from shootops.resources.models import ManagedResource

logger = structlog.get_logger()


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried."""


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


@dataclass(frozen=True)
class KindPath:
    group: str
    version: str
    plural: str

    def collection(self, namespace: str) -> str:
        prefix = f"/api/{self.version}" if not self.group else f"/apis/{self.group}/{self.version}"
        return f"{prefix}/namespaces/{namespace}/{self.plural}"


_EXTENSIONS = "extensions.shootops.dev"
_DNS = "dns.shootops.dev"
_CORE = "core.shootops.dev"

DEFAULT_KIND_PATHS: dict[str, KindPath] = {
    "Secret": KindPath("", "v1", "secrets"),
    "Infrastructure": KindPath(_EXTENSIONS, "v1alpha1", "infrastructures"),
    "Network": KindPath(_EXTENSIONS, "v1alpha1", "networks"),
    "ControlPlane": KindPath(_EXTENSIONS, "v1alpha1", "controlplanes"),
    "Worker": KindPath(_EXTENSIONS, "v1alpha1", "workers"),
    "OperatingSystemConfig": KindPath(_EXTENSIONS, "v1alpha1", "operatingsystemconfigs"),
    "ContainerRuntime": KindPath(_EXTENSIONS, "v1alpha1", "containerruntimes"),
    "Extension": KindPath(_EXTENSIONS, "v1alpha1", "extensions"),
    "BackupBucket": KindPath(_EXTENSIONS, "v1alpha1", "backupbuckets"),
    "BackupEntry": KindPath(_EXTENSIONS, "v1alpha1", "backupentries"),
    "DNSRecord": KindPath(_EXTENSIONS, "v1alpha1", "dnsrecords"),
    "DNSProvider": KindPath(_DNS, "v1alpha1", "dnsproviders"),
    "DNSEntry": KindPath(_DNS, "v1alpha1", "dnsentries"),
    "DNSOwner": KindPath(_DNS, "v1alpha1", "dnsowners"),
    "ShootState": KindPath(_CORE, "v1alpha1", "shootstates"),
}


class HTTPResourceClient:
    """Resource client with retry logic and circuit breaker."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        kind_paths: dict[str, KindPath] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._kind_paths = dict(DEFAULT_KIND_PATHS)
        if kind_paths:
            self._kind_paths.update(kind_paths)
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers=self._headers(),
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _path(self, kind: str, namespace: str, name: str | None = None) -> str:
        kind_path = self._kind_paths.get(kind)
        if kind_path is None:
            raise ProviderError(f"unknown resource kind {kind!r}", details={"kind": kind})
        path = kind_path.collection(namespace)
        return f"{path}/{name}" if name else path

    async def aclose(self) -> None:
        await self._client.aclose()

    @circuit(
        failure_threshold=5,
        recovery_timeout=60,
        expected_exception=RetryableHTTPError,
    )
    @retry(
        retry=retry_if_exception_type(RetryableHTTPError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=10),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        content_type: str = "application/json",
    ) -> httpx.Response:
        """Execute HTTP request with retry and circuit breaker."""
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers={"Content-Type": content_type} if json is not None else None,
            )
        except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as exc:
            logger.warning("http_network_error", method=method, path=path, error=str(exc))
            raise RetryableHTTPError(str(exc)) from exc

        if is_retryable_status(response.status_code):
            logger.warning(
                "http_retryable_error",
                status=response.status_code,
                method=method,
                path=path,
            )
            raise RetryableHTTPError(f"HTTP {response.status_code}: {response.text}")
        return response

    async def _call(
        self,
        method: str,
        kind: str,
        namespace: str,
        name: str | None = None,
        *,
        suffix: str = "",
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        content_type: str = "application/json",
    ) -> dict[str, Any]:
        path = self._path(kind, namespace, name) + suffix
        try:
            response = await self._request(
                method, path, params=params, json=json, content_type=content_type
            )
        except RetryableHTTPError as exc:
            raise ProviderError(str(exc), details={"method": method, "path": path}) from exc

        if response.status_code == 404 and name is not None:
            raise NotFoundError(kind, namespace, name)
        if response.is_error:
            logger.error(
                "http_permanent_error",
                status=response.status_code,
                method=method,
                path=path,
            )
            raise ProviderError(
                f"{method} {path} failed with HTTP {response.status_code}: {response.text}",
                details={"status": response.status_code},
            )
        return response.json() if response.content else {}

    @staticmethod
    def _to_resource(kind: str, data: dict[str, Any]) -> ManagedResource:
        data = dict(data)
        data.setdefault("kind", kind)
        return ManagedResource.from_dict(data)

    async def get(self, kind: str, namespace: str, name: str) -> ManagedResource:
        return self._to_resource(kind, await self._call("GET", kind, namespace, name))

    async def list(
        self,
        kind: str,
        namespace: str,
        labels: dict[str, str] | None = None,
    ) -> list[ManagedResource]:
        params = None
        if labels:
            params = {"labelSelector": ",".join(f"{k}={v}" for k, v in sorted(labels.items()))}
        data = await self._call("GET", kind, namespace, params=params)
        return [self._to_resource(kind, item) for item in data.get("items", [])]

    async def apply(self, resource: ManagedResource) -> ManagedResource:
        body = {
            "kind": resource.kind,
            "metadata": {
                "name": resource.name,
                "namespace": resource.namespace,
                "labels": resource.labels,
                "annotations": resource.annotations,
            },
            "spec": resource.spec,
        }
        try:
            data = await self._call(
                "PATCH",
                resource.kind,
                resource.namespace,
                resource.name,
                json=body,
                content_type="application/merge-patch+json",
            )
        except NotFoundError:
            data = await self._call("POST", resource.kind, resource.namespace, json=body)
        return self._to_resource(resource.kind, data)

    async def patch_annotations(
        self,
        kind: str,
        namespace: str,
        name: str,
        annotations: dict[str, str],
    ) -> ManagedResource:
        data = await self._call(
            "PATCH",
            kind,
            namespace,
            name,
            json={"metadata": {"annotations": annotations}},
            content_type="application/merge-patch+json",
        )
        return self._to_resource(kind, data)

    async def update_status_state(
        self,
        kind: str,
        namespace: str,
        name: str,
        state_blob: dict[str, Any] | None,
        resources: list[dict[str, Any]],
    ) -> ManagedResource:
        data = await self._call(
            "PATCH",
            kind,
            namespace,
            name,
            suffix="/status",
            json={"status": {"stateBlob": state_blob, "resources": resources}},
            content_type="application/merge-patch+json",
        )
        return self._to_resource(kind, data)

    async def delete(self, kind: str, namespace: str, name: str) -> None:
        await self._call("DELETE", kind, namespace, name)
