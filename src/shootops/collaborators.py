"""
Interfaces of the collaborators the orchestrator consumes.

Only the secret store ships with an implementation; rendering and image
resolution belong to the concrete resource business logic.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, runtime_checkable

from shootops.core.errors import ConfigurationError


def compute_checksum(data: Mapping[str, Any]) -> str:
    payload = json.dumps(dict(data), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class SecretData:
    """Current data of a secret plus its integrity checksum."""

    data: Mapping[str, str]
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.checksum:
            object.__setattr__(self, "checksum", compute_checksum(self.data))

    def require(self, key: str) -> str:
        """Return one key of the secret, or fail naming the missing key."""
        try:
            return self.data[key]
        except KeyError:
            raise ConfigurationError(
                f"secret does not contain key {key!r}", details={"key": key}
            ) from None


@runtime_checkable
class SecretStore(Protocol):
    def get(self, name: str) -> SecretData:
        """Return the secret called `name`; raise ConfigurationError if unknown."""
        ...


@dataclass
class StaticSecretStore:
    """Secret store backed by a plain mapping (configuration files, tests)."""

    secrets: dict[str, dict[str, str]] = field(default_factory=dict)

    def get(self, name: str) -> SecretData:
        data = self.secrets.get(name)
        if data is None:
            raise ConfigurationError(f"secret {name!r} not found", details={"secret": name})
        return SecretData(data=dict(data))


@runtime_checkable
class ChartRenderer(Protocol):
    def render(self, chart: str, values: Mapping[str, Any]) -> dict[str, bytes]:
        """Render a chart into named manifests."""
        ...


@runtime_checkable
class ImageResolver(Protocol):
    def resolve(self, name: str, *, runtime_version: str | None = None, target_version: str | None = None) -> str:
        """Return the concrete image reference for a logical image name."""
        ...
