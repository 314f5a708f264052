"""
YAML loading of shoot, seed and controller installation descriptions.

Malformed or incomplete documents surface as ConfigurationError before
anything is deployed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml

from shootops.collaborators import StaticSecretStore
from shootops.core.errors import ConfigurationError
from shootops.shoot.extensions import ControllerInstallation, ControllerRegistration
from shootops.shoot.models import Seed, Shoot

logger = structlog.get_logger()


def load_yaml(path: str | Path) -> Any:
    """Read one YAML document."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"file not found: {path}", details={"path": str(path)}) from None
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}", details={"path": str(path)}) from e
    logger.debug("loaded_yaml", path=str(path))
    return data


def load_shoot(path: str | Path) -> Shoot:
    return Shoot.from_dict(load_yaml(path))


def load_seed(path: str | Path) -> Seed:
    return Seed.from_dict(load_yaml(path))


def load_secrets(path: str | Path) -> StaticSecretStore:
    """Load ``{secretName: {key: value}}`` into a static secret store."""
    data = load_yaml(path) or {}
    if not isinstance(data, dict) or not all(isinstance(v, dict) for v in data.values()):
        raise ConfigurationError(f"{path} must map secret names to key/value mappings")
    return StaticSecretStore(secrets={str(k): {str(kk): str(vv) for kk, vv in v.items()} for k, v in data.items()})


def parse_registrations(data: Any) -> list[ControllerRegistration]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigurationError("registrations must be a list")
    return [ControllerRegistration.from_dict(item) for item in data]


def load_registrations(path: str | Path) -> list[ControllerRegistration]:
    data = load_yaml(path) or {}
    if isinstance(data, dict):
        data = data.get("registrations")
    return parse_registrations(data)


def load_installations(
    path: str | Path,
) -> tuple[list[ControllerRegistration], list[ControllerInstallation]]:
    """
    Load registrations and the installations referencing them.

    Expected layout::

        registrations:
          - name: provider-local
            resources:
              - {kind: Infrastructure, type: local}
        installations:
          - {registration: provider-local, seed: seed-1, installed: true, healthy: true}
    """
    data = load_yaml(path) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must be a mapping with registrations and installations")

    registrations = parse_registrations(data.get("registrations"))
    by_name = {registration.name: registration for registration in registrations}

    installations: list[ControllerInstallation] = []
    for i, item in enumerate(data.get("installations") or []):
        if not isinstance(item, dict):
            raise ConfigurationError(f"installations[{i}] must be a mapping")
        name = item.get("registration")
        registration = by_name.get(name)
        if registration is None:
            raise ConfigurationError(
                f"installations[{i}] references unknown registration {name!r}",
                details={"registration": name},
            )
        installations.append(
            ControllerInstallation(
                registration=registration,
                seed=str(item.get("seed", "")),
                installed=bool(item.get("installed", False)),
                healthy=bool(item.get("healthy", False)),
            )
        )
    return registrations, installations
