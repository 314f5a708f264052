"""`shootops extensions` commands: compute and check required extensions."""

from __future__ import annotations

import json

from shootops.cli import ux
from shootops.config.loader import load_installations, load_registrations, load_seed, load_shoot
from shootops.config.settings import get_settings
from shootops.core.errors import ConfigurationError, ExitCode, MissingExtensionsError
from shootops.shoot.extensions import (
    ControllerRegistration,
    ExtensionID,
    check_required_extensions,
    compute_required_extensions,
)
from shootops.shoot.models import Seed


def _seed(seed_file: str | None) -> Seed:
    if seed_file:
        return load_seed(seed_file)
    settings = get_settings()
    if not settings.seed_provider_type:
        raise ConfigurationError("no seed given: pass --seed or set SHOOTOPS_SEED_PROVIDER_TYPE")
    return Seed(
        name="default",
        provider_type=settings.seed_provider_type,
        backup_provider=settings.seed_backup_provider,
    )


def _print_ids(title: str, ids: list[ExtensionID], output_format: str) -> None:
    if output_format == "json":
        print(json.dumps([{"kind": i.kind, "type": i.type} for i in ids], indent=2))
        return
    ux.print_table(title, ["Kind", "Type"], [[i.kind, i.type] for i in ids])


def required_command(
    shoot_file: str,
    seed_file: str | None = None,
    registrations_file: str | None = None,
    output_format: str = "table",
) -> int:
    shoot = load_shoot(shoot_file)
    seed = _seed(seed_file)
    registrations: list[ControllerRegistration] = (
        load_registrations(registrations_file) if registrations_file else []
    )
    required = sorted(compute_required_extensions(shoot, seed, registrations))
    _print_ids(f"Required extensions for {shoot.name}", required, output_format)
    return ExitCode.SUCCESS


def check_command(
    shoot_file: str,
    installations_file: str,
    seed_file: str | None = None,
    output_format: str = "table",
) -> int:
    """Run the readiness gate; exit BLOCKED listing every missing pair."""
    shoot = load_shoot(shoot_file)
    seed = _seed(seed_file)
    registrations, installations = load_installations(installations_file)
    required = compute_required_extensions(shoot, seed, registrations)
    try:
        check_required_extensions(required, installations, seed.name if seed_file else None)
    except MissingExtensionsError as e:
        missing = [ExtensionID(kind, type_) for kind, type_ in e.missing]
        if output_format != "json":
            ux.error(f"{len(missing)} required extension(s) missing for {shoot.name}")
        _print_ids("Missing extensions", missing, output_format)
        return ExitCode.BLOCKED
    if output_format == "json":
        print(json.dumps({"ready": True, "required": len(required)}))
    else:
        ux.success(f"all {len(required)} required extensions are installed and healthy")
    return ExitCode.SUCCESS
