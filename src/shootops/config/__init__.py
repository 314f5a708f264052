"""Settings and YAML loading."""

from shootops.config.loader import (
    load_installations,
    load_registrations,
    load_secrets,
    load_seed,
    load_shoot,
    load_yaml,
)
from shootops.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "load_installations",
    "load_registrations",
    "load_secrets",
    "load_seed",
    "load_shoot",
    "load_yaml",
]
