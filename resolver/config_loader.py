"""
Settings loader for infraresolve.

Settings come from three layers, later layers winning:

1. built-in defaults
2. an optional YAML settings file (``infraresolve.yml`` in the working
   directory unless a path is given)
3. ``INFRARESOLVE_*`` environment variables

The CLI applies its own options on top of the returned settings.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from resolver.exceptions import ConfigurationError
from resolver.lookups import LOOKUP_AWS, LOOKUP_MODES

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "infraresolve.yml"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "region": None,
    "environment": "default",
    "lookup": LOOKUP_AWS,
    "availability_zones": {},
    "images": {},
    "strict_rules": False,
    "default_tags": {},
}

# Environment variable -> settings key
ENVIRONMENT_OVERRIDES = {
    "INFRARESOLVE_REGION": "region",
    "INFRARESOLVE_ENVIRONMENT": "environment",
    "INFRARESOLVE_LOOKUP": "lookup",
}

MAPPING_KEYS = ["availability_zones", "images", "default_tags"]


def load_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load resolver settings.

    Args:
        path: Settings file to read. When omitted, ``infraresolve.yml`` in the
              working directory is read if it exists.

    Returns:
        dict: Settings with every key of DEFAULT_SETTINGS present

    Raises:
        ConfigurationError: If the file cannot be read or holds invalid values

    Examples:
        >>> settings = load_settings()
        >>> settings["lookup"]
        'aws'
    """
    settings = dict(DEFAULT_SETTINGS)

    settings_file = Path(path) if path else Path.cwd() / DEFAULT_SETTINGS_FILE
    if path or settings_file.exists():
        settings.update(_read_settings_file(settings_file))

    for variable, key in ENVIRONMENT_OVERRIDES.items():
        value = os.getenv(variable)
        if value:
            logger.debug(f"Setting '{key}' overridden by {variable}")
            settings[key] = value

    validate_settings(settings)
    return settings


def _read_settings_file(settings_file: Path) -> Dict[str, Any]:
    try:
        with open(settings_file, "r", encoding="utf8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Settings file not found: {settings_file}"
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse settings file {settings_file}: {e}"
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Settings file {settings_file} must contain a mapping"
        )

    unknown = sorted(set(data) - set(DEFAULT_SETTINGS))
    if unknown:
        logger.warning(
            f"Ignoring unknown settings in {settings_file}: {', '.join(unknown)}"
        )
    logger.info(f"Loaded settings from {settings_file}")
    return {k: v for k, v in data.items() if k in DEFAULT_SETTINGS}


def validate_settings(settings: Dict[str, Any]) -> bool:
    """
    Validate a settings dictionary.

    Raises:
        ConfigurationError: If validation fails
    """
    if settings.get("lookup") not in LOOKUP_MODES:
        raise ConfigurationError(
            f"Lookup mode '{settings.get('lookup')}' not supported. "
            f"Must be one of: {', '.join(LOOKUP_MODES)}"
        )

    for key in MAPPING_KEYS:
        if not isinstance(settings.get(key) or {}, dict):
            raise ConfigurationError(f"Setting '{key}' must be a mapping")

    zones = settings.get("availability_zones") or {}
    for region, names in zones.items():
        if not isinstance(names, list) or not names:
            raise ConfigurationError(
                f"availability_zones for region '{region}' must be a non-empty list"
            )

    if not isinstance(settings.get("strict_rules"), bool):
        raise ConfigurationError("Setting 'strict_rules' must be true or false")

    return True
