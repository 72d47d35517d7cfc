"""
Configuration loader for pipeline analytics settings.

Loads a YAML settings file, validates it against the Pydantic schema,
and caches the result per path. With no path and no DEAL_TRACKER_CONFIG
environment variable, the schema defaults are used.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from deal_tracker.config.schema import AnalyticsSettings
from deal_tracker.exceptions import AnalyticsConfigError

CONFIG_ENV_VAR = "DEAL_TRACKER_CONFIG"

# Module-level cache: resolved path -> AnalyticsSettings
_loaded_settings: dict[str, AnalyticsSettings] = {}


def load_analytics_settings(
    config_path: Optional[str | Path] = None,
) -> AnalyticsSettings:
    """
    Load and validate analytics settings.

    Args:
        config_path: Optional explicit path to a YAML file. Falls back to
                     $DEAL_TRACKER_CONFIG, then to built-in defaults.

    Returns:
        Validated AnalyticsSettings instance.

    Raises:
        AnalyticsConfigError: If the file is missing, empty, or invalid.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or None
    if config_path is None:
        return AnalyticsSettings()

    config_path = Path(config_path).resolve()
    cache_key = str(config_path)
    if cache_key in _loaded_settings:
        return _loaded_settings[cache_key]

    if not config_path.exists():
        raise AnalyticsConfigError(
            f"Config not found: {config_path}",
            config_path=cache_key,
        )

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raise AnalyticsConfigError(
            f"Config file is empty: {config_path}",
            config_path=cache_key,
        )
    if not isinstance(raw, dict):
        raise AnalyticsConfigError(
            f"Config must be a mapping: {config_path}",
            config_path=cache_key,
        )

    # Settings may sit at the top level or under an "analytics:" key
    section = raw.get("analytics", raw) or {}
    if not isinstance(section, dict):
        raise AnalyticsConfigError(
            f"analytics settings must be a mapping: {config_path}",
            config_path=cache_key,
        )

    try:
        settings = AnalyticsSettings(**section)
    except ValidationError as e:
        raise AnalyticsConfigError(
            f"Invalid analytics config {config_path}:\n{e}",
            config_path=cache_key,
            details={"errors": e.errors()},
        ) from e

    _loaded_settings[cache_key] = settings
    return settings


def clear_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    _loaded_settings.clear()
