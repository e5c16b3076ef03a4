"""
Pipeline settings loader.

Reads the non-secret pipeline settings from a YAML file (configs/sync.yml by
default) and validates them into a SyncSettings model. Command-line options
are applied on top of the file values.

Expected layout:

    airtable:
      status: Approved
      status_field: Status
    csv:
      fields: [Latitude, Longitude, Picture, Submitted At]
      picture_field: Picture
      output: offerings.csv
    publish:
      host: 127.0.0.1
      port: 3000
      filename: offerings.csv
    felt:
      layer_name: Poster Submissions
      settle_seconds: 15
      wait_for_processing: false
      processing_timeout_s: 120
      poll_interval_s: 3
    on_empty: skip
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from .config.settings import ConfigurationError
from .domain.models import SyncSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs") / "sync.yml"

# YAML section -> {yaml key: SyncSettings attribute}
_SECTION_KEYS: dict[str, dict[str, str]] = {
    "airtable": {"status": "status", "status_field": "status_field"},
    "csv": {"fields": "fields", "picture_field": "picture_field", "output": "csv_output"},
    "publish": {"host": "host", "port": "port", "filename": "filename"},
    "felt": {
        "layer_name": "layer_name",
        "settle_seconds": "settle_seconds",
        "wait_for_processing": "wait_for_processing",
        "processing_timeout_s": "processing_timeout_s",
        "poll_interval_s": "poll_interval_s",
    },
}


def _flatten(raw: dict[str, Any], source: Path) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for section, keys in _SECTION_KEYS.items():
        block = raw.get(section) or {}
        if not isinstance(block, dict):
            raise ConfigurationError(f"Section '{section}' in {source} must be a mapping")
        unknown = set(block) - set(keys)
        if unknown:
            logger.warning(f"Ignoring unknown keys in '{section}' section of {source}: {sorted(unknown)}")
        for key, attr in keys.items():
            if key in block:
                values[attr] = block[key]
    if "on_empty" in raw:
        values["on_empty"] = raw["on_empty"]
    return values


def load_sync_settings(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> SyncSettings:
    """
    Load pipeline settings from YAML and apply overrides.

    Args:
        config_path: YAML file path. When omitted, configs/sync.yml is used if
            it exists, otherwise built-in defaults apply.
        overrides: Values from the command line; None entries are ignored.

    Returns:
        Validated SyncSettings

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML, or
            holds invalid values
    """
    values: dict[str, Any] = {}

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
    else:
        path = DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None

    if path is not None:
        try:
            with open(path, encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        values.update(_flatten(raw, path))
        logger.debug(f"Loaded pipeline settings from {path}")

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    try:
        return SyncSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline settings: {e}") from e
