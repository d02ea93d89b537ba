"""
Configuration loader — reads minio.yml into the Parameter Set.

It reads YAML, validates it against the ``Parameters`` schema, and
returns a frozen model. The file may be flat or wrap everything under
a ``minio:`` key.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from provisioner.core.models.parameters import Parameters

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "minio.yml"
_WRAPPER_KEY = "minio"


class ConfigError(Exception):
    """Raised when the configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for minio.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to minio.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_parameters(path: Path | None = None) -> Parameters:
    """Load and validate the Parameter Set.

    Args:
        path: Explicit path to minio.yml. If None, searches upward.

    Returns:
        Validated, frozen Parameters.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {CONFIG_FILE} found. Create one (version and checksum must be "
            "pinned) or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading parameters from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    if _WRAPPER_KEY in data:
        data = data[_WRAPPER_KEY] or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping under '{_WRAPPER_KEY}' in {path}")

    try:
        params = Parameters.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {_format_errors(e)}") from e

    logger.info("Loaded parameters for MinIO %s from %s", params.version or "(unmanaged)", path)
    return params


def _format_errors(error: ValidationError) -> str:
    """One line per pydantic error: ``field: message``."""
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "(root)"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def config_base_dir(config_path: Path) -> Path:
    """Directory the audit ledger lives under for a config file."""
    return config_path.parent.resolve()
