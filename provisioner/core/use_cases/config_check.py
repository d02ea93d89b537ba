"""
Config check use case — validate minio.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.core.config.loader import ConfigError, find_config_file, load_parameters
from provisioner.core.models.parameters import Parameters
from provisioner.core.recipe import SUPPORTED_SERVICE_PROVIDERS


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    params: Parameters | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "version": self.params.version if self.params else None,
            "manage_service": self.params.manage_service if self.params else None,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate the configuration without touching the host.

    Args:
        config_path: Optional explicit path to minio.yml.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.errors.append("No minio.yml found.")
        return result
    result.config_path = config_path

    try:
        params = load_parameters(config_path)
        result.params = params
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    if params.manage_service and params.service_provider not in SUPPORTED_SERVICE_PROVIDERS:
        result.errors.append(
            f"Unsupported service provider '{params.service_provider}': "
            f"supported providers are {', '.join(SUPPORTED_SERVICE_PROVIDERS)}"
        )

    if params.service_template and not Path(params.service_template).is_file():
        result.errors.append(f"Service template not found: {params.service_template}")

    if not params.storage_dataset:
        result.warnings.append("No storage_dataset set; the storage root is a plain directory.")

    for name in ("private.key", "public.crt"):
        source = Path(params.certificate_source_directory) / name
        if not source.is_file():
            result.warnings.append(f"Certificate source does not exist yet: {source}")

    nested = {
        "configuration_directory": params.configuration_directory,
        "installation_directory": params.installation_directory,
    }
    for key, path in nested.items():
        if path == params.storage_root or path.startswith(params.storage_root + "/"):
            result.warnings.append(
                f"{key} is inside storage_root; MinIO will see it as a bucket."
            )

    if params.listen_ip == "0.0.0.0":
        result.warnings.append("listen_ip 0.0.0.0 exposes MinIO on every interface.")

    result.valid = len(result.errors) == 0
    return result
