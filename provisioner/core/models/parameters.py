"""
Parameters model — the Parameter Set for one convergence run.

Loaded from minio.yml, this is everything the recipe needs to know
about the desired installation. It is frozen: a run never mutates
its parameters.
"""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Hex digest length per supported checksum algorithm
CHECKSUM_LENGTHS: dict[str, int] = {
    "md5": 32,
    "sha1": 40,
    "sha256": 64,
    "sha512": 128,
}

_MODE_RE = re.compile(r"^0?[0-7]{3,4}$")


class Parameters(BaseModel):
    """The Parameter Set.

    Every field has a default except ``version`` and ``checksum``,
    which must be pinned per release whenever the binary is managed
    (``package_ensure: present``).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ── Package ──────────────────────────────────────────────────
    package_ensure: Literal["present", "absent"] = "present"
    base_url: str = "https://dl.minio.io/server/minio/release"
    version: str | None = None
    checksum: str | None = None
    checksum_type: Literal["md5", "sha1", "sha256", "sha512"] = "sha256"

    # ── Ownership ────────────────────────────────────────────────
    owner: str = "minio"
    group: str = "minio"

    # ── Layout ───────────────────────────────────────────────────
    configuration_directory: str = "/etc/minio"
    installation_directory: str = "/opt/minio"
    storage_root: str = "/var/minio"
    storage_dataset: str | None = "tank/minio"

    # ── Listener ─────────────────────────────────────────────────
    listen_ip: str = "127.0.0.1"
    listen_port: int = Field(default=9000, ge=1, le=65535)

    # ── TLS ──────────────────────────────────────────────────────
    certificate_source_directory: str = "/etc/ssl/minio"
    certificate_owner: str = "minio"

    # ── Service ──────────────────────────────────────────────────
    manage_service: bool = True
    service_template: str | None = None   # None = packaged systemd unit
    service_provider: str = "systemd"
    service_name: str = "minio"
    service_unit_directory: str = "/etc/systemd/system"

    # ── Server configuration (config.json) ───────────────────────
    configuration: dict[str, Any] = Field(default_factory=dict)

    @field_validator(
        "configuration_directory",
        "installation_directory",
        "storage_root",
        "certificate_source_directory",
        "service_unit_directory",
    )
    @classmethod
    def _absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"must be an absolute path, got '{value}'")
        return value.rstrip("/") or "/"

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("checksum")
    @classmethod
    def _lower_hex(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else value

    @model_validator(mode="after")
    def _pinned_release(self) -> Parameters:
        if self.package_ensure != "present":
            return self
        if not self.version:
            raise ValueError("'version' must be pinned when package_ensure is 'present'")
        if not self.checksum:
            raise ValueError("'checksum' must be pinned when package_ensure is 'present'")
        expected = CHECKSUM_LENGTHS[self.checksum_type]
        if len(self.checksum) != expected or not re.fullmatch(r"[0-9a-f]+", self.checksum):
            raise ValueError(
                f"'checksum' is not a valid {self.checksum_type} digest "
                f"({expected} hex characters expected)"
            )
        return self

    # ── Derived paths ────────────────────────────────────────────

    @property
    def minio_home(self) -> str:
        return f"{self.configuration_directory}/.minio"

    @property
    def certs_directory(self) -> str:
        return f"{self.minio_home}/certs"

    @property
    def binary_path(self) -> str:
        return f"{self.installation_directory}/minio"

    @property
    def unit_path(self) -> str:
        return f"{self.service_unit_directory}/{self.service_name}.service"

    def template_context(self) -> dict[str, str]:
        """Flat string mapping used to render the service unit."""
        context = {
            key: "" if value is None else str(value)
            for key, value in self.model_dump(exclude={"configuration"}).items()
        }
        context["binary_path"] = self.binary_path
        return context


def is_valid_mode(mode: str) -> bool:
    """Whether ``mode`` is an octal permission string like ``0744``."""
    return bool(_MODE_RE.match(mode))
