"""
Resource and Receipt models — the convergence contract.

Resources are desired-state assertions. Receipts are the outcome of
evaluating one. The engine hands Resources to adapters and gets
Receipts back. Never exceptions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from provisioner.core.models.parameters import is_valid_mode


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


Ensure = Literal["present", "absent", "directory", "running"]


class Resource(BaseModel):
    """A desired-state assertion about one thing on the host.

    ``requires`` only orders. ``notify`` orders *and* asks the
    target to refresh when this resource changes. A ``refreshonly``
    resource is evaluated only when notified.
    """

    id: str                         # unique within a catalog, e.g. "directory:/etc/minio"
    adapter: str                    # which adapter converges this
    target: str                     # path, dataset or unit name
    ensure: Ensure = "present"
    owner: str | None = None
    group: str | None = None
    mode: str | None = None         # octal string, e.g. "0744"
    params: dict[str, Any] = Field(default_factory=dict)

    requires: list[str] = Field(default_factory=list)
    notify: list[str] = Field(default_factory=list)
    refreshonly: bool = False

    @field_validator("mode")
    @classmethod
    def _octal_mode(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_mode(value):
            raise ValueError(f"mode must be an octal string like '0744', got '{value}'")
        return value

    @property
    def mode_bits(self) -> int | None:
        """Permission bits parsed from ``mode``."""
        return int(self.mode, 8) if self.mode else None


class Receipt(BaseModel):
    """Result of evaluating one resource.

    The adapter NEVER raises exceptions — failures are captured here.
    ``changes`` lists what was (or, in a dry run, would be) done.
    """

    adapter: str
    resource_id: str
    status: Literal["unchanged", "changed", "failed", "skipped"] = "unchanged"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    changes: list[str] = Field(default_factory=list)
    refreshed: bool = False

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the resource is converged (or was left alone on purpose)."""
        return self.status != "failed"

    @property
    def changed(self) -> bool:
        return self.status == "changed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def converged(
        cls,
        adapter: str,
        resource_id: str,
        changes: list[str] | None = None,
        **kwargs: Any,
    ) -> Receipt:
        """Create a receipt for a successful evaluation.

        Status is ``changed`` when ``changes`` is non-empty.
        """
        changes = changes or []
        return cls(
            adapter=adapter,
            resource_id=resource_id,
            status="changed" if changes else "unchanged",
            changes=changes,
            output="; ".join(changes),
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        resource_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            resource_id=resource_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        resource_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            resource_id=resource_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
