"""
Plan use case — show the compiled catalog without evaluating it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.core.models.facts import HostFacts
from provisioner.core.models.resource import Resource
from provisioner.core.use_cases.apply import ApplyResult, load_catalog


@dataclass
class PlanResult:
    """Resources in convergence order."""

    resources: list[Resource] = field(default_factory=list)
    source_url: str | None = None
    config_path: Path | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "config_path": str(self.config_path) if self.config_path else None,
            "source_url": self.source_url,
            "resources": [r.model_dump(mode="json") for r in self.resources],
        }


def build_plan(
    config_path: Path | None = None,
    facts: HostFacts | None = None,
    strict_arch: bool = False,
) -> PlanResult:
    """Compile and order the catalog."""
    loaded = ApplyResult()
    if not load_catalog(loaded, config_path, facts, strict_arch):
        return PlanResult(error=loaded.error)

    assert loaded.catalog is not None
    return PlanResult(
        resources=loaded.catalog.ordered(),
        source_url=loaded.catalog.source_url,
        config_path=loaded.config_path,
    )
