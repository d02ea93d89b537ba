"""
Apply use case — converge the host to the configured MinIO install.

This is the top-level orchestrator: it loads parameters, gathers host
facts, compiles the catalog, converges it, and records the run in the
audit ledger. The full vertical slice from minio.yml to a changed host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters import default_registry
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.config.loader import ConfigError, config_base_dir, find_config_file, load_parameters
from provisioner.core.engine.converge import (
    Catalog,
    ConvergenceReport,
    converge,
    generate_operation_id,
    write_audit_entry,
)
from provisioner.core.engine.graph import CatalogError
from provisioner.core.facts import UnsupportedArchitecture, gather_facts
from provisioner.core.models.facts import HostFacts
from provisioner.core.models.parameters import Parameters
from provisioner.core.persistence.audit import AuditWriter
from provisioner.core.recipe import compile_catalog

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Result of an apply (or dry-run) invocation."""

    report: ConvergenceReport | None = None
    catalog: Catalog | None = None
    params: Parameters | None = None
    facts: HostFacts | None = None
    config_path: Path | None = None
    audit_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.failed == 0

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["config_path"] = str(self.config_path) if self.config_path else None
        result["version"] = self.params.version if self.params else None
        result["source_url"] = self.catalog.source_url if self.catalog else None
        if self.facts:
            result["facts"] = self.facts.model_dump()
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def load_catalog(
    result: ApplyResult,
    config_path: Path | None,
    facts: HostFacts | None,
    strict_arch: bool,
) -> bool:
    """Fill ``result`` with parameters, facts and the compiled catalog.

    Returns:
        False (with ``result.error`` set) if anything is invalid.
    """
    try:
        if config_path is None:
            config_path = find_config_file()
        params = load_parameters(config_path)
    except ConfigError as e:
        result.error = str(e)
        return False

    result.config_path = config_path
    result.params = params
    result.facts = facts or gather_facts()

    try:
        result.catalog = compile_catalog(params, result.facts, strict_arch=strict_arch)
        result.catalog.ordered()
    except (CatalogError, UnsupportedArchitecture) as e:
        result.error = str(e)
        return False
    return True


def run_apply(
    config_path: Path | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    strict_arch: bool = False,
    facts: HostFacts | None = None,
    registry: AdapterRegistry | None = None,
    audit_path: Path | None = None,
) -> ApplyResult:
    """Converge the host.

    Args:
        config_path: Optional explicit path to minio.yml.
        dry_run: If True, report drift but change nothing.
        mock_mode: If True, use mock adapter responses.
        strict_arch: Reject architectures without a known build.
        facts: Optional host facts (gathered when omitted).
        registry: Optional pre-configured adapter registry.
        audit_path: Optional audit ledger location.

    Returns:
        ApplyResult with the convergence report.
    """
    result = ApplyResult()
    if not load_catalog(result, config_path, facts, strict_arch):
        return result

    catalog = result.catalog
    assert catalog is not None

    if registry is None:
        registry = default_registry(mock_mode=mock_mode)

    operation_id = generate_operation_id()
    logger.info(
        "%s %d resources (%s)",
        "Checking" if dry_run else "Converging",
        len(catalog.resources),
        operation_id,
    )
    report = converge(catalog, registry, dry_run=dry_run, operation_id=operation_id)
    result.report = report

    if dry_run or mock_mode:
        return result

    # ── Write audit log ──────────────────────────────────────────
    if audit_path is None and result.config_path is not None:
        audit_path = AuditWriter(base_dir=config_base_dir(result.config_path)).path
    if audit_path is not None:
        write_audit_entry(
            report,
            AuditWriter(audit_path),
            context={
                "version": result.params.version if result.params else None,
                "source_url": catalog.source_url,
                "facts": result.facts.model_dump() if result.facts else {},
            },
        )
        result.audit_path = audit_path

    return result
