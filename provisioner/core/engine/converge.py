"""
Engine — the convergence loop.

Takes a compiled catalog, orders it, and evaluates each resource
through the adapter registry, one at a time. Changes queue refreshes
on notified resources; the first failure stops the run.

Flow:
    catalog → validate → order → evaluate / refresh → report
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.engine import graph
from provisioner.core.engine.graph import CatalogError
from provisioner.core.models.resource import Receipt, Resource
from provisioner.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


@dataclass
class Catalog:
    """The resources declared for one run."""

    resources: list[Resource] = field(default_factory=list)
    source_url: str | None = None

    def get(self, resource_id: str) -> Resource | None:
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None

    def add(self, resource: Resource) -> Resource:
        self.resources.append(resource)
        return resource

    def ordered(self) -> list[Resource]:
        """Resources in convergence order.

        Raises:
            CatalogError: If the graph is invalid.
        """
        errors = graph.validate(self.resources)
        if errors:
            raise CatalogError("; ".join(errors))
        return graph.order(self.resources)


@dataclass
class ConvergenceReport:
    """Result of converging a catalog."""

    operation_id: str = ""
    dry_run: bool = False
    receipts: list[Receipt] = field(default_factory=list)
    not_evaluated: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def changed(self) -> int:
        return sum(1 for r in self.receipts if _reports_change(r, self.dry_run))

    @property
    def unchanged(self) -> int:
        return sum(1 for r in self.receipts if r.status == "unchanged")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.status == "skipped")

    @property
    def refreshed(self) -> list[str]:
        return [r.resource_id for r in self.receipts if r.refreshed]

    @property
    def changed_ids(self) -> list[str]:
        return [r.resource_id for r in self.receipts if _reports_change(r, self.dry_run)]

    @property
    def aborted(self) -> bool:
        return self.failed > 0

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if any(r.changed for r in self.receipts):
            return "partial"
        return "failed"

    def receipt_for(self, resource_id: str) -> Receipt | None:
        for receipt in self.receipts:
            if receipt.resource_id == resource_id:
                return receipt
        return None

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "dry_run": self.dry_run,
            "status": self.status,
            "total": self.total,
            "changed": self.changed,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "skipped": self.skipped,
            "refreshed": self.refreshed,
            "not_evaluated": self.not_evaluated,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


def _reports_change(receipt: Receipt, dry_run: bool) -> bool:
    if dry_run:
        return bool(receipt.metadata.get("would_change")) or receipt.refreshed
    return receipt.changed


def converge(
    catalog: Catalog,
    registry: AdapterRegistry,
    dry_run: bool = False,
    operation_id: str | None = None,
) -> ConvergenceReport:
    """Converge every resource in ``catalog``.

    Single-threaded and strictly ordered. A refresh-only resource is
    evaluated only when something it is notified by changed. Any other
    notified resource is refreshed at most once per run, after its own
    evaluation, unless that evaluation already satisfied the refresh
    (e.g. a service that was just started).

    Args:
        catalog: The compiled catalog.
        registry: Adapter registry for dispatch.
        dry_run: If True, report drift without changing the host.
        operation_id: Optional identifier; generated when omitted.

    Returns:
        ConvergenceReport with one receipt per evaluated resource.

    Raises:
        CatalogError: If the catalog graph is invalid. Raised before
            any resource is evaluated.
    """
    ordered = catalog.ordered()
    report = ConvergenceReport(
        operation_id=operation_id or generate_operation_id(),
        dry_run=dry_run,
    )
    pending: set[str] = set()

    for index, resource in enumerate(ordered):
        notified = resource.id in pending

        if resource.refreshonly and not notified:
            receipt = Receipt.skip(
                adapter=resource.adapter,
                resource_id=resource.id,
                reason="refresh-only, not notified",
            )
        else:
            receipt = registry.execute_resource(resource, dry_run=dry_run)
            if notified and resource.refreshonly:
                receipt.refreshed = True
            elif notified and receipt.ok and not receipt.metadata.get("satisfies_refresh"):
                receipt = _refresh(registry, resource, receipt, dry_run)

        report.receipts.append(receipt)
        _log_receipt(resource, receipt)

        if receipt.failed:
            report.not_evaluated = [r.id for r in ordered[index + 1:]]
            logger.error(
                "Aborting run: %s failed (%s); %d resource(s) not evaluated",
                resource.id,
                receipt.error,
                len(report.not_evaluated),
            )
            break

        if _reports_change(receipt, dry_run):
            pending.update(resource.notify)

    return report


def _refresh(
    registry: AdapterRegistry,
    resource: Resource,
    receipt: Receipt,
    dry_run: bool,
) -> Receipt:
    """Refresh ``resource`` and fold the result into its receipt."""
    refreshed = registry.execute_resource(resource, dry_run=dry_run, refresh=True)
    if refreshed.failed:
        return refreshed

    merged = receipt.model_copy(deep=True)
    merged.changes = receipt.changes + refreshed.changes
    merged.output = "; ".join(merged.changes)
    merged.refreshed = True
    merged.duration_ms = receipt.duration_ms + refreshed.duration_ms
    if not dry_run:
        merged.status = "changed"
    return merged


def _log_receipt(resource: Resource, receipt: Receipt) -> None:
    marker = {"changed": "✎", "unchanged": "✓", "failed": "✗"}.get(receipt.status, "⊘")
    if receipt.failed:
        logger.error("%s %s → %s", marker, resource.id, receipt.error)
    elif receipt.changes:
        logger.info("%s %s → %s", marker, resource.id, "; ".join(receipt.changes))
    else:
        logger.debug("%s %s → %s", marker, resource.id, receipt.status)


def write_audit_entry(
    report: ConvergenceReport,
    audit_writer: AuditWriter,
    context: dict | None = None,
) -> None:
    """Write convergence results to the audit ledger."""
    entry = AuditEntry(
        operation_id=report.operation_id,
        operation_type="apply",
        status=report.status,
        resources_total=report.total,
        resources_changed=report.changed,
        resources_unchanged=report.unchanged,
        resources_failed=report.failed,
        resources_skipped=report.skipped,
        changed=report.changed_ids,
        refreshed=report.refreshed,
        not_evaluated=report.not_evaluated,
        duration_ms=sum(r.duration_ms for r in report.receipts),
        errors=[f"{r.resource_id}: {r.error}" for r in report.receipts if r.failed],
        context=context or {},
    )
    audit_writer.write(entry)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"
