"""
Adapter registry — resolves resources to adapters and dispatches them.

The convergence loop only ever calls ``execute_resource``; it never holds
an adapter itself. The registry is where mock mode and dry runs are
decided, where validation happens, and where an adapter that raises
despite the contract is turned into a failed Receipt.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.resource import Receipt, Resource

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Adapters keyed by name, plus mock-mode dispatch.

    In mock mode every resource goes to the configured mock adapter, or,
    when there is none, is reported as already in sync without any
    adapter being consulted.
    """

    def __init__(self, mock_mode: bool = False):
        self._mock_mode = mock_mode
        self._mock: Adapter | None = None
        self._by_name: dict[str, Adapter] = {}

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Switch mock mode; ``mock_adapter`` receives every resource while on."""
        self._mock_mode = enabled
        self._mock = mock_adapter

    # ── Registration ─────────────────────────────────────────────

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._by_name:
            logger.warning("Replacing adapter %r", adapter.name)
        self._by_name[adapter.name] = adapter
        logger.debug("Adapter %r registered (%s)", adapter.name, type(adapter).__name__)

    def unregister(self, name: str) -> None:
        self._by_name.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._by_name.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._by_name)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of each registered adapter's host tooling."""
        return {
            name: {
                "name": name,
                "available": _probe(adapter),
                "type": type(adapter).__name__,
            }
            for name, adapter in self._by_name.items()
        }

    # ── Dispatch ─────────────────────────────────────────────────

    def execute_resource(
        self,
        resource: Resource,
        dry_run: bool = False,
        refresh: bool = False,
    ) -> Receipt:
        """Evaluate one resource and return its Receipt. Never raises.

        Args:
            resource: The resource to evaluate.
            dry_run: Report drift as a skipped receipt instead of converging.
            refresh: Call the adapter's ``refresh`` rather than ``execute``.
        """
        started = time.monotonic()

        if self._mock_mode and self._mock is None:
            return Receipt.converged(
                adapter=resource.adapter,
                resource_id=resource.id,
                metadata={"mock": True, "dry_run": dry_run},
            )

        adapter = self._mock if self._mock_mode else self._by_name.get(resource.adapter)
        if adapter is None:
            return self._fail(resource, f"No adapter registered for '{resource.adapter}'")

        context = ExecutionContext(resource=resource, dry_run=dry_run)
        try:
            valid, reason = adapter.validate(context)
        except Exception as e:
            return self._fail(resource, f"Validation error: {e}")
        if not valid:
            return self._fail(resource, f"Validation failed: {reason}")

        if dry_run:
            return self._preview(adapter, context, refresh)

        try:
            receipt = adapter.refresh(context) if refresh else adapter.execute(context)
        except Exception as e:
            # Adapters should never raise
            logger.error("Adapter %s raised on %s: %s", resource.adapter, resource.id, e)
            receipt = self._fail(resource, f"Unexpected error: {e}")

        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt

    def _preview(self, adapter: Adapter, context: ExecutionContext, refresh: bool) -> Receipt:
        """Dry-run receipt: skipped, with the changes that would be made."""
        resource = context.resource
        try:
            changes = [f"refresh {resource.target}"] if refresh else adapter.drift(context)
            satisfied = not refresh and adapter.satisfies_refresh(changes)
        except Exception as e:
            return self._fail(resource, f"Drift check error: {e}")
        return Receipt.skip(
            adapter=resource.adapter,
            resource_id=resource.id,
            reason=f"[dry-run] would {'; '.join(changes)}" if changes else "[dry-run] in sync",
            changes=changes,
            metadata={
                "dry_run": True,
                "would_change": bool(changes),
                "satisfies_refresh": satisfied,
            },
        )

    @staticmethod
    def _fail(resource: Resource, error: str) -> Receipt:
        return Receipt.failure(adapter=resource.adapter, resource_id=resource.id, error=error)


def _probe(adapter: Adapter) -> bool:
    try:
        return adapter.is_available()
    except Exception:
        return False
