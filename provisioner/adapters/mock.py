"""
Mock adapter — universal test double for all adapter operations.

Used in mock mode to simulate adapter behavior without touching the
host. Configurable per resource: report drift once (then in sync),
fail, or return a custom receipt.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.resource import Receipt


class MockAdapter(Adapter):
    """Universal mock adapter for testing.

    By default every resource is already in sync. ``set_drift`` makes
    a resource report changes until it is executed once, which is
    exactly how a real idempotent adapter behaves.
    """

    def __init__(self, adapter_name: str = "mock", available: bool = True):
        self._name = adapter_name
        self._available = available
        self._responses: dict[str, Receipt] = {}
        self._drift: dict[str, list[str]] = {}
        self._call_log: list[ExecutionContext] = []
        self._refresh_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts ``execute`` has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def refresh_log(self) -> list[ExecutionContext]:
        """All execution contexts ``refresh`` has received."""
        return self._refresh_log

    def refreshed(self, resource_id: str) -> int:
        """Number of times ``resource_id`` was refreshed."""
        return sum(1 for ctx in self._refresh_log if ctx.resource.id == resource_id)

    def executed(self, resource_id: str) -> int:
        """Number of times ``resource_id`` was executed."""
        return sum(1 for ctx in self._call_log if ctx.resource.id == resource_id)

    def is_available(self) -> bool:
        return self._available

    def set_response(self, resource_id: str, receipt: Receipt) -> None:
        """Set a custom response for a specific resource ID."""
        self._responses[resource_id] = receipt

    def set_failure(self, resource_id: str, error: str = "Mock failure") -> None:
        """Configure a specific resource to fail."""
        self._responses[resource_id] = Receipt.failure(
            adapter=self._name,
            resource_id=resource_id,
            error=error,
        )

    def set_drift(self, resource_id: str, *changes: str) -> None:
        """Make a resource out of sync until its next execute."""
        self._drift[resource_id] = list(changes) or ["converge"]

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def drift(self, context: ExecutionContext) -> list[str]:
        return list(self._drift.get(context.resource.id, []))

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)
        rid = context.resource.id

        if rid in self._responses:
            return self._responses[rid]

        changes = self._drift.pop(rid, [])
        return Receipt.converged(
            adapter=self._name,
            resource_id=rid,
            changes=changes,
            metadata={"mock": True, "satisfies_refresh": self.satisfies_refresh(changes)},
        )

    def satisfies_refresh(self, changes: list[str]) -> bool:
        """Like a service manager: starting something needs no restart after."""
        return any(change.startswith("start ") for change in changes)

    def refresh(self, context: ExecutionContext) -> Receipt:
        self._refresh_log.append(context)
        return Receipt.converged(
            adapter=self._name,
            resource_id=context.resource.id,
            changes=[f"refresh {context.resource.target}"],
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call logs, drift and custom responses."""
        self._call_log.clear()
        self._refresh_log.clear()
        self._responses.clear()
        self._drift.clear()
