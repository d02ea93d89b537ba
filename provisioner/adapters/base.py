"""
Adapter base — the protocol contract between engine and host.

This defines the abstract interface that every adapter must implement.
The engine only talks to adapters through this protocol, never
directly to the filesystem or the service manager.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from provisioner.core.models.resource import Receipt, Resource


class ExecutionContext(BaseModel):
    """Everything an adapter needs to converge a resource."""

    resource: Resource
    dry_run: bool = False

    @property
    def params(self) -> dict:
        return self.resource.params


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters converge one kind of resource and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.

    Every adapter checks current state (``drift``) before mutating,
    so ``execute`` on an in-sync resource is a no-op.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, is_available, validate, drift, execute
        3. Override refresh if notifications mean something
        4. Register it in the AdapterRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'directory', 'systemd')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the resource is well-formed for this adapter.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def drift(self, context: ExecutionContext) -> list[str]:
        """Describe what differs from the desired state.

        Returns:
            Human-readable changes that ``execute`` would make
            (empty = in sync). Read-only.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Converge the resource and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def refresh(self, context: ExecutionContext) -> Receipt:
        """React to a notification. Default: nothing to do."""
        return Receipt.converged(adapter=self.name, resource_id=context.resource.id)

    def satisfies_refresh(self, changes: list[str]) -> bool:
        """Whether making ``changes`` already does what a refresh would."""
        return False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
