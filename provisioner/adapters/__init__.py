"""Adapters — bindings between the engine and the host.

Public re-exports for convenient access.
"""

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]


def default_registry(mock_mode: bool = False) -> AdapterRegistry:
    """A registry with every host adapter registered."""
    from provisioner.adapters.host import (
        ArchiveAdapter,
        DirectoryAdapter,
        ExecAdapter,
        FileAdapter,
        SystemdAdapter,
        TemplateAdapter,
        ZfsAdapter,
    )

    registry = AdapterRegistry(mock_mode=mock_mode)
    for adapter in (
        ZfsAdapter(),
        DirectoryAdapter(),
        FileAdapter(),
        ArchiveAdapter(),
        ExecAdapter(),
        TemplateAdapter(),
        SystemdAdapter(),
    ):
        registry.register(adapter)
    return registry
