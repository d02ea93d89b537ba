"""
Directory adapter — ensure a directory exists with the right ownership.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.host.attributes import (
    apply_attributes,
    attribute_drift,
    desired_attributes,
)
from provisioner.core.models.resource import Receipt

logger = logging.getLogger(__name__)


class DirectoryAdapter(Adapter):
    """Converge ``ensure: directory`` resources.

    Missing parents are created as well. Owner, group and mode are only
    applied to the target itself; recursive fixes are separate ``exec``
    resources.
    """

    @property
    def name(self) -> str:
        return "directory"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        resource = context.resource
        if resource.ensure != "directory":
            return False, f"Unsupported ensure '{resource.ensure}' (expected 'directory')"
        if not Path(resource.target).is_absolute():
            return False, f"Target must be an absolute path: {resource.target}"
        return True, ""

    def drift(self, context: ExecutionContext) -> list[str]:
        resource = context.resource
        path = Path(resource.target)
        if not path.exists():
            return [f"create {path}"] + desired_attributes(
                resource.owner, resource.group, resource.mode_bits
            )
        if not path.is_dir():
            return [f"replace non-directory {path}"]
        return attribute_drift(path, resource.owner, resource.group, resource.mode_bits)

    def execute(self, context: ExecutionContext) -> Receipt:
        resource = context.resource
        path = Path(resource.target)
        changes: list[str] = []

        try:
            if path.exists() and not path.is_dir():
                return Receipt.failure(
                    adapter=self.name,
                    resource_id=resource.id,
                    error=f"{path} exists and is not a directory",
                )
            if not path.exists():
                path.mkdir(parents=True)
                changes.append(f"created {path}")
                logger.debug("Created directory %s", path)

            changes += apply_attributes(path, resource.owner, resource.group, resource.mode_bits)
        except (OSError, LookupError) as e:
            return Receipt.failure(
                adapter=self.name,
                resource_id=resource.id,
                error=f"Cannot converge directory {path}: {e}",
                changes=changes,
            )

        return Receipt.converged(adapter=self.name, resource_id=resource.id, changes=changes)
