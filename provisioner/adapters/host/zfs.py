"""
ZFS adapter — ensure the dataset backing the storage root exists.
"""

from __future__ import annotations

import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.host.runner import run_command
from provisioner.core.models.resource import Receipt


def _dataset_mountpoint(dataset: str) -> str | None:
    """Current mountpoint, or None if the dataset does not exist."""
    result = run_command(["zfs", "list", "-H", "-o", "name,mountpoint", dataset], timeout=30)
    if not result["ok"]:
        return None
    fields = result["stdout"].strip().split("\t")
    return fields[1] if len(fields) > 1 else ""


class ZfsAdapter(Adapter):
    """Converge ``ensure: present`` dataset resources.

    Resource params:
        mountpoint (str): Where the dataset must be mounted.
    """

    @property
    def name(self) -> str:
        return "zfs"

    def is_available(self) -> bool:
        return shutil.which("zfs") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if context.resource.ensure != "present":
            return False, f"Unsupported ensure '{context.resource.ensure}' (expected 'present')"
        if not context.params.get("mountpoint"):
            return False, "Missing required param: 'mountpoint'"
        if not self.is_available():
            return False, "zfs command not found"
        return True, ""

    def drift(self, context: ExecutionContext) -> list[str]:
        dataset = context.resource.target
        wanted = context.params["mountpoint"]
        current = _dataset_mountpoint(dataset)
        if current is None:
            return [f"create dataset {dataset} (mountpoint={wanted})"]
        if current != wanted:
            return [f"mountpoint {current} → {wanted}"]
        return []

    def execute(self, context: ExecutionContext) -> Receipt:
        resource = context.resource
        dataset = resource.target
        wanted = context.params["mountpoint"]
        current = _dataset_mountpoint(dataset)

        if current is None:
            cmd = ["zfs", "create", "-p", "-o", f"mountpoint={wanted}", dataset]
            change = f"created dataset {dataset}"
        elif current != wanted:
            cmd = ["zfs", "set", f"mountpoint={wanted}", dataset]
            change = f"mountpoint {current} → {wanted}"
        else:
            return Receipt.converged(adapter=self.name, resource_id=resource.id)

        result = run_command(cmd, timeout=120)
        if not result["ok"]:
            return Receipt.failure(
                adapter=self.name,
                resource_id=resource.id,
                error=f"{' '.join(cmd)} failed: {result['error']}",
            )
        return Receipt.converged(adapter=self.name, resource_id=resource.id, changes=[change])
