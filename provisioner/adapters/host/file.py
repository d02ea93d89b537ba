"""
File adapter — ensure a file's content and attributes, or its absence.

Content comes from one of:
    params.source   path of a file to copy
    params.content  literal text
    (neither)       attributes only; the file must already exist

Writes go to a temporary file in the same directory and are renamed
into place, so a reader never sees a half-written file.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.host.attributes import (
    apply_attributes,
    attribute_drift,
    carry_attributes,
    desired_attributes,
)
from provisioner.core.models.resource import Receipt

logger = logging.getLogger(__name__)


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def write_atomic(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via a sibling temp file.

    An existing file keeps its mode, owner and group; a new one starts
    out as 0600 and owned by the current user.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    current = path.stat() if path.exists() else None
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            if current is not None:
                carry_attributes(f.fileno(), current)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class FileAdapter(Adapter):
    """Converge ``ensure: present|absent`` file resources."""

    @property
    def name(self) -> str:
        return "file"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        resource = context.resource
        if resource.ensure not in ("present", "absent"):
            return False, f"Unsupported ensure '{resource.ensure}' (expected 'present' or 'absent')"
        if not Path(resource.target).is_absolute():
            return False, f"Target must be an absolute path: {resource.target}"
        if "source" in context.params and "content" in context.params:
            return False, "Params 'source' and 'content' are mutually exclusive"
        return True, ""

    def desired_content(self, context: ExecutionContext) -> bytes | None:
        """The bytes the file should hold, or None if content is unmanaged.

        Raises:
            OSError: The source file cannot be read.
        """
        params = context.params
        if "source" in params:
            return Path(params["source"]).read_bytes()
        if "content" in params:
            return str(params["content"]).encode("utf-8")
        return None

    def drift(self, context: ExecutionContext) -> list[str]:
        resource = context.resource
        path = Path(resource.target)

        if resource.ensure == "absent":
            return [f"remove {path}"] if path.exists() else []

        desired = self.desired_content(context)
        attrs = (resource.owner, resource.group, resource.mode_bits)
        if not path.exists():
            if desired is None:
                return [f"{path} is missing and has no content to create it from"]
            return [f"create {path}"] + desired_attributes(*attrs)

        changes = []
        if desired is not None and _digest(path.read_bytes()) != _digest(desired):
            changes.append(f"update content of {path}")
        return changes + attribute_drift(path, *attrs)

    def execute(self, context: ExecutionContext) -> Receipt:
        resource = context.resource
        path = Path(resource.target)
        changes: list[str] = []

        try:
            if resource.ensure == "absent":
                if path.exists():
                    path.unlink()
                    changes.append(f"removed {path}")
                return Receipt.converged(adapter=self.name, resource_id=resource.id, changes=changes)

            desired = self.desired_content(context)
            if desired is None and not path.exists():
                return Receipt.failure(
                    adapter=self.name,
                    resource_id=resource.id,
                    error=f"{path} does not exist and has no source or content",
                )

            if desired is not None:
                if not path.exists():
                    write_atomic(path, desired)
                    changes.append(f"created {path}")
                elif _digest(path.read_bytes()) != _digest(desired):
                    write_atomic(path, desired)
                    changes.append(f"updated content of {path}")

            changes += apply_attributes(path, resource.owner, resource.group, resource.mode_bits)
        except (OSError, LookupError, ValueError) as e:
            return Receipt.failure(
                adapter=self.name,
                resource_id=resource.id,
                error=f"Cannot converge file {path}: {e}",
                changes=changes,
            )

        if changes:
            logger.debug("Converged %s: %s", path, "; ".join(changes))
        return Receipt.converged(adapter=self.name, resource_id=resource.id, changes=changes)
