"""
Systemd adapter — keep a unit running and enabled; restart on refresh.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.host.runner import run_command
from provisioner.core.models.resource import Receipt

logger = logging.getLogger(__name__)

_PAST = {"enable": "enabled", "start": "started"}


def _systemctl(*args: str) -> dict:
    return run_command(["systemctl", *args], timeout=60)


def _query(verb: str, unit: str) -> str:
    """``systemctl is-active|is-enabled`` output (state word only)."""
    result = _systemctl(verb, unit)
    return (result.get("stdout") or "").strip() or "unknown"


class SystemdAdapter(Adapter):
    """Converge ``ensure: running`` service resources under systemd.

    ``execute`` reloads unit files, then enables and starts the unit as
    needed. Starting a stopped unit satisfies any pending refresh, so a
    service started in this run is not restarted right after. ``refresh``
    reloads unit files and restarts.
    """

    @property
    def name(self) -> str:
        return "systemd"

    def is_available(self) -> bool:
        return shutil.which("systemctl") is not None and Path("/run/systemd/system").exists()

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if context.resource.ensure != "running":
            return False, f"Unsupported ensure '{context.resource.ensure}' (expected 'running')"
        if shutil.which("systemctl") is None:
            return False, "systemctl not found; is this a systemd host?"
        return True, ""

    def drift(self, context: ExecutionContext) -> list[str]:
        unit = context.resource.target
        changes = []
        if _query("is-enabled", unit) != "enabled":
            changes.append(f"enable {unit}")
        if _query("is-active", unit) != "active":
            changes.append(f"start {unit}")
        return changes

    def execute(self, context: ExecutionContext) -> Receipt:
        resource = context.resource
        unit = resource.target
        pending = self.drift(context)
        if not pending:
            return Receipt.converged(adapter=self.name, resource_id=resource.id)

        reload = _systemctl("daemon-reload")
        if not reload["ok"]:
            return self._failed(resource.id, "daemon-reload", reload)

        changes: list[str] = []
        for change in pending:
            verb = change.split(" ", 1)[0]
            result = _systemctl(verb, unit)
            if not result["ok"]:
                return self._failed(resource.id, change, result, changes)
            changes.append(f"{_PAST[verb]} {unit}")
            logger.info("systemd: %s", change)

        return Receipt.converged(
            adapter=self.name,
            resource_id=resource.id,
            changes=changes,
            metadata={"satisfies_refresh": self.satisfies_refresh(pending)},
        )

    def satisfies_refresh(self, changes: list[str]) -> bool:
        """A unit that gets started has nothing left to restart."""
        return any(change.startswith("start ") for change in changes)

    def refresh(self, context: ExecutionContext) -> Receipt:
        resource = context.resource
        unit = resource.target

        reload = _systemctl("daemon-reload")
        if not reload["ok"]:
            return self._failed(resource.id, "daemon-reload", reload)

        result = _systemctl("restart", unit)
        if not result["ok"]:
            return self._failed(resource.id, f"restart {unit}", result)

        logger.info("systemd: restarted %s", unit)
        return Receipt.converged(
            adapter=self.name,
            resource_id=resource.id,
            changes=[f"restarted {unit}"],
        )

    def _failed(
        self,
        resource_id: str,
        step: str,
        result: dict,
        changes: list[str] | None = None,
    ) -> Receipt:
        return Receipt.failure(
            adapter=self.name,
            resource_id=resource_id,
            error=f"systemctl {step} failed: {result.get('error', '')}",
            changes=changes or [],
        )
