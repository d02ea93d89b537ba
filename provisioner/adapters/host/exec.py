"""
Exec adapter — run a command as a convergence action.

An exec has no observable state of its own, so it is always out of
sync unless ``creates`` names a path that already exists. The recipe
only declares refresh-only execs, which the engine runs once per
notification.
"""

from __future__ import annotations

import shlex
import shutil
from pathlib import Path

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.host.runner import run_command
from provisioner.core.models.resource import Receipt


class ExecAdapter(Adapter):
    """Run commands and capture output.

    Resource params:
        command (list[str]): The argv to run (no shell).
        creates (str): Skip when this path exists.
        timeout (int): Timeout in seconds (default: 300).
    """

    @property
    def name(self) -> str:
        return "exec"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.params.get("command")
        if not command or not isinstance(command, list):
            return False, "Missing required param: 'command' (argv list)"
        if shutil.which(command[0]) is None:
            return False, f"Command not found: {command[0]}"
        return True, ""

    def drift(self, context: ExecutionContext) -> list[str]:
        creates = context.params.get("creates")
        if creates and Path(creates).exists():
            return []
        return [f"run {shlex.join(context.params['command'])}"]

    def execute(self, context: ExecutionContext) -> Receipt:
        resource = context.resource
        command = context.params["command"]
        if not self.drift(context):
            return Receipt.converged(adapter=self.name, resource_id=resource.id)

        result = run_command(command, timeout=context.params.get("timeout", 300))
        if not result["ok"]:
            return Receipt.failure(
                adapter=self.name,
                resource_id=resource.id,
                error=result["error"],
                metadata={"command": command, "return_code": result.get("returncode")},
            )

        return Receipt.converged(
            adapter=self.name,
            resource_id=resource.id,
            changes=[f"ran {shlex.join(command)}"],
            metadata={
                "command": command,
                "stdout": result.get("stdout", ""),
                "elapsed_ms": result.get("elapsed_ms", 0),
            },
        )

    def refresh(self, context: ExecutionContext) -> Receipt:
        return self.execute(context)
