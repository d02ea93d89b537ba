"""
Audit ledger — one NDJSON line per applied run.

Records what a run changed, refreshed, failed on and left unevaluated,
next to minio.yml under ``.state/``. Lines are only ever appended; the
ledger is history and never feeds back into convergence.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

LEDGER_DIR = ".state"
LEDGER_FILE = "audit.ndjson"


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


class AuditEntry(BaseModel):
    """Summary of one convergence run."""

    timestamp: str = Field(default_factory=_utc_now)
    operation_id: str = ""
    operation_type: str = ""       # apply

    status: str = ""               # ok | partial | failed
    resources_total: int = 0
    resources_changed: int = 0
    resources_unchanged: int = 0
    resources_failed: int = 0
    resources_skipped: int = 0
    duration_ms: int = 0

    # Resource ids
    changed: list[str] = Field(default_factory=list)
    refreshed: list[str] = Field(default_factory=list)
    not_evaluated: list[str] = Field(default_factory=list)

    errors: list[str] = Field(default_factory=list)      # "<resource id>: <error>"
    context: dict[str, Any] = Field(default_factory=dict)  # version, source url, facts


class AuditWriter:
    """Appends to and reads back the ledger file.

    ``path`` wins over ``base_dir``; with neither, the ledger lives under
    ``.state/`` in the working directory.
    """

    def __init__(self, path: Path | None = None, base_dir: Path | None = None):
        if path is None:
            path = (base_dir or Path()) / LEDGER_DIR / LEDGER_FILE
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append ``entry``. A ledger that cannot be written is logged, not raised."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as ledger:
                ledger.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Cannot append to audit ledger %s: %s", self._path, e)
            return
        logger.debug("Recorded %s %s in %s", entry.operation_type, entry.operation_id, self._path)

    def read_all(self) -> list[AuditEntry]:
        """Every readable entry, oldest first. Corrupt lines are skipped."""
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error("Cannot read audit ledger %s: %s", self._path, e)
            return []

        entries: list[AuditEntry] = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                entries.append(AuditEntry.model_validate_json(line))
            except ValidationError as e:
                logger.warning("Ignoring unreadable ledger line %d: %s", number, e)
        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """The last ``n`` entries, newest first."""
        return self.read_all()[::-1][:n]
