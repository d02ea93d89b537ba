"""
Host facts — what the recipe needs to know about the machine.
"""

from __future__ import annotations

from pydantic import BaseModel


class HostFacts(BaseModel):
    """Raw facts as reported by the host (not yet normalized)."""

    architecture: str     # e.g. "x86_64"
    kernel: str           # e.g. "Linux"
