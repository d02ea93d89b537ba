"""
Host facts — gathering and normalization.

Read-only probes of the running host, plus the pure functions that
turn raw facts into the ``{kernel}-{arch}`` segment of the MinIO
download URL.
"""

from __future__ import annotations

import logging
import platform
import re

from provisioner.core.models.facts import HostFacts

logger = logging.getLogger(__name__)

# Checked in order; first match wins. Anything else passes through.
_ARCH_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"x86_64"), "amd64"),
    (re.compile(r"x86"), "386"),
)

# Architectures MinIO publishes builds for
KNOWN_ARCHES: frozenset[str] = frozenset({"amd64", "386", "arm64", "arm", "ppc64le", "s390x"})


class UnsupportedArchitecture(ValueError):
    """Raised in strict mode when the architecture has no known build."""


def gather_facts() -> HostFacts:
    """Probe the running host."""
    facts = HostFacts(architecture=platform.machine(), kernel=platform.system())
    logger.debug("Host facts: architecture=%s kernel=%s", facts.architecture, facts.kernel)
    return facts


def normalize_arch(architecture: str, *, strict: bool = False) -> str:
    """Map a reported CPU architecture to the download naming scheme.

    ``x86_64`` → ``amd64``, ``x86`` → ``386``, everything else is
    returned verbatim. An unknown result is logged (or raised when
    ``strict``) since it usually points at an unreachable URL.
    """
    arch = architecture
    for pattern, mapped in _ARCH_PATTERNS:
        if pattern.search(architecture):
            arch = mapped
            break

    if arch not in KNOWN_ARCHES:
        if strict:
            raise UnsupportedArchitecture(
                f"No known MinIO build for architecture '{architecture}'"
            )
        logger.warning(
            "Architecture '%s' is not a known MinIO build; using it verbatim", architecture
        )
    return arch


def normalize_kernel(kernel: str) -> str:
    """Lower-case the kernel name (``Linux`` → ``linux``)."""
    return kernel.lower()


def build_source_url(base_url: str, kernel: str, arch: str, version: str) -> str:
    """``{base_url}/{kernel}-{arch}/archive/minio.{version}``

    ``kernel`` and ``arch`` must already be normalized.
    """
    return f"{base_url.rstrip('/')}/{kernel}-{arch}/archive/minio.{version}"


def source_url_for(
    base_url: str,
    facts: HostFacts,
    version: str,
    *,
    strict: bool = False,
) -> str:
    """Normalize ``facts`` and build the download URL in one step."""
    return build_source_url(
        base_url,
        normalize_kernel(facts.kernel),
        normalize_arch(facts.architecture, strict=strict),
        version,
    )
