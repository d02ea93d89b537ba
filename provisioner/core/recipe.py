"""
Recipe — compile the Parameter Set into a catalog of resources.

This is the whole MinIO installation expressed as desired state:
backing dataset, directories, certificates, the binary, recursive
ownership fixes, and the systemd unit and service. Nothing here
touches the host; ``converge`` does that.

Ordering:
    dataset → storage root → configuration dir → installation dir
    → .minio → .minio/certs → private key → public cert → binary → service

Each recursive ownership fix is refresh-only, notified by its
directory, and ordered right after it so that later files with a
different owner are not overridden in the same run.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from provisioner.core.engine.converge import Catalog
from provisioner.core.engine.graph import CatalogError
from provisioner.core.facts import source_url_for
from provisioner.core.models.facts import HostFacts
from provisioner.core.models.parameters import Parameters
from provisioner.core.models.resource import Resource

logger = logging.getLogger(__name__)

SUPPORTED_SERVICE_PROVIDERS = ("systemd",)

DEFAULT_SERVICE_TEMPLATE = Path(__file__).resolve().parents[1] / "data" / "templates" / "minio.service"

# Resource ids
DATASET = "zfs:storage"
STORAGE_ROOT = "directory:storage_root"
CONFIGURATION_DIRECTORY = "directory:configuration_directory"
INSTALLATION_DIRECTORY = "directory:installation_directory"
MINIO_HOME = "directory:minio_home"
CERTS_DIRECTORY = "directory:certs_directory"
PRIVATE_KEY = "file:private_key"
PUBLIC_CERT = "file:public_cert"
BINARY_DOWNLOAD = "archive:minio"
BINARY = "file:minio"
SERVER_CONFIG = "file:config_json"
SERVICE_UNIT = "template:service_unit"
SERVICE = "service:minio"


def fix_permissions_id(directory_id: str) -> str:
    """Id of the recursive ownership fix for a directory resource."""
    return f"exec:chown_{directory_id.split(':', 1)[1]}"


class UnsupportedServiceProvider(CatalogError):
    """Raised when the service provider is anything other than systemd."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            f"Unsupported service provider '{provider}': "
            f"supported providers are {', '.join(SUPPORTED_SERVICE_PROVIDERS)}"
        )


def compile_catalog(
    params: Parameters,
    facts: HostFacts,
    *,
    strict_arch: bool = False,
) -> Catalog:
    """Build the catalog for one run.

    Args:
        params: The Parameter Set.
        facts: Host facts (architecture and kernel name).
        strict_arch: Reject architectures without a known build instead
            of passing them through.

    Returns:
        Catalog ready for ``converge``.

    Raises:
        UnsupportedServiceProvider: ``manage_service`` is set and the
            provider is not systemd. Nothing has been applied yet.
        UnsupportedArchitecture: ``strict_arch`` and an unknown arch.
        CatalogError: The release is not pinned (a Parameter Set built
            without validation).
    """
    if params.manage_service and params.service_provider not in SUPPORTED_SERVICE_PROVIDERS:
        raise UnsupportedServiceProvider(params.service_provider)

    catalog = Catalog()
    notify_service = [SERVICE] if params.manage_service else []
    ownership = {"owner": params.owner, "group": params.group}

    # ── Storage and directories ──────────────────────────────────
    previous: list[str] = []
    if params.storage_dataset:
        catalog.add(Resource(
            id=DATASET,
            adapter="zfs",
            target=params.storage_dataset,
            params={"mountpoint": params.storage_root},
        ))
        previous = [DATASET]

    for directory_id, path in (
        (STORAGE_ROOT, params.storage_root),
        (CONFIGURATION_DIRECTORY, params.configuration_directory),
        (INSTALLATION_DIRECTORY, params.installation_directory),
    ):
        fix_id = fix_permissions_id(directory_id)
        catalog.add(Resource(
            id=directory_id,
            adapter="directory",
            target=path,
            ensure="directory",
            requires=previous,
            notify=[fix_id],
            **ownership,
        ))
        catalog.add(Resource(
            id=fix_id,
            adapter="exec",
            target=path,
            refreshonly=True,
            params={"command": ["chown", "-R", f"{params.owner}:{params.group}", path]},
        ))
        previous = [directory_id, fix_id]

    # ── TLS material ─────────────────────────────────────────────
    for directory_id, path in (
        (MINIO_HOME, params.minio_home),
        (CERTS_DIRECTORY, params.certs_directory),
    ):
        catalog.add(Resource(
            id=directory_id,
            adapter="directory",
            target=path,
            ensure="directory",
            mode="0750",
            requires=previous,
            **ownership,
        ))
        previous = [directory_id]

    for cert_id, filename, mode in (
        (PRIVATE_KEY, "private.key", "0600"),
        (PUBLIC_CERT, "public.crt", "0644"),
    ):
        catalog.add(Resource(
            id=cert_id,
            adapter="file",
            target=f"{params.certs_directory}/{filename}",
            owner=params.certificate_owner,
            group=params.group,
            mode=mode,
            params={"source": f"{params.certificate_source_directory}/{filename}"},
            requires=previous,
            notify=notify_service,
        ))
        previous = [cert_id]

    # ── Binary ───────────────────────────────────────────────────
    install_deps = [INSTALLATION_DIRECTORY, fix_permissions_id(INSTALLATION_DIRECTORY)]
    if params.package_ensure == "present":
        if params.version is None or params.checksum is None:
            raise CatalogError("'version' and 'checksum' must be pinned when package_ensure is 'present'")
        catalog.source_url = source_url_for(
            params.base_url, facts, params.version, strict=strict_arch
        )
        catalog.add(Resource(
            id=BINARY_DOWNLOAD,
            adapter="archive",
            target=params.binary_path,
            params={
                "url": catalog.source_url,
                "checksum": params.checksum,
                "checksum_type": params.checksum_type,
            },
            requires=install_deps,
            notify=notify_service,
        ))
        catalog.add(Resource(
            id=BINARY,
            adapter="file",
            target=params.binary_path,
            mode="0744",
            requires=[BINARY_DOWNLOAD],
            notify=notify_service,
            **ownership,
        ))
        logger.debug("MinIO %s from %s", params.version, catalog.source_url)
    else:
        catalog.add(Resource(
            id=BINARY_DOWNLOAD,
            adapter="archive",
            target=params.binary_path,
            ensure="absent",
            requires=install_deps,
        ))

    # ── Server configuration ─────────────────────────────────────
    if params.configuration:
        catalog.add(Resource(
            id=SERVER_CONFIG,
            adapter="file",
            target=f"{params.configuration_directory}/config.json",
            mode="0600",
            params={"content": json.dumps(params.configuration, indent=2, sort_keys=True) + "\n"},
            requires=[CONFIGURATION_DIRECTORY, fix_permissions_id(CONFIGURATION_DIRECTORY)],
            notify=notify_service,
            **ownership,
        ))

    # ── Service ──────────────────────────────────────────────────
    if params.manage_service:
        template = params.service_template or str(DEFAULT_SERVICE_TEMPLATE)
        catalog.add(Resource(
            id=SERVICE_UNIT,
            adapter="template",
            target=params.unit_path,
            owner="root",
            group="root",
            mode="0644",
            params={"template": template, "context": params.template_context()},
            notify=[SERVICE],
        ))
        catalog.add(Resource(
            id=SERVICE,
            adapter="systemd",
            target=params.service_name,
            ensure="running",
            requires=[BINARY] if params.package_ensure == "present" else [],
        ))

    logger.debug("Compiled catalog with %d resources", len(catalog.resources))
    return catalog
