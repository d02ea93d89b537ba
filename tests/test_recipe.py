"""
Tests for the recipe — compiling parameters into an ordered catalog.
"""

import json

import pytest

from provisioner.core import recipe
from provisioner.core.engine.graph import CatalogError
from provisioner.core.facts import UnsupportedArchitecture
from provisioner.core.models.facts import HostFacts
from provisioner.core.models.parameters import Parameters
from provisioner.core.recipe import UnsupportedServiceProvider, compile_catalog

CHECKSUM = "a" * 64
FACTS = HostFacts(architecture="x86_64", kernel="Linux")


def _params(**overrides) -> Parameters:
    values = {"version": "RELEASE.2017-01-01T00-00-00Z", "checksum": CHECKSUM}
    values.update(overrides)
    return Parameters(**values)


def _order(params: Parameters) -> list[str]:
    return [r.id for r in compile_catalog(params, FACTS).ordered()]


class TestOrdering:
    def test_full_chain(self):
        assert _order(_params()) == [
            recipe.DATASET,
            recipe.STORAGE_ROOT,
            "exec:chown_storage_root",
            recipe.CONFIGURATION_DIRECTORY,
            "exec:chown_configuration_directory",
            recipe.INSTALLATION_DIRECTORY,
            "exec:chown_installation_directory",
            recipe.MINIO_HOME,
            recipe.CERTS_DIRECTORY,
            recipe.PRIVATE_KEY,
            recipe.PUBLIC_CERT,
            recipe.BINARY_DOWNLOAD,
            recipe.BINARY,
            recipe.SERVICE_UNIT,
            recipe.SERVICE,
        ]

    def test_ownership_fix_precedes_certificates(self):
        """Certificates may have a different owner; the recursive fix must not override it."""
        ids = _order(_params())
        assert ids.index("exec:chown_configuration_directory") < ids.index(recipe.PRIVATE_KEY)

    def test_service_is_last(self):
        assert _order(_params())[-1] == recipe.SERVICE

    def test_without_dataset(self):
        ids = _order(_params(storage_dataset=None))
        assert recipe.DATASET not in ids
        assert ids[0] == recipe.STORAGE_ROOT


class TestResources:
    def test_directories_notify_their_fix(self):
        catalog = compile_catalog(_params(), FACTS)
        storage = catalog.get(recipe.STORAGE_ROOT)
        fix = catalog.get("exec:chown_storage_root")
        assert storage.notify == ["exec:chown_storage_root"]
        assert fix.refreshonly is True
        assert fix.params["command"] == ["chown", "-R", "minio:minio", "/var/minio"]

    def test_certificate_directories_are_managed(self):
        catalog = compile_catalog(_params(), FACTS)
        home = catalog.get(recipe.MINIO_HOME)
        certs = catalog.get(recipe.CERTS_DIRECTORY)
        assert home.target == "/etc/minio/.minio"
        assert certs.target == "/etc/minio/.minio/certs"
        for directory in (home, certs):
            assert (directory.owner, directory.group, directory.mode) == ("minio", "minio", "0750")
        assert certs.requires == [recipe.MINIO_HOME]
        assert catalog.get(recipe.PRIVATE_KEY).requires == [recipe.CERTS_DIRECTORY]

    def test_certificates(self):
        params = _params(certificate_owner="acme", certificate_source_directory="/srv/tls")
        catalog = compile_catalog(params, FACTS)
        key = catalog.get(recipe.PRIVATE_KEY)
        crt = catalog.get(recipe.PUBLIC_CERT)
        assert key.target == "/etc/minio/.minio/certs/private.key"
        assert key.mode == "0600"
        assert key.owner == "acme"
        assert key.group == "minio"
        assert key.params["source"] == "/srv/tls/private.key"
        assert crt.mode == "0644"
        assert key.notify == [recipe.SERVICE]

    def test_binary_download(self):
        catalog = compile_catalog(_params(), FACTS)
        download = catalog.get(recipe.BINARY_DOWNLOAD)
        binary = catalog.get(recipe.BINARY)
        expected = (
            "https://dl.minio.io/server/minio/release/linux-amd64/archive/"
            "minio.RELEASE.2017-01-01T00-00-00Z"
        )
        assert catalog.source_url == expected
        assert download.params["url"] == expected
        assert download.params["checksum"] == CHECKSUM
        assert download.target == "/opt/minio/minio"
        assert binary.mode == "0744"
        assert binary.owner == "minio"

    def test_service_unit_context(self):
        catalog = compile_catalog(_params(listen_port=9443), FACTS)
        unit = catalog.get(recipe.SERVICE_UNIT)
        assert unit.target == "/etc/systemd/system/minio.service"
        assert unit.params["template"] == str(recipe.DEFAULT_SERVICE_TEMPLATE)
        assert unit.params["context"]["listen_port"] == "9443"
        assert unit.params["context"]["binary_path"] == "/opt/minio/minio"
        assert unit.notify == [recipe.SERVICE]

    def test_custom_service_template(self):
        catalog = compile_catalog(_params(service_template="/srv/minio.service"), FACTS)
        assert catalog.get(recipe.SERVICE_UNIT).params["template"] == "/srv/minio.service"

    def test_service_requires_binary(self):
        service = compile_catalog(_params(), FACTS).get(recipe.SERVICE)
        assert service.requires == [recipe.BINARY]
        assert service.ensure == "running"

    def test_server_configuration(self):
        config = {"version": "19", "region": "us-east-1"}
        catalog = compile_catalog(_params(configuration=config), FACTS)
        resource = catalog.get(recipe.SERVER_CONFIG)
        assert resource.target == "/etc/minio/config.json"
        assert resource.mode == "0600"
        assert json.loads(resource.params["content"]) == config

    def test_no_server_configuration_by_default(self):
        assert compile_catalog(_params(), FACTS).get(recipe.SERVER_CONFIG) is None


class TestVariants:
    def test_package_absent_removes_binary(self):
        catalog = compile_catalog(Parameters(package_ensure="absent"), FACTS)
        download = catalog.get(recipe.BINARY_DOWNLOAD)
        assert download.ensure == "absent"
        assert catalog.get(recipe.BINARY) is None
        assert catalog.source_url is None
        assert catalog.get(recipe.SERVICE).requires == []

    def test_unpinned_release_is_rejected(self):
        unvalidated = Parameters(package_ensure="absent").model_copy(update={"package_ensure": "present"})
        with pytest.raises(CatalogError, match="must be pinned"):
            compile_catalog(unvalidated, FACTS)

    def test_unmanaged_service(self):
        catalog = compile_catalog(_params(manage_service=False), FACTS)
        assert catalog.get(recipe.SERVICE) is None
        assert catalog.get(recipe.SERVICE_UNIT) is None
        assert all(not r.notify or r.notify[0].startswith("exec:") for r in catalog.resources)
        catalog.ordered()

    def test_unsupported_provider_names_the_value(self):
        with pytest.raises(UnsupportedServiceProvider, match="'upstart'") as exc_info:
            compile_catalog(_params(service_provider="upstart"), FACTS)
        assert exc_info.value.provider == "upstart"
        assert isinstance(exc_info.value, CatalogError)

    def test_provider_ignored_when_service_unmanaged(self):
        catalog = compile_catalog(_params(service_provider="upstart", manage_service=False), FACTS)
        assert catalog.get(recipe.SERVICE) is None

    def test_unknown_arch_passes_through(self):
        facts = HostFacts(architecture="mips", kernel="Linux")
        catalog = compile_catalog(_params(), facts)
        assert "/linux-mips/" in catalog.source_url

    def test_strict_arch(self):
        facts = HostFacts(architecture="mips", kernel="Linux")
        with pytest.raises(UnsupportedArchitecture):
            compile_catalog(_params(), facts, strict_arch=True)
