"""
End-to-end tests — minio.yml → apply → host state, twice.

Everything converges under tmp_path: the release comes from a file://
mirror, there is no ZFS dataset and no systemd service, and every
owner is the user running the tests.
"""

import json
import stat
from pathlib import Path

from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core import recipe
from provisioner.core.persistence.audit import AuditWriter
from provisioner.core.use_cases.apply import run_apply
from provisioner.core.use_cases.plan import build_plan


def _host(config: Path) -> Path:
    return config.parent / "host"


def _mirrored_binary(config: Path) -> Path:
    return next((config.parent / "mirror").rglob("minio.*"))


class TestApply:
    def test_first_run_converges(self, host_config: Path, amd64_linux, release, binary_bytes, current_user):
        result = run_apply(config_path=host_config, facts=amd64_linux)

        assert result.ok, result.report.to_dict() if result.report else result.error
        report = result.report
        host = _host(host_config)

        binary = host / "opt" / "minio" / "minio"
        assert binary.read_bytes() == binary_bytes
        assert stat.S_IMODE(binary.stat().st_mode) == 0o744

        key = host / "etc" / "minio" / ".minio" / "certs" / "private.key"
        crt = key.with_name("public.crt")
        assert stat.S_IMODE(key.stat().st_mode) == 0o600
        assert stat.S_IMODE(crt.stat().st_mode) == 0o644

        for directory in (key.parent.parent, key.parent):
            assert stat.S_IMODE(directory.stat().st_mode) == 0o750
            assert directory.owner() == current_user

        config_json = host / "etc" / "minio" / "config.json"
        assert json.loads(config_json.read_text()) == {"version": "19", "region": "us-east-1"}
        assert stat.S_IMODE(config_json.stat().st_mode) == 0o600

        assert (host / "var" / "minio").is_dir()
        assert "exec:chown_storage_root" in report.changed_ids
        assert result.catalog.source_url.endswith(f"/linux-amd64/archive/minio.{release}")

    def test_second_run_changes_nothing(self, host_config: Path, amd64_linux):
        first = run_apply(config_path=host_config, facts=amd64_linux)
        assert first.ok

        second = run_apply(config_path=host_config, facts=amd64_linux)

        assert second.ok
        assert second.report.changed == 0, second.report.changed_ids
        fixes = [r for r in second.report.receipts if r.resource_id.startswith("exec:")]
        assert fixes and all(r.status == "skipped" for r in fixes)

    def test_certificate_directory_drift_is_repaired(self, host_config: Path, amd64_linux):
        assert run_apply(config_path=host_config, facts=amd64_linux).ok
        certs = _host(host_config) / "etc" / "minio" / ".minio" / "certs"
        certs.chmod(0o700)

        result = run_apply(config_path=host_config, facts=amd64_linux)

        assert result.ok
        assert result.report.changed_ids == [recipe.CERTS_DIRECTORY]
        assert stat.S_IMODE(certs.stat().st_mode) == 0o750

    def test_dry_run_changes_nothing(self, host_config: Path, amd64_linux):
        result = run_apply(config_path=host_config, facts=amd64_linux, dry_run=True)

        assert result.ok
        assert recipe.BINARY_DOWNLOAD in result.report.changed_ids
        assert not _host(host_config).exists()
        assert result.audit_path is None

    def test_audit_entry_written(self, host_config: Path, amd64_linux, release):
        result = run_apply(config_path=host_config, facts=amd64_linux)

        assert result.audit_path == host_config.parent.resolve() / ".state" / "audit.ndjson"
        entries = AuditWriter(result.audit_path).read_all()
        assert len(entries) == 1
        assert entries[0].status == "ok"
        assert entries[0].context["version"] == release

    def test_checksum_mismatch_aborts(self, host_config: Path, amd64_linux):
        _mirrored_binary(host_config).write_bytes(b"tampered")

        result = run_apply(config_path=host_config, facts=amd64_linux)

        assert not result.ok
        report = result.report
        failed = report.receipt_for(recipe.BINARY_DOWNLOAD)
        assert failed.failed
        assert failed.error.startswith("Checksum mismatch for ")
        assert recipe.BINARY in report.not_evaluated
        assert report.status == "partial"
        assert not (_host(host_config) / "opt" / "minio" / "minio").exists()
        # earlier steps stay applied
        assert report.receipt_for(recipe.PRIVATE_KEY).changed

    def test_rerun_after_failure_converges(self, host_config: Path, amd64_linux, binary_bytes):
        mirrored = _mirrored_binary(host_config)
        mirrored.write_bytes(b"tampered")
        assert not run_apply(config_path=host_config, facts=amd64_linux).ok

        mirrored.write_bytes(binary_bytes)
        result = run_apply(config_path=host_config, facts=amd64_linux)

        assert result.ok
        assert result.report.changed_ids == [recipe.BINARY_DOWNLOAD, recipe.BINARY, recipe.SERVER_CONFIG]

    def test_unsupported_provider_applies_nothing(self, host_config: Path, amd64_linux):
        host_config.write_text(host_config.read_text().replace(
            "manage_service: false", "manage_service: true\n  service_provider: openrc"
        ))

        result = run_apply(config_path=host_config, facts=amd64_linux)

        assert result.error == (
            "Unsupported service provider 'openrc': supported providers are systemd"
        )
        assert result.report is None
        assert not _host(host_config).exists()

    def test_missing_config(self, tmp_path: Path):
        result = run_apply(config_path=tmp_path / "minio.yml")
        assert result.error.startswith("Config file not found")
        assert result.to_dict() == {"error": result.error}


class TestServiceNotifications:
    """The packaged recipe, converged against a mock host."""

    def _registry(self) -> tuple[AdapterRegistry, MockAdapter]:
        mock = MockAdapter()
        registry = AdapterRegistry()
        registry.set_mock_mode(True, mock)
        return registry, mock

    def _managed(self, host_config: Path) -> None:
        host_config.write_text(host_config.read_text().replace(
            "manage_service: false", "manage_service: true"
        ))

    def test_many_notifiers_restart_once(self, host_config: Path, amd64_linux):
        self._managed(host_config)
        registry, mock = self._registry()
        mock.set_drift(recipe.PUBLIC_CERT, "updated content")
        mock.set_drift(recipe.BINARY_DOWNLOAD, "downloaded")
        mock.set_drift(recipe.SERVICE_UNIT, "updated content")

        result = run_apply(config_path=host_config, facts=amd64_linux, registry=registry)

        assert result.ok
        assert mock.executed(recipe.SERVICE) == 1
        assert mock.refreshed(recipe.SERVICE) == 1

    def test_nothing_changed_no_restart(self, host_config: Path, amd64_linux):
        self._managed(host_config)
        registry, mock = self._registry()

        result = run_apply(config_path=host_config, facts=amd64_linux, registry=registry)

        assert result.report.changed == 0
        assert mock.refreshed(recipe.SERVICE) == 0


class TestPlan:
    def test_plan_lists_ordered_resources(self, host_config: Path, amd64_linux, release):
        plan = build_plan(config_path=host_config, facts=amd64_linux)
        ids = [r.id for r in plan.resources]
        assert ids[0] == recipe.STORAGE_ROOT
        assert ids.index(recipe.PRIVATE_KEY) < ids.index(recipe.BINARY_DOWNLOAD)
        assert plan.source_url.endswith(release)
        assert not _host(host_config).exists()

    def test_plan_error(self, tmp_path: Path):
        plan = build_plan(config_path=tmp_path / "minio.yml")
        assert plan.error
        assert plan.to_dict() == {"error": plan.error}


class TestOwnershipFixes:
    def test_owner_change_runs_each_fix_once(self, host_config: Path, amd64_linux):
        mock = MockAdapter()
        registry = AdapterRegistry()
        registry.set_mock_mode(True, mock)
        for directory_id in (recipe.STORAGE_ROOT, recipe.CONFIGURATION_DIRECTORY):
            mock.set_drift(directory_id, "owner minio → s3")

        result = run_apply(config_path=host_config, facts=amd64_linux, registry=registry)

        assert result.ok
        assert mock.executed("exec:chown_storage_root") == 1
        assert mock.executed("exec:chown_configuration_directory") == 1
        assert mock.executed("exec:chown_installation_directory") == 0
        skipped = result.report.receipt_for("exec:chown_installation_directory")
        assert skipped.status == "skipped"
