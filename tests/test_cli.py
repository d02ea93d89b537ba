"""
Tests for the CLI — commands, flags and exit codes.
"""

import json
from pathlib import Path

from click.testing import CliRunner

from provisioner import __version__
from provisioner.main import cli


class TestCliBasics:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("apply", "plan", "facts", "config"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_apply_help(self):
        result = CliRunner().invoke(cli, ["apply", "--help"])
        assert result.exit_code == 0
        assert "--dry-run" in result.output
        assert "--strict-arch" in result.output


class TestFactsCommand:
    def test_json(self):
        result = CliRunner().invoke(
            cli, ["-q", "facts", "--json", "--version", "v1", "--base-url", "https://dl.example.com"]
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["source_url"].startswith("https://dl.example.com/")
        assert data["source_url"].endswith("/archive/minio.v1")
        assert data["os"] == data["kernel"].lower()

    def test_human_output(self):
        result = CliRunner().invoke(cli, ["facts", "--version", "v1", "--base-url", "https://x"])
        assert result.exit_code == 0
        assert "Host facts" in result.output


class TestPlanCommand:
    def test_lists_resources(self, host_config: Path):
        result = CliRunner().invoke(cli, ["-c", str(host_config), "plan"])
        assert result.exit_code == 0
        assert "directory:storage_root" in result.output
        assert "(refresh-only)" in result.output

    def test_json(self, host_config: Path):
        result = CliRunner().invoke(cli, ["-q", "-c", str(host_config), "plan", "--json"])
        assert result.exit_code == 0
        ids = [r["id"] for r in json.loads(result.output)["resources"]]
        assert "archive:minio" in ids

    def test_missing_config(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["-c", str(tmp_path / "minio.yml"), "plan"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestApplyCommand:
    def test_dry_run(self, host_config: Path):
        result = CliRunner().invoke(cli, ["-c", str(host_config), "apply", "--dry-run"])
        assert result.exit_code == 0
        assert "[dry-run]" in result.output
        assert "would change" in result.output
        assert not (host_config.parent / "host").exists()

    def test_mock_json(self, host_config: Path):
        result = CliRunner().invoke(cli, ["-q", "-c", str(host_config), "apply", "--mock", "--json"])
        assert result.exit_code == 0
        report = json.loads(result.output)["report"]
        assert report["status"] == "ok"
        assert report["changed"] == 0

    def test_unsupported_provider_exits_nonzero(self, host_config: Path):
        host_config.write_text(host_config.read_text().replace(
            "manage_service: false", "manage_service: true\n  service_provider: upstart"
        ))
        result = CliRunner().invoke(cli, ["-c", str(host_config), "apply"])
        assert result.exit_code == 1
        assert "'upstart'" in result.output


class TestConfigCheckCommand:
    def test_valid(self, host_config: Path):
        result = CliRunner().invoke(cli, ["-c", str(host_config), "config", "check"])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "minio.yml"
        path.write_text("listen_port: 0\n")
        result = CliRunner().invoke(cli, ["-q", "-c", str(path), "config", "check", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["valid"] is False
        assert data["errors"]
