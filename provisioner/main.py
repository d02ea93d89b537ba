"""
MinIO provisioner — CLI entrypoint.

Usage:
    provisioner --help
    provisioner facts
    provisioner plan
    provisioner apply --dry-run
    provisioner apply
    provisioner config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import (
    FILE_ENV,
    FILE_LEVEL_ENV,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="provisioner")
@click.option("--verbose", "-v", is_flag=True, help="Show every change as it is made.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to minio.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """MinIO provisioner — install and configure MinIO on this host."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(FILE_ENV),
        log_file_level=os.environ.get(FILE_LEVEL_ENV),
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--version", "release", default=None, help="Release to build the URL for.")
@click.option("--base-url", default=None, help="Download base URL.")
@click.pass_context
def facts(
    ctx: click.Context,
    as_json: bool,
    release: str | None,
    base_url: str | None,
) -> None:
    """Show host facts and the download URL they produce."""
    from provisioner.core.config.loader import ConfigError, load_parameters
    from provisioner.core.facts import (
        build_source_url,
        gather_facts,
        normalize_arch,
        normalize_kernel,
    )
    from provisioner.core.models.parameters import Parameters

    host = gather_facts()
    if release is None or base_url is None:
        try:
            params = load_parameters(ctx.obj.get("config_path"))
        except ConfigError:
            params = None
        release = release or (params.version if params else None)
        base_url = base_url or (params.base_url if params else Parameters.model_fields["base_url"].default)

    arch = normalize_arch(host.architecture)
    kernel = normalize_kernel(host.kernel)
    url = build_source_url(base_url, kernel, arch, release) if release else None

    if as_json:
        click.echo(json.dumps({
            "architecture": host.architecture,
            "kernel": host.kernel,
            "arch": arch,
            "os": kernel,
            "source_url": url,
        }, indent=2))
        return

    click.secho("\n🖥  Host facts", fg="cyan", bold=True)
    click.echo(f"   architecture: {host.architecture} → {arch}")
    click.echo(f"   kernel:       {host.kernel} → {kernel}")
    if url:
        click.echo(f"   source url:   {url}")
    else:
        click.echo("   source url:   (no version pinned)")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--strict-arch", is_flag=True, help="Fail on architectures without a known build.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool, strict_arch: bool) -> None:
    """List the resources in the order they will be converged."""
    from provisioner.core.use_cases.plan import build_plan

    result = build_plan(config_path=ctx.obj.get("config_path"), strict_arch=strict_arch)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"\n📋 Plan — {len(result.resources)} resources", fg="cyan", bold=True)
    if result.source_url:
        click.echo(f"   Source: {result.source_url}")
    click.echo()
    for index, resource in enumerate(result.resources, start=1):
        flags = " (refresh-only)" if resource.refreshonly else ""
        click.echo(f"   {index:2d}. {resource.id}{flags}  → {resource.target}")
        if resource.notify and ctx.obj.get("verbose"):
            click.echo(f"       notifies: {', '.join(resource.notify)}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Report drift but change nothing.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.option("--strict-arch", is_flag=True, help="Fail on architectures without a known build.")
@click.pass_context
def apply(
    ctx: click.Context,
    as_json: bool,
    dry_run: bool,
    mock: bool,
    strict_arch: bool,
) -> None:
    """Converge this host to the configured MinIO installation.

    Examples:

        provisioner apply --dry-run

        provisioner -c /etc/minio-provisioner/minio.yml apply
    """
    from provisioner.core.use_cases.apply import run_apply

    result = run_apply(
        config_path=ctx.obj.get("config_path"),
        dry_run=dry_run,
        mock_mode=mock,
        strict_arch=strict_arch,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None

    mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
    click.secho(f"\n⚡ {mode_label}apply — MinIO {result.params.version or ''}", fg="cyan", bold=True)
    click.echo()

    quiet = ctx.obj.get("quiet", False)
    for receipt in report.receipts:
        if receipt.failed:
            click.secho(f"   ✗ {receipt.resource_id}", fg="red")
            for line in (receipt.error or "").split("\n")[:5]:
                click.echo(f"     │ {line}")
        elif receipt.changes:
            color = "yellow" if dry_run else "green"
            click.secho(f"   ✎ {receipt.resource_id}", fg=color)
            for change in receipt.changes:
                click.echo(f"     │ {change}")
        elif not quiet:
            marker = "⊘" if receipt.status == "skipped" else "✓"
            click.echo(f"   {marker} {receipt.resource_id}")

    for resource_id in report.not_evaluated:
        click.secho(f"   · {resource_id} (not evaluated)", fg="white", dim=True)

    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(report.status, "white")
    verb = "would change" if dry_run else "changed"
    click.secho(
        f"   Result: {report.status} — {report.changed} {verb}, {report.failed} failed",
        fg=status_color,
        bold=True,
    )
    click.echo()

    if report.failed > 0:
        sys.exit(1)


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate minio.yml."""
    from provisioner.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.params is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Version: {result.params.version or '(binary not managed)'}")
        click.echo(f"   Listen:  {result.params.listen_ip}:{result.params.listen_port}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(1)


if __name__ == "__main__":
    cli()
