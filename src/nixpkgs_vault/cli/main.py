"""
Nixpkgs Vault CLI — Turn nixpkgs into a cross-linked Markdown vault.

Usage:
    nixpkgs-vault build --outdir ./nixpkgs-vault --revision nixos-unstable
    nixpkgs-vault generate --nixpkgs /nix/store/...-source --jobs 8 --limit 100
    nixpkgs-vault fetch --revision nixos-24.05
"""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from nixpkgs_vault.core.introspection import DEFAULT_TIMEOUT
from nixpkgs_vault.core.nixpkgs import DEFAULT_GIT_URL, DEFAULT_REVISION

console = Console()


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _fetch(git_url: str, revision: str, token: str | None) -> Path:
    """Resolve, fetch and validate a nixpkgs tree; exits on failure."""
    from nixpkgs_vault.core.nixpkgs import (
        AcquisitionError,
        fetch_nixpkgs,
        resolve_revision,
        tree_url,
        validate_nixpkgs,
    )

    console.print(
        f"[bold cyan]📦 Fetching nixpkgs from:[/bold cyan] "
        f"[blue underline]{tree_url(git_url, revision)}[/blue underline]"
    )
    try:
        with console.status("[bold cyan]Fetching nixpkgs repository...[/bold cyan]"):
            rev = resolve_revision(git_url, revision, token)
            nixpkgs_path = fetch_nixpkgs(git_url, revision, rev)
    except AcquisitionError as e:
        console.print(f"[bold red]❌ Error:[/bold red] [red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    console.print(f"[bold green]✅ Nixpkgs fetched to:[/bold green] {nixpkgs_path}")

    if not validate_nixpkgs(nixpkgs_path):
        console.print(f"[bold red]❌ Invalid nixpkgs repository:[/bold red] {nixpkgs_path}")
        raise SystemExit(1)

    return nixpkgs_path


def _generate(
    nixpkgs_path: Path,
    outdir: Path,
    jobs: int | None,
    limit: int | None,
    timeout: float,
    packages: list[str],
    force_manifest: bool,
    nix_bin: str,
) -> None:
    from nixpkgs_vault.core.introspection import NixDerivationIntrospector
    from nixpkgs_vault.core.nixpkgs import AcquisitionError, generate_manifest
    from nixpkgs_vault.core.vault import VaultBuilder
    from nixpkgs_vault.exporters.markdown import MarkdownExporter
    from nixpkgs_vault.parsers.manifest import ManifestError, load_manifest

    try:
        with console.status("[bold cyan]Evaluating package manifest...[/bold cyan]"):
            manifest_path = generate_manifest(nixpkgs_path, outdir, force=force_manifest)
        manifest = load_manifest(manifest_path)
    except (AcquisitionError, ManifestError) as e:
        console.print(f"[bold red]❌ Error:[/bold red] [red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    builder = VaultBuilder(
        introspector=NixDerivationIntrospector(nixpkgs_path, timeout=timeout, nix_bin=nix_bin),
        exporter=MarkdownExporter(output_dir=outdir),
        concurrency=jobs,
        console=console,
    )
    asyncio.run(builder.run(manifest, limit=limit, names=packages or None))


@click.group()
@click.version_option(package_name="nixpkgs-vault")
def cli():
    """Nixpkgs Vault — Generate a cross-linked Markdown vault from nixpkgs."""
    pass


def generation_options(func):
    """Options shared by the commands that generate notes."""
    options = [
        click.option(
            "--outdir",
            "-o",
            type=click.Path(file_okay=False, path_type=Path),
            default="nixpkgs-vault",
            envvar="NIXPKGS_VAULT_OUTDIR",
            help="Output directory for the vault.",
        ),
        click.option(
            "--jobs",
            "-j",
            type=click.IntRange(min=1),
            default=None,
            envvar="NIXPKGS_VAULT_JOBS",
            help="Packages processed in parallel (default: CPU count).",
        ),
        click.option("--limit", "-l", type=click.IntRange(min=0), default=None, help="Limit number of packages."),
        click.option(
            "--package",
            "-p",
            "packages",
            multiple=True,
            help="Only process this package (repeatable).",
        ),
        click.option(
            "--timeout",
            type=float,
            default=DEFAULT_TIMEOUT,
            show_default=True,
            help="Seconds allowed per derivation query.",
        ),
        click.option("--force-manifest", is_flag=True, help="Regenerate packages.json."),
        click.option(
            "--nix-bin",
            default="nix",
            envvar="NIXPKGS_VAULT_NIX",
            help="nix executable used for derivation queries.",
        ),
        click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.command()
@click.option("--revision", "-r", default=DEFAULT_REVISION, help="nixpkgs git revision.")
@click.option("--git-url", "-g", default=DEFAULT_GIT_URL, help="nixpkgs git url.")
@click.option("--token", "-t", envvar="GITHUB_TOKEN", default=None, help="GitHub API token.")
@generation_options
def build(revision, git_url, token, outdir, jobs, limit, packages, timeout, force_manifest, nix_bin, verbose):
    """Fetch nixpkgs and generate the whole vault."""
    _configure_logging(verbose)
    nixpkgs_path = _fetch(git_url, revision, token)
    _generate(nixpkgs_path, outdir, jobs, limit, timeout, list(packages), force_manifest, nix_bin)


@cli.command()
@click.option(
    "--nixpkgs",
    "-n",
    "nixpkgs_path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=True,
    help="Existing nixpkgs checkout.",
)
@generation_options
def generate(nixpkgs_path, outdir, jobs, limit, packages, timeout, force_manifest, nix_bin, verbose):
    """Generate the vault from an existing nixpkgs checkout."""
    from nixpkgs_vault.core.nixpkgs import validate_nixpkgs

    _configure_logging(verbose)
    if not validate_nixpkgs(nixpkgs_path):
        console.print(f"[bold red]❌ Invalid nixpkgs repository:[/bold red] {nixpkgs_path}")
        raise SystemExit(1)
    _generate(nixpkgs_path, outdir, jobs, limit, timeout, list(packages), force_manifest, nix_bin)


@cli.command()
@click.option("--revision", "-r", default=DEFAULT_REVISION, help="nixpkgs git revision.")
@click.option("--git-url", "-g", default=DEFAULT_GIT_URL, help="nixpkgs git url.")
@click.option("--token", "-t", envvar="GITHUB_TOKEN", default=None, help="GitHub API token.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging.")
def fetch(revision, git_url, token, verbose):
    """Fetch nixpkgs into the Nix store and print its path."""
    _configure_logging(verbose)
    nixpkgs_path = _fetch(git_url, revision, token)
    click.echo(str(nixpkgs_path))


if __name__ == "__main__":
    cli()
