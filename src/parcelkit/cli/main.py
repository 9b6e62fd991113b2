"""CLI entry point for parcelkit.

Invoked as::

    parcelkit [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m parcelkit.cli.main

Commands
--------
- ``prepare``  Expand a package spec and write its staging layout.
- ``push``     Expand, stage, and publish to a filesystem registry.
- ``inspect``  Show the groups and parcels of a staging layout.
- ``version``  Show version information.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from parcelkit.errors import ParcelkitError

console = Console()

REGISTRY_ENV_VAR = "PARCELKIT_REGISTRY"


@click.group()
@click.version_option(package_name="parcelkit")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Expand package specs into content-addressed, staged parcel bundles"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from parcelkit import __version__

    console.print(f"[bold]parcelkit[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------


def _spec_options(func):  # type: ignore[no-untyped-def]
    func = click.argument(
        "spec",
        type=click.Path(exists=True, path_type=Path),
    )(func)
    func = click.option(
        "--dir",
        "-d",
        "staging_dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Staging directory. Default: a fresh temporary directory.",
    )(func)
    func = click.option(
        "--invoice-version",
        "-v",
        "versioning",
        type=click.Choice(["dev", "production"]),
        default="dev",
        show_default=True,
        help="How to version the generated package identity.",
    )(func)
    func = click.option(
        "--output",
        "-o",
        "output_format",
        type=click.Choice(["id", "message", "none"]),
        default="message",
        show_default=True,
        help="What to print on success.",
    )(func)
    func = click.option(
        "--max-workers",
        type=click.IntRange(min=1),
        default=None,
        help="Hashing worker count. Default: number of CPUs.",
    )(func)
    return func


def _fail(exc: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    sys.exit(1)


# ---------------------------------------------------------------------------
# prepare
# ---------------------------------------------------------------------------


@cli.command(name="prepare")
@_spec_options
@click.option(
    "--registry",
    "-r",
    envvar=REGISTRY_ENV_VAR,
    default=None,
    help="Registry to fetch external references from (path or file:// URL).",
)
def prepare_command(
    spec: Path,
    staging_dir: Path | None,
    versioning: str,
    output_format: str,
    max_workers: int | None,
    registry: str | None,
) -> None:
    """Expand SPEC and write its staging layout.

    SPEC is a spec file or a directory containing parcelkit.yaml.

    Examples:

    \b
        parcelkit prepare ./app
        parcelkit prepare ./app/parcelkit.yaml -d ./staging -v production
    """
    from parcelkit.expander.versioning import InvoiceVersioning
    from parcelkit.orchestrator import Action, run
    from parcelkit.registry.filesystem import FileSystemRegistry

    try:
        fetcher = FileSystemRegistry.from_url(registry) if registry else None
        result = run(
            spec,
            destination=staging_dir,
            versioning=InvoiceVersioning.parse(versioning),
            action=Action.PREPARE,
            fetcher=fetcher,
            max_workers=max_workers,
        )
    except (ParcelkitError, ValueError) as exc:
        _fail(exc)
        return

    if output_format == "id":
        click.echo(result.identity)
    elif output_format == "message":
        console.print(f"id:      {escape(result.identity)}")
        console.print(f"staging: {escape(str(result.destination.resolve()))}")


# ---------------------------------------------------------------------------
# push
# ---------------------------------------------------------------------------


@cli.command(name="push")
@_spec_options
@click.option(
    "--registry",
    "-r",
    envvar=REGISTRY_ENV_VAR,
    required=True,
    help="Registry to publish to (path or file:// URL).",
)
def push_command(
    spec: Path,
    staging_dir: Path | None,
    versioning: str,
    output_format: str,
    max_workers: int | None,
    registry: str,
) -> None:
    """Expand SPEC, stage it, and publish it to a filesystem registry.

    Examples:

    \b
        parcelkit push ./app --registry /srv/parcels -v production
        PARCELKIT_REGISTRY=file:///srv/parcels parcelkit push ./app
    """
    from parcelkit.expander.versioning import InvoiceVersioning
    from parcelkit.orchestrator import Action, run
    from parcelkit.registry.filesystem import FileSystemRegistry, push_staged

    try:
        result = run(
            spec,
            destination=staging_dir,
            versioning=InvoiceVersioning.parse(versioning),
            action=Action.PUSH,
            fetcher=FileSystemRegistry.from_url(registry),
            pusher=push_staged,
            server_url=registry,
            max_workers=max_workers,
        )
    except (ParcelkitError, ValueError) as exc:
        _fail(exc)
        return

    if output_format == "id":
        click.echo(result.identity)
    elif output_format == "message":
        console.print(f"pushed: {escape(result.identity)}")


# ---------------------------------------------------------------------------
# inspect
# ---------------------------------------------------------------------------


@cli.command(name="inspect")
@click.argument(
    "staging_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    "--select",
    "-s",
    multiple=True,
    help="Optional group to select when computing reachable parcels. Repeatable.",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Print the manifest document as JSON.",
)
def inspect_command(staging_dir: Path, select: tuple[str, ...], json_output: bool) -> None:
    """Show the groups and parcels of the staging layout in STAGING_DIR."""
    from parcelkit.staging.layout import read_staged_manifest

    try:
        manifest = read_staged_manifest(staging_dir)
    except ParcelkitError as exc:
        _fail(exc)
        return

    if json_output:
        click.echo(manifest.to_json(), nl=False)
        return

    reachable = {p.digest for p in manifest.reachable_parcels(select)}
    active = manifest.active_groups(select)

    console.print(f"[bold]{escape(manifest.identity)}[/bold]")

    groups = Table(title="Groups", show_header=True)
    groups.add_column("Name", style="cyan")
    groups.add_column("Required")
    groups.add_column("Requires")
    groups.add_column("Active")
    for group in manifest.groups:
        groups.add_row(
            escape(group.name),
            "yes" if group.required else "no",
            escape(group.requires or "-"),
            "[green]yes[/green]" if group.name in active else "[dim]no[/dim]",
        )
    console.print(groups)

    parcels = Table(title="Parcels", show_header=True)
    parcels.add_column("Label", style="cyan")
    parcels.add_column("Digest")
    parcels.add_column("Media type")
    parcels.add_column("Size", justify="right")
    parcels.add_column("Groups")
    for parcel in manifest.parcels:
        style = "" if parcel.digest in reachable else "dim"
        parcels.add_row(
            escape(parcel.label),
            parcel.digest[:12],
            parcel.media_type,
            str(parcel.size),
            escape(", ".join(parcel.member_of)),
            style=style,
        )
    console.print(parcels)
    console.print(f"\n[dim]Total size:[/dim] {manifest.total_size} bytes")


if __name__ == "__main__":
    cli()
