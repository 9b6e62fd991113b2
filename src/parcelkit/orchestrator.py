"""End-to-end run: load, prefetch, expand, stage, then optionally push and register.

The expansion core stays free of network concerns: external manifests
are fetched here, before :func:`~parcelkit.expander.assembler.expand`
runs, and push / register happen only after a complete staging layout
has been written.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from parcelkit.errors import ResolutionError
from parcelkit.expander.assembler import ExpansionContext, expand
from parcelkit.expander.versioning import InvoiceVersioning
from parcelkit.manifest.model import ExternalManifest, PackageManifest
from parcelkit.registry.protocols import (
    ConnectionInfo,
    ManifestFetcher,
    PackageRegistrar,
    StagedPusher,
)
from parcelkit.spec.loader import load_spec
from parcelkit.spec.model import PackageIdentity, PackageSpec
from parcelkit.staging.layout import default_staging_dir
from parcelkit.staging.writer import write_staging

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """What to do with the staged package."""

    PREPARE = "prepare"
    PUSH = "push"
    ALL = "all"


@dataclass(frozen=True)
class RunResult:
    """Outcome of a successful :func:`run`."""

    identity: str
    destination: Path
    manifest: PackageManifest
    pushed: bool = False
    registered: bool = False


def prefetch_external_manifests(
    spec: PackageSpec, fetcher: ManifestFetcher | None
) -> dict[PackageIdentity, ExternalManifest]:
    """Fetch every external reference of *spec* once.

    Raises
    ------
    ResolutionError
        If the spec has external references but no fetcher is configured.
    NotFoundError
        Propagated from the fetcher for unknown identities.
    """
    identities = spec.external_identities()
    if not identities:
        return {}
    if fetcher is None:
        raise ResolutionError(str(identities[0]))
    fetched: dict[PackageIdentity, ExternalManifest] = {}
    for identity in identities:
        logger.debug("Prefetching %s", identity)
        fetched[identity] = fetcher.fetch_manifest(identity)
    return fetched


def run(
    spec_path: Path,
    destination: Path | None = None,
    versioning: InvoiceVersioning = InvoiceVersioning.DEV,
    action: Action = Action.PREPARE,
    fetcher: ManifestFetcher | None = None,
    pusher: StagedPusher | None = None,
    server_url: str | None = None,
    registrar: PackageRegistrar | None = None,
    connection: ConnectionInfo | None = None,
    max_workers: int | None = None,
) -> RunResult:
    """Run the whole pipeline for the spec at *spec_path*.

    When *destination* is ``None`` a fresh, uniquely named staging
    directory is created, but only after expansion succeeded.
    A destination inside the project is left out of pattern matching, so
    re-staging into it never picks up its own output.

    Raises
    ------
    ValueError
        If *action* needs a pusher, server URL, registrar or connection
        that was not supplied.
    ParcelkitError
        Any failure from loading, expansion, staging, push or register.
    """
    if action in (Action.PUSH, Action.ALL) and (pusher is None or not server_url):
        raise ValueError(f"Action {action.value!r} requires a pusher and a server URL")
    if action is Action.ALL and (registrar is None or connection is None):
        raise ValueError("Action 'all' requires a registrar and connection info")

    spec, base_dir = load_spec(spec_path)
    context = ExpansionContext(
        base_dir=base_dir,
        versioning=versioning,
        external_manifests=prefetch_external_manifests(spec, fetcher),
        max_workers=max_workers,
        skip_dirs=(destination,) if destination is not None else (),
    )
    manifest = expand(spec, context)

    if destination is None:
        destination = default_staging_dir()
    write_staging(manifest, base_dir, destination)

    identity = PackageIdentity.parse(manifest.identity)
    pushed = registered = False
    if action in (Action.PUSH, Action.ALL):
        pusher(destination, identity, server_url)  # type: ignore[misc]
        pushed = True
        if action is Action.ALL:
            registrar(identity, connection)  # type: ignore[misc]
            registered = True

    return RunResult(
        identity=manifest.identity,
        destination=destination,
        manifest=manifest,
        pushed=pushed,
        registered=registered,
    )


__all__ = [
    "Action",
    "RunResult",
    "prefetch_external_manifests",
    "run",
]
