"""On-disk staging layout.

::

    <destination>/
      manifest.json
      parcels/<sha256>.dat

A directory without ``manifest.json`` is an incomplete staging and must
never be pushed.
"""
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import BinaryIO

from parcelkit.errors import ContentIOError
from parcelkit.manifest.model import ExternalManifest, PackageManifest
from parcelkit.spec.model import PackageIdentity

MANIFEST_FILENAME = "manifest.json"
PARCELS_DIRNAME = "parcels"
PARCEL_SUFFIX = ".dat"
STAGING_PREFIX = "parcelkit-staging-"


def manifest_path(destination: Path) -> Path:
    return destination / MANIFEST_FILENAME


def parcels_dir(destination: Path) -> Path:
    return destination / PARCELS_DIRNAME


def parcel_path(destination: Path, digest: str) -> Path:
    """Return the content-addressed path of a parcel inside *destination*."""
    return parcels_dir(destination) / f"{digest}{PARCEL_SUFFIX}"


def is_complete(destination: Path) -> bool:
    """Return True if *destination* holds a manifest document."""
    return manifest_path(destination).is_file()


def default_staging_dir() -> Path:
    """Create and return a fresh, uniquely named staging directory."""
    return Path(tempfile.mkdtemp(prefix=STAGING_PREFIX))


def read_staged_manifest(destination: Path) -> PackageManifest:
    """Load the manifest document of a staging layout.

    Raises
    ------
    ContentIOError
        If the layout has no manifest (incomplete) or it cannot be read.
    """
    path = manifest_path(destination)
    if not path.is_file():
        raise ContentIOError("Staging directory is incomplete (no manifest)", destination)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ContentIOError(f"Cannot read manifest ({exc.strerror or exc})", path) from exc
    return PackageManifest.from_json(text)


class StagingDirectorySource:
    """Serves parcel bytes out of an existing staging layout.

    Parameters
    ----------
    root:
        The staging directory (the one holding ``manifest.json``).
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def open_parcel(self, digest: str) -> BinaryIO:
        return parcel_path(self._root, digest).open("rb")

    def __repr__(self) -> str:
        return f"StagingDirectorySource(root={str(self._root)!r})"


def load_external_manifest(
    destination: Path, identity: PackageIdentity
) -> ExternalManifest:
    """Wrap a complete staging layout as an importable external manifest."""
    return ExternalManifest(
        identity=identity,
        manifest=read_staged_manifest(destination),
        source=StagingDirectorySource(destination),
    )


__all__ = [
    "MANIFEST_FILENAME",
    "PARCELS_DIRNAME",
    "PARCEL_SUFFIX",
    "StagingDirectorySource",
    "default_staging_dir",
    "is_complete",
    "load_external_manifest",
    "manifest_path",
    "parcel_path",
    "parcels_dir",
    "read_staged_manifest",
]
