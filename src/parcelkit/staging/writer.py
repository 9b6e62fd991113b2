"""Staging writer — materialises a manifest onto a content-addressed layout.

Write order is what makes a staging directory safe to read:

1. Any existing manifest document is removed, so the directory reads
   as incomplete for the rest of the write.
2. Each parcel is copied to a temporary file, its digest re-checked,
   then renamed to ``parcels/<digest>.dat``.  Parcels already present
   under their digest path are left untouched.
3. The manifest is written to a temporary file and renamed into place.

A failure in step 2 raises before step 3, so a manifest document is only
ever present next to a complete parcel set.
"""
from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from parcelkit.errors import ContentIOError
from parcelkit.manifest.model import PackageManifest, Parcel
from parcelkit.staging import layout

logger = logging.getLogger(__name__)

_COPY_CHUNK_SIZE = 65_536


class StagingWriter:
    """Writes a :class:`PackageManifest` and its parcels to a directory.

    Parameters
    ----------
    base_dir:
        Directory local parcel labels are relative to.
    destination:
        Staging directory.  Created if missing; reused if it already
        holds a previous staging.
    """

    def __init__(self, base_dir: Path, destination: Path) -> None:
        self._base_dir = base_dir
        self._destination = destination

    @property
    def destination(self) -> Path:
        return self._destination

    def write(self, manifest: PackageManifest) -> Path:
        """Stage *manifest* and return the manifest document path.

        Raises
        ------
        ContentIOError
            If a parcel cannot be copied, its bytes no longer match its
            digest, or the manifest cannot be written.
        """
        destination = self._destination
        try:
            destination.mkdir(parents=True, exist_ok=True)
            layout.parcels_dir(destination).mkdir(exist_ok=True)
            previous = layout.manifest_path(destination)
            if previous.exists():
                logger.info("Reusing staging directory %s", destination)
                previous.unlink()
        except OSError as exc:
            raise ContentIOError(
                f"Cannot prepare staging directory ({exc.strerror or exc})", destination
            ) from exc

        copied = 0
        for parcel in manifest.parcels:
            if self.write_parcel(manifest, parcel):
                copied += 1
        logger.debug(
            "Staged %d new parcel(s), %d already present",
            copied,
            len(manifest.parcels) - copied,
        )
        return self._write_manifest(manifest)

    def write_parcel(self, manifest: PackageManifest, parcel: Parcel) -> bool:
        """Copy one parcel into the layout; return False if it was already there."""
        target = layout.parcel_path(self._destination, parcel.digest)
        if target.exists():
            logger.debug("Parcel %s already staged", parcel.digest)
            return False

        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=".dat")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out, self._open_source(manifest, parcel) as src:
                digest = _copy_hashing(src, out)
            if digest != parcel.digest:
                raise ContentIOError(
                    f"Content of {parcel.label!r} changed since hashing "
                    f"(expected {parcel.digest}, got {digest})",
                    target,
                )
            os.replace(tmp_path, target)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise ContentIOError(
                f"Cannot stage parcel {parcel.label!r} ({exc.strerror or exc})", target
            ) from exc
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("Staged parcel %s (%s)", parcel.digest, parcel.label)
        return True

    def _open_source(self, manifest: PackageManifest, parcel: Parcel) -> BinaryIO:
        source = manifest.imported_source(parcel.digest)
        if source is not None:
            return source.open_parcel(parcel.digest)
        return (self._base_dir / parcel.label).open("rb")

    def _write_manifest(self, manifest: PackageManifest) -> Path:
        final_path = layout.manifest_path(self._destination)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._destination, prefix=".manifest-", suffix=".tmp"
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as out:
                out.write(manifest.to_json())
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_path, final_path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise ContentIOError(
                f"Cannot write manifest ({exc.strerror or exc})", final_path
            ) from exc
        logger.info("Wrote manifest for %s to %s", manifest.identity, final_path)
        return final_path


def _copy_hashing(src: BinaryIO, out: BinaryIO) -> str:
    hasher = hashlib.sha256()
    while True:
        chunk = src.read(_COPY_CHUNK_SIZE)
        if not chunk:
            break
        hasher.update(chunk)
        out.write(chunk)
    return hasher.hexdigest()


def write_staging(
    manifest: PackageManifest, base_dir: Path, destination: Path
) -> Path:
    """Stage *manifest* under *destination*; return the manifest document path."""
    return StagingWriter(base_dir, destination).write(manifest)


__all__ = [
    "StagingWriter",
    "write_staging",
]
