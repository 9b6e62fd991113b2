"""Directory-backed package registry.

Published packages live as complete staging layouts under
``<root>/<name>/<version>/``.  Names containing ``/`` become nested
directories.  A published version is immutable: pushing different
content under an existing identity fails.
"""
from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

from parcelkit.errors import ContentIOError, NotFoundError, PushError
from parcelkit.manifest.model import ExternalManifest, PackageManifest
from parcelkit.spec.model import PackageIdentity
from parcelkit.staging import layout
from parcelkit.staging.writer import StagingWriter

logger = logging.getLogger(__name__)


class FileSystemRegistry:
    """A package registry rooted at a local directory.

    Parameters
    ----------
    root:
        Registry root directory.  Created on first push.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    @classmethod
    def from_url(cls, url: str) -> "FileSystemRegistry":
        """Build a registry from a ``file://`` URL or a plain path."""
        parsed = urlparse(url)
        if parsed.scheme == "file":
            return cls(Path(unquote(parsed.path)))
        if parsed.scheme and len(parsed.scheme) > 1:
            raise ValueError(f"Unsupported registry URL scheme: {parsed.scheme!r}")
        return cls(Path(url))

    @property
    def root(self) -> Path:
        return self._root

    def package_dir(self, identity: PackageIdentity) -> Path:
        return self._root.joinpath(*identity.name.split("/"), identity.version)

    def fetch_manifest(self, identity: PackageIdentity) -> ExternalManifest:
        """Return the published manifest for *identity*.

        Raises
        ------
        NotFoundError
            If no complete layout is published under *identity*.
        """
        package_dir = self.package_dir(identity)
        if not layout.is_complete(package_dir):
            raise NotFoundError(str(identity))
        logger.debug("Fetched %s from %s", identity, package_dir)
        return layout.load_external_manifest(package_dir, identity)

    def push(self, staging_dir: Path, identity: PackageIdentity) -> Path:
        """Publish a complete staging layout under *identity*.

        Raises
        ------
        PushError
            If the staging layout is incomplete, belongs to another
            identity, conflicts with an already published version, or
            cannot be copied.
        """
        try:
            staged = layout.read_staged_manifest(staging_dir)
        except ContentIOError as exc:
            raise PushError(str(identity), str(exc)) from exc
        if staged.identity != str(identity):
            raise PushError(
                str(identity), f"staging directory holds {staged.identity!r}"
            )

        target = self.package_dir(identity)
        if layout.is_complete(target):
            published = layout.read_staged_manifest(target)
            if published.to_json() == staged.to_json():
                logger.info("%s is already published", identity)
                return target
            raise PushError(str(identity), "a different package is already published")

        source = layout.StagingDirectorySource(staging_dir)
        manifest = PackageManifest.build(
            identity=staged.identity,
            groups=staged.groups,
            parcels=staged.parcels,
            annotations=staged.annotations,
            imported_sources={p.digest: source for p in staged.parcels},
        )
        try:
            StagingWriter(staging_dir, target).write(manifest)
        except ContentIOError as exc:
            raise PushError(str(identity), str(exc)) from exc
        logger.info("Pushed %s to %s", identity, target)
        return target

    def __repr__(self) -> str:
        return f"FileSystemRegistry(root={str(self._root)!r})"


def push_staged(destination_dir: Path, identity: PackageIdentity, server_url: str) -> None:
    """Push a staging layout to the filesystem registry at *server_url*."""
    try:
        registry = FileSystemRegistry.from_url(server_url)
    except ValueError as exc:
        raise PushError(str(identity), str(exc)) from exc
    registry.push(destination_dir, identity)


__all__ = [
    "FileSystemRegistry",
    "push_staged",
]
