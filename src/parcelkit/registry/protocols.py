"""Contracts for the network collaborators around the core.

The core only ever calls these and awaits the result; transport,
retries, authentication and certificate handling belong to the
implementations.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from parcelkit.manifest.model import ExternalManifest
from parcelkit.spec.model import PackageIdentity


@dataclass(frozen=True)
class ConnectionInfo:
    """How to reach a deployment registrar.

    Attributes
    ----------
    url:
        Base URL of the registrar.
    username:
        Account used to register packages.
    password:
        Password for *username*.  Excluded from ``repr``.
    accept_invalid_certs:
        Skip server certificate validation.
    """

    url: str
    username: str
    password: str = field(repr=False)
    accept_invalid_certs: bool = False

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("ConnectionInfo.url must not be empty.")


class ManifestFetcher(Protocol):
    """Resolves a published package's manifest by exact identity.

    Implementations raise :class:`~parcelkit.errors.NotFoundError` when
    the identity is unknown.
    """

    def fetch_manifest(self, identity: PackageIdentity) -> ExternalManifest:
        ...


class StagedPusher(Protocol):
    """Uploads a complete staging layout; raises ``PushError`` on failure."""

    def __call__(
        self, destination_dir: Path, identity: PackageIdentity, server_url: str
    ) -> None:
        ...


class PackageRegistrar(Protocol):
    """Announces a pushed package; raises ``RegistrationError`` on failure."""

    def __call__(self, identity: PackageIdentity, connection: ConnectionInfo) -> None:
        ...


__all__ = [
    "ConnectionInfo",
    "ManifestFetcher",
    "PackageRegistrar",
    "StagedPusher",
]
