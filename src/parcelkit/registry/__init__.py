"""Collaborator contracts and a directory-backed registry implementation."""
from __future__ import annotations

from parcelkit.registry.filesystem import FileSystemRegistry, push_staged
from parcelkit.registry.protocols import (
    ConnectionInfo,
    ManifestFetcher,
    PackageRegistrar,
    StagedPusher,
)

__all__ = [
    "ConnectionInfo",
    "FileSystemRegistry",
    "ManifestFetcher",
    "PackageRegistrar",
    "StagedPusher",
    "push_staged",
]
