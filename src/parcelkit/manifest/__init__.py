"""Package manifest model: groups, parcels and imported manifests."""
from __future__ import annotations

from parcelkit.manifest.model import (
    DIGEST_PATTERN,
    ExternalManifest,
    Group,
    PackageManifest,
    Parcel,
    ParcelSource,
)

__all__ = [
    "DIGEST_PATTERN",
    "ExternalManifest",
    "Group",
    "PackageManifest",
    "Parcel",
    "ParcelSource",
]
