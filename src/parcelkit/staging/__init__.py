"""Content-addressed staging layout and its writer."""
from __future__ import annotations

from parcelkit.staging.layout import (
    MANIFEST_FILENAME,
    PARCELS_DIRNAME,
    StagingDirectorySource,
    default_staging_dir,
    is_complete,
    load_external_manifest,
    manifest_path,
    parcel_path,
    read_staged_manifest,
)
from parcelkit.staging.writer import StagingWriter, write_staging

__all__ = [
    "MANIFEST_FILENAME",
    "PARCELS_DIRNAME",
    "StagingDirectorySource",
    "StagingWriter",
    "default_staging_dir",
    "is_complete",
    "load_external_manifest",
    "manifest_path",
    "parcel_path",
    "read_staged_manifest",
    "write_staging",
]
