"""parcelkit — expand declarative package specs into content-addressed parcel bundles.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import parcelkit
>>> parcelkit.__version__
'0.1.0'

Expansion
---------
>>> from pathlib import Path
>>> from parcelkit import ComponentEntry, ExpansionContext, PackageSpec, expand
>>> spec = PackageSpec(
...     name="weather",
...     version="1.2.3",
...     entries=(ComponentEntry(name="web", include=("static/**",)),),
... )
>>> manifest = expand(spec, ExpansionContext(base_dir=Path("./app")))  # doctest: +SKIP

Staging
-------
>>> from parcelkit import write_staging
>>> write_staging(manifest, Path("./app"), Path("./staging"))  # doctest: +SKIP
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from parcelkit.errors import (
    ContentIOError,
    HashConsistencyError,
    NotFoundError,
    ParcelkitError,
    PushError,
    RegistrationError,
    ResolutionError,
    SpecError,
    VersioningError,
)

# ---------------------------------------------------------------------------
# Spec
# ---------------------------------------------------------------------------
from parcelkit.spec.loader import load_spec, parse_spec
from parcelkit.spec.model import (
    ComponentEntry,
    ExternalReference,
    PackageIdentity,
    PackageSpec,
)

# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------
from parcelkit.manifest.model import (
    ExternalManifest,
    Group,
    PackageManifest,
    Parcel,
    ParcelSource,
)

# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------
from parcelkit.expander.assembler import ExpansionContext, InvoiceAssembler, expand
from parcelkit.expander.hasher import ContentHasher, HashedContent
from parcelkit.expander.resolver import PatternResolver
from parcelkit.expander.versioning import IdentityVersioner, InvoiceVersioning

# ---------------------------------------------------------------------------
# Staging
# ---------------------------------------------------------------------------
from parcelkit.staging.layout import (
    StagingDirectorySource,
    default_staging_dir,
    read_staged_manifest,
)
from parcelkit.staging.writer import StagingWriter, write_staging

# ---------------------------------------------------------------------------
# Registry and orchestration
# ---------------------------------------------------------------------------
from parcelkit.registry.filesystem import FileSystemRegistry, push_staged
from parcelkit.registry.protocols import ConnectionInfo
from parcelkit.orchestrator import Action, RunResult, prefetch_external_manifests, run

__all__ = [
    # Version
    "__version__",
    # Errors
    "ContentIOError",
    "HashConsistencyError",
    "NotFoundError",
    "ParcelkitError",
    "PushError",
    "RegistrationError",
    "ResolutionError",
    "SpecError",
    "VersioningError",
    # Spec
    "ComponentEntry",
    "ExternalReference",
    "PackageIdentity",
    "PackageSpec",
    "load_spec",
    "parse_spec",
    # Manifest
    "ExternalManifest",
    "Group",
    "PackageManifest",
    "Parcel",
    "ParcelSource",
    # Expansion
    "ContentHasher",
    "ExpansionContext",
    "HashedContent",
    "IdentityVersioner",
    "InvoiceAssembler",
    "InvoiceVersioning",
    "PatternResolver",
    "expand",
    # Staging
    "StagingDirectorySource",
    "StagingWriter",
    "default_staging_dir",
    "read_staged_manifest",
    "write_staging",
    # Registry and orchestration
    "Action",
    "ConnectionInfo",
    "FileSystemRegistry",
    "RunResult",
    "prefetch_external_manifests",
    "push_staged",
    "run",
]
