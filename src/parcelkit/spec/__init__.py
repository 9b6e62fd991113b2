"""Package specification model and loader.

Submodules
----------
- ``model``   PackageSpec, ComponentEntry, ExternalReference, PackageIdentity
- ``loader``  load_spec / parse_spec for YAML spec files
"""
from __future__ import annotations

from parcelkit.spec.loader import DEFAULT_SPEC_FILENAMES, find_spec_file, load_spec, parse_spec
from parcelkit.spec.model import (
    ComponentEntry,
    ExternalReference,
    PackageIdentity,
    PackageSpec,
)

__all__ = [
    "ComponentEntry",
    "DEFAULT_SPEC_FILENAMES",
    "ExternalReference",
    "PackageIdentity",
    "PackageSpec",
    "find_spec_file",
    "load_spec",
    "parse_spec",
]
