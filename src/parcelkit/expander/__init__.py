"""Expansion pipeline: patterns to files, files to parcels, parcels to a manifest.

Submodules
----------
- ``resolver``    PatternResolver — include / exclude patterns to file sets
- ``hasher``      ContentHasher — streamed SHA-256, media type, size check
- ``versioning``  IdentityVersioner — dev / production identity policy
- ``assembler``   InvoiceAssembler, expand — builds the PackageManifest
"""
from __future__ import annotations

from parcelkit.expander.assembler import ExpansionContext, InvoiceAssembler, expand
from parcelkit.expander.hasher import ContentHasher, HashedContent, media_type_for
from parcelkit.expander.resolver import PatternResolver, resolve_entry
from parcelkit.expander.versioning import IdentityVersioner, InvoiceVersioning

__all__ = [
    "ContentHasher",
    "ExpansionContext",
    "HashedContent",
    "IdentityVersioner",
    "InvoiceAssembler",
    "InvoiceVersioning",
    "PatternResolver",
    "expand",
    "media_type_for",
    "resolve_entry",
]
