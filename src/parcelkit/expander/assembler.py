"""Invoice assembler — expands a package spec into a package manifest.

The assembler is the centre of the expansion pipeline:

1. Computes the final identity under the run's versioning policy.
2. Resolves every entry's patterns and checks its external reference
   was prefetched, before any content is read.
3. Hashes all selected files on a bounded worker pool.
4. Builds one group per entry and merges parcels by digest, then copies
   in each imported manifest, re-scoped under the importing entry.
5. Sorts groups by name and parcels by digest.

Assembly is all-or-nothing: any failure raises and no manifest is
returned.

Classes
-------
- ExpansionContext   Frozen bundle of base dir, policy and prefetched manifests.
- InvoiceAssembler   Runs the pipeline above for one spec.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from parcelkit.errors import HashConsistencyError, ResolutionError, SpecError
from parcelkit.expander.hasher import ContentHasher, HashedContent
from parcelkit.expander.resolver import PatternResolver
from parcelkit.expander.versioning import IdentityVersioner, InvoiceVersioning
from parcelkit.manifest.model import (
    ExternalManifest,
    Group,
    PackageManifest,
    Parcel,
    ParcelSource,
)
from parcelkit.spec.model import ComponentEntry, PackageIdentity, PackageSpec

logger = logging.getLogger(__name__)

_SHARED_IMPORT_HINT = (
    "a package shared by several entries must be imported by exactly one "
    "dedicated importing entry"
)


# ---------------------------------------------------------------------------
# Configuration value object
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExpansionContext:
    """Everything a run needs besides the spec itself.

    Attributes
    ----------
    base_dir:
        Directory include / exclude patterns are resolved against.
    versioning:
        Identity versioning policy for the run.
    external_manifests:
        Prefetched manifests keyed by exact identity.
    max_workers:
        Size of the hashing pool.  ``None`` uses ``os.cpu_count()``.
    skip_dirs:
        Directories under *base_dir* left out of pattern matching, such
        as the staging destination.
    """

    base_dir: Path
    versioning: InvoiceVersioning = InvoiceVersioning.DEV
    external_manifests: Mapping[PackageIdentity, ExternalManifest] = field(
        default_factory=dict
    )
    max_workers: int | None = None
    skip_dirs: tuple[Path, ...] = ()


# ---------------------------------------------------------------------------
# Working set
# ---------------------------------------------------------------------------


@dataclass
class _ParcelDraft:
    digest: str
    media_type: str
    size: int
    label: str
    member_of: set[str]
    requires: str | None
    source: ParcelSource | None

    def freeze(self) -> Parcel:
        return Parcel(
            digest=self.digest,
            media_type=self.media_type,
            size=self.size,
            label=self.label,
            member_of=tuple(sorted(self.member_of)),
            requires=self.requires,
        )


class _WorkingSet:
    """Mutable accumulator of groups and parcels, merged by name / digest."""

    def __init__(self) -> None:
        self._groups: dict[str, tuple[Group, str]] = {}
        self._parcels: dict[str, _ParcelDraft] = {}

    def add_group(self, group: Group, origin: str, hint: str | None = None) -> None:
        existing = self._groups.get(group.name)
        if existing is None:
            self._groups[group.name] = (group, origin)
            return
        current, current_origin = existing
        if current != group:
            raise SpecError(
                f"Group {group.name!r} is defined differently by {current_origin} "
                f"and {origin}" + (f"; {hint}" if hint else "")
            )

    def add_parcel(self, draft: _ParcelDraft) -> None:
        existing = self._parcels.get(draft.digest)
        if existing is None:
            self._parcels[draft.digest] = draft
            return
        for field_name in ("label", "media_type", "size", "requires"):
            first = getattr(existing, field_name)
            second = getattr(draft, field_name)
            if first != second:
                raise HashConsistencyError(draft.digest, field_name, str(first), str(second))
        existing.member_of |= draft.member_of
        if draft.source is None:
            existing.source = None

    def groups(self) -> list[Group]:
        return [self._groups[name][0] for name in sorted(self._groups)]

    def parcels(self) -> list[Parcel]:
        return [self._parcels[d].freeze() for d in sorted(self._parcels)]

    def imported_sources(self) -> dict[str, ParcelSource]:
        return {
            digest: draft.source
            for digest, draft in self._parcels.items()
            if draft.source is not None
        }


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class InvoiceAssembler:
    """Assembles a :class:`PackageManifest` from a spec and its context.

    Parameters
    ----------
    context:
        Base directory, versioning policy and prefetched manifests.
    hasher:
        Optional custom :class:`ContentHasher`.
    versioner:
        Optional custom :class:`IdentityVersioner`.  A default one for
        ``context.versioning`` is created if ``None``.
    """

    def __init__(
        self,
        context: ExpansionContext,
        hasher: ContentHasher | None = None,
        versioner: IdentityVersioner | None = None,
    ) -> None:
        self._context = context
        self._hasher = hasher or ContentHasher()
        self._versioner = versioner or IdentityVersioner(context.versioning)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def assemble(self, spec: PackageSpec) -> PackageManifest:
        """Expand *spec* into a package manifest.

        Raises
        ------
        SpecError
            If a pattern matches nothing or group definitions collide.
        ResolutionError
            If an external reference was not prefetched.
        HashConsistencyError
            If one digest is declared with divergent metadata.
        ContentIOError
            If a file cannot be read or changes while being hashed.
        VersioningError
            If the declared version is unusable under the policy.
        """
        identity = self._versioner.identity(spec.identity)

        resolver = PatternResolver(self._context.base_dir, self._context.skip_dirs)
        resolved: list[tuple[ComponentEntry, frozenset[Path]]] = []
        for entry in spec.entries:
            paths = resolver.resolve(entry) if entry.include else frozenset()
            self._external_for(entry)
            resolved.append((entry, paths))

        all_paths = sorted(set().union(*(paths for _, paths in resolved)))
        hashed = self._hash_all(all_paths)

        working = _WorkingSet()
        for entry, paths in resolved:
            working.add_group(
                Group(
                    name=entry.name,
                    required=entry.required,
                    version=entry.version,
                    features=dict(entry.features),
                ),
                origin=f"entry {entry.name!r}",
            )
            for path in sorted(paths):
                content = hashed[path]
                working.add_parcel(
                    _ParcelDraft(
                        digest=content.digest,
                        media_type=content.media_type,
                        size=content.size,
                        label=resolver.relative_label(path),
                        member_of={entry.name},
                        requires=None,
                        source=None,
                    )
                )
            external = self._external_for(entry)
            if external is not None:
                self._merge_external(working, entry, external)

        manifest = PackageManifest.build(
            identity=str(identity),
            groups=working.groups(),
            parcels=working.parcels(),
            annotations=_annotations(spec),
            imported_sources=working.imported_sources(),
        )
        logger.info(
            "Assembled %s: %d group(s), %d parcel(s)",
            manifest.identity,
            len(manifest.groups),
            len(manifest.parcels),
        )
        return manifest

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _external_for(self, entry: ComponentEntry) -> ExternalManifest | None:
        if entry.external is None:
            return None
        identity = entry.external.identity
        external = self._context.external_manifests.get(identity)
        if external is None:
            raise ResolutionError(str(identity), entry=entry.name)
        return external

    def _merge_external(
        self,
        working: _WorkingSet,
        entry: ComponentEntry,
        external: ExternalManifest,
    ) -> None:
        origin = f"{external.identity} imported by entry {entry.name!r}"
        for group in external.manifest.groups:
            if group.requires is None:
                group = group.model_copy(update={"requires": entry.name})
            working.add_group(group, origin=origin, hint=_SHARED_IMPORT_HINT)
        for parcel in external.manifest.parcels:
            working.add_parcel(
                _ParcelDraft(
                    digest=parcel.digest,
                    media_type=parcel.media_type,
                    size=parcel.size,
                    label=parcel.label,
                    member_of=set(parcel.member_of),
                    requires=parcel.requires,
                    source=external.source,
                )
            )
        logger.debug(
            "Entry %r: merged %d group(s), %d parcel(s) from %s",
            entry.name,
            len(external.manifest.groups),
            len(external.manifest.parcels),
            external.identity,
        )

    def _hash_all(self, paths: list[Path]) -> dict[Path, HashedContent]:
        if not paths:
            return {}
        workers = _resolve_worker_count(self._context.max_workers, len(paths))
        if workers == 1:
            return {path: self._hasher.hash_file(path) for path in paths}

        pool = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = [pool.submit(self._hasher.hash_file, path) for path in paths]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in futures:
                if future in done:
                    exc = future.exception()
                    if exc is not None:
                        raise exc
            return {path: future.result() for path, future in zip(paths, futures)}
        finally:
            # Pending hashes are abandoned on failure.
            pool.shutdown(wait=False, cancel_futures=True)


def _resolve_worker_count(max_workers: int | None, item_count: int) -> int:
    limit = max_workers if max_workers and max_workers > 0 else (os.cpu_count() or 1)
    return max(1, min(limit, item_count))


def _annotations(spec: PackageSpec) -> dict[str, str]:
    annotations: dict[str, str] = {}
    if spec.authors:
        annotations["authors"] = ", ".join(spec.authors)
    if spec.description:
        annotations["description"] = spec.description
    return annotations


def expand(spec: PackageSpec, context: ExpansionContext) -> PackageManifest:
    """Expand *spec* under *context* into a package manifest."""
    return InvoiceAssembler(context).assemble(spec)


__all__ = [
    "ExpansionContext",
    "InvoiceAssembler",
    "expand",
]
