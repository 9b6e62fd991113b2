"""Tests for parcelkit.expander.assembler.

Covers:
- One group per entry, carrying version, features and required flag
- Dedup: identical content from two entries is one parcel, two memberships
- Determinism: production output is byte-identical across runs and pool sizes
- Dev identity differs per run while groups and parcels do not
- Scoping of imported manifests under the importing entry's group
- ResolutionError for references that were not prefetched
- HashConsistencyError for one digest with divergent labels / media types
- Group collisions between imports and entries, with a shared-import hint
- Nested feature metadata kept intact through the manifest document
- Directories listed in skip_dirs never contribute parcels
- SpecError on empty matches, ContentIOError aborting the whole assembly
"""
from __future__ import annotations

import datetime
import hashlib
import io
from pathlib import Path
from unittest.mock import patch

import pytest

from parcelkit.errors import (
    ContentIOError,
    HashConsistencyError,
    ResolutionError,
    SpecError,
    VersioningError,
)
from parcelkit.expander.assembler import ExpansionContext, InvoiceAssembler, expand
from parcelkit.expander.hasher import ContentHasher
from parcelkit.expander.versioning import IdentityVersioner, InvoiceVersioning
from parcelkit.manifest.model import ExternalManifest, Group, PackageManifest, Parcel
from parcelkit.spec.model import (
    ComponentEntry,
    ExternalReference,
    PackageIdentity,
    PackageSpec,
)

_SHARED = PackageIdentity("shared", "1.0.0")
_HELPER = b"helper bytes"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sha256(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def _write_files(directory: Path, files: dict[str, bytes]) -> None:
    """Write {relative_path: content} to *directory*."""
    for rel_path, content in files.items():
        file_path = directory / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(content)


class _MemorySource:
    def __init__(self, blobs: dict[str, bytes]) -> None:
        self._blobs = blobs

    def open_parcel(self, digest: str) -> io.BytesIO:
        return io.BytesIO(self._blobs[digest])


def _shared_external(
    label: str = "helper.bin", media_type: str = "application/octet-stream"
) -> ExternalManifest:
    manifest = PackageManifest(
        identity=str(_SHARED),
        groups=(Group(name="shared"),),
        parcels=(
            Parcel(
                digest=_sha256(_HELPER),
                media_type=media_type,
                size=len(_HELPER),
                label=label,
                member_of=("shared",),
            ),
        ),
    )
    return ExternalManifest(
        identity=_SHARED,
        manifest=manifest,
        source=_MemorySource({_sha256(_HELPER): _HELPER}),
    )


def _spec(*entries: ComponentEntry, version: str = "1.0.0") -> PackageSpec:
    return PackageSpec(name="weather", version=version, entries=entries)


def _context(
    base_dir: Path,
    versioning: InvoiceVersioning = InvoiceVersioning.PRODUCTION,
    external: dict[PackageIdentity, ExternalManifest] | None = None,
    max_workers: int | None = None,
) -> ExpansionContext:
    return ExpansionContext(
        base_dir=base_dir,
        versioning=versioning,
        external_manifests=external or {},
        max_workers=max_workers,
    )


@pytest.fixture()
def tree(tmp_path: Path) -> Path:
    _write_files(
        tmp_path,
        {
            "static/index.html": b"<html></html>",
            "static/site.css": b"body {}",
            "shared/common.txt": b"common",
            "bin/weather.wasm": b"\x00asm-weather",
            "bin/other.wasm": b"\x00asm-other",
        },
    )
    return tmp_path


# ---------------------------------------------------------------------------
# Groups and parcels
# ---------------------------------------------------------------------------


class TestGroups:
    def test_one_group_per_entry(self, tree: Path) -> None:
        manifest = expand(
            _spec(
                ComponentEntry(name="web", include=("static/**",)),
                ComponentEntry(name="app", include=("bin/weather.wasm",)),
            ),
            _context(tree),
        )
        assert [g.name for g in manifest.groups] == ["app", "web"]

    def test_group_carries_entry_metadata(self, tree: Path) -> None:
        manifest = expand(
            _spec(
                ComponentEntry(
                    name="app",
                    version="0.3.0",
                    include=("bin/weather.wasm",),
                    features={"route": "/weather"},
                    required=False,
                )
            ),
            _context(tree),
        )
        group = manifest.group("app")
        assert group.version == "0.3.0"
        assert group.features == {"route": "/weather"}
        assert group.required is False
        assert group.requires is None

    def test_nested_features_survive_the_manifest_document(self, tree: Path) -> None:
        features = {
            "allowed_hosts": ["a.example", "b.example"],
            "env": {"LOG": "debug"},
            "cache": False,
        }
        manifest = expand(
            _spec(ComponentEntry(name="app", include=("bin/*",), features=features)),
            _context(tree),
        )
        restored = PackageManifest.from_json(manifest.to_json())
        assert restored.group("app").features == features

    def test_skip_dirs_are_not_packaged(self, tree: Path) -> None:
        _write_files(tree, {"staging/parcels/old.dat": b"stale", "staging/manifest.json": b"{}"})
        context = ExpansionContext(
            base_dir=tree,
            versioning=InvoiceVersioning.PRODUCTION,
            skip_dirs=(tree / "staging",),
        )
        manifest = expand(_spec(ComponentEntry(name="all", include=("**",))), context)
        labels = [p.label for p in manifest.parcels]
        assert labels
        assert not [label for label in labels if label.startswith("staging/")]

    def test_parcel_fields(self, tree: Path) -> None:
        manifest = expand(
            _spec(ComponentEntry(name="app", include=("bin/weather.wasm",))), _context(tree)
        )
        (parcel,) = manifest.parcels
        assert parcel.label == "bin/weather.wasm"
        assert parcel.media_type == "application/wasm"
        assert parcel.size == len(b"\x00asm-weather")
        assert parcel.digest == _sha256(b"\x00asm-weather")
        assert parcel.member_of == ("app",)

    def test_annotations_from_spec(self, tree: Path) -> None:
        spec = PackageSpec(
            name="weather",
            version="1.0.0",
            entries=(ComponentEntry(name="app", include=("bin/*.wasm",)),),
            authors=("Ada", "Brian"),
            description="Forecasts",
        )
        manifest = expand(spec, _context(tree))
        assert manifest.annotations == {"authors": "Ada, Brian", "description": "Forecasts"}


class TestDedup:
    def test_same_file_in_two_entries_is_one_parcel(self, tree: Path) -> None:
        manifest = expand(
            _spec(
                ComponentEntry(name="a", include=("shared/common.txt",)),
                ComponentEntry(name="b", include=("shared/**",)),
            ),
            _context(tree),
        )
        common = [p for p in manifest.parcels if p.label == "shared/common.txt"]
        assert len(common) == 1
        assert common[0].member_of == ("a", "b")

    def test_local_copy_of_imported_content_merges(self, tree: Path) -> None:
        _write_files(tree, {"helper.bin": _HELPER})
        manifest = expand(
            _spec(
                ComponentEntry(
                    name="lib",
                    include=("helper.bin",),
                    external=ExternalReference(_SHARED),
                )
            ),
            _context(tree, external={_SHARED: _shared_external()}),
        )
        (parcel,) = manifest.parcels
        assert parcel.member_of == ("lib", "shared")
        assert manifest.imported_source(parcel.digest) is None


class TestDeterminism:
    def _entries(self) -> tuple[ComponentEntry, ...]:
        return (
            ComponentEntry(name="web", include=("static/**",)),
            ComponentEntry(name="app", include=("bin/*.wasm", "shared/**")),
        )

    def test_production_output_is_byte_identical(self, tree: Path) -> None:
        first = expand(_spec(*self._entries()), _context(tree))
        second = expand(_spec(*self._entries()), _context(tree))
        assert first.to_json() == second.to_json()
        assert first.identity == "weather/1.0.0"

    def test_pool_size_does_not_change_output(self, tree: Path) -> None:
        serial = expand(_spec(*self._entries()), _context(tree, max_workers=1))
        parallel = expand(_spec(*self._entries()), _context(tree, max_workers=4))
        assert serial.to_json() == parallel.to_json()

    def test_parcels_sorted_by_digest(self, tree: Path) -> None:
        manifest = expand(_spec(*self._entries()), _context(tree))
        digests = [p.digest for p in manifest.parcels]
        assert digests == sorted(digests)

    def test_dev_identity_differs_but_content_does_not(self, tree: Path) -> None:
        def _assemble(minute: int) -> PackageManifest:
            when = datetime.datetime(2024, 5, 6, 7, minute, tzinfo=datetime.timezone.utc)
            versioner = IdentityVersioner(
                InvoiceVersioning.DEV, clock=lambda: when, user="ci"
            )
            context = _context(tree, versioning=InvoiceVersioning.DEV)
            return InvoiceAssembler(context, versioner=versioner).assemble(
                _spec(*self._entries())
            )

        first, second = _assemble(1), _assemble(2)
        assert first.identity != second.identity
        assert first.identity.startswith("weather/1.0.0-ci-")
        assert first.groups == second.groups
        assert first.parcels == second.parcels


# ---------------------------------------------------------------------------
# External manifests
# ---------------------------------------------------------------------------


class TestScoping:
    def test_imported_group_requires_importing_entry(self, tree: Path) -> None:
        manifest = expand(
            _spec(ComponentEntry(name="lib", external=ExternalReference(_SHARED))),
            _context(tree, external={_SHARED: _shared_external()}),
        )
        assert manifest.group("shared").requires == "lib"
        (helper,) = manifest.parcels
        assert helper.label == "helper.bin"
        assert helper.member_of == ("shared",)
        assert manifest.imported_source(helper.digest) is not None

    def test_imported_parcels_only_reachable_with_importer(self, tree: Path) -> None:
        manifest = expand(
            _spec(
                ComponentEntry(
                    name="lib", external=ExternalReference(_SHARED), required=False
                ),
                ComponentEntry(name="app", include=("bin/weather.wasm",)),
            ),
            _context(tree, external={_SHARED: _shared_external()}),
        )
        assert "helper.bin" not in [p.label for p in manifest.reachable_parcels()]
        assert "helper.bin" in [p.label for p in manifest.reachable_parcels({"lib"})]

    def test_removing_importer_removes_import(self, tree: Path) -> None:
        manifest = expand(
            _spec(ComponentEntry(name="app", include=("bin/weather.wasm",))),
            _context(tree, external={_SHARED: _shared_external()}),
        )
        assert "helper.bin" not in [p.label for p in manifest.parcels]
        assert "shared" not in [g.name for g in manifest.groups]

    def test_chained_groups_keep_their_requirement(self, tree: Path) -> None:
        external = _shared_external()
        chained = PackageManifest(
            identity=str(_SHARED),
            groups=(Group(name="shared"), Group(name="shared-extras", requires="shared")),
            parcels=external.manifest.parcels,
        )
        manifest = expand(
            _spec(ComponentEntry(name="lib", external=ExternalReference(_SHARED))),
            _context(
                tree,
                external={
                    _SHARED: ExternalManifest(_SHARED, chained, external.source)
                },
            ),
        )
        assert manifest.group("shared").requires == "lib"
        assert manifest.group("shared-extras").requires == "shared"

    def test_missing_external_raises_resolution_error(self, tree: Path) -> None:
        with pytest.raises(ResolutionError) as info:
            expand(
                _spec(ComponentEntry(name="lib", external=ExternalReference(_SHARED))),
                _context(tree),
            )
        assert info.value.identity == "shared/1.0.0"
        assert info.value.entry == "lib"

    def test_same_import_from_two_entries_conflicts(self, tree: Path) -> None:
        with pytest.raises(SpecError, match="defined differently.*dedicated importing entry"):
            expand(
                _spec(
                    ComponentEntry(name="a", external=ExternalReference(_SHARED)),
                    ComponentEntry(name="b", external=ExternalReference(_SHARED)),
                ),
                _context(tree, external={_SHARED: _shared_external()}),
            )


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestConsistencyGuard:
    def test_same_bytes_different_names_raise(self, tree: Path) -> None:
        _write_files(tree, {"data/same.txt": b"same", "data/same.json": b"same"})
        with pytest.raises(HashConsistencyError) as info:
            expand(
                _spec(
                    ComponentEntry(name="a", include=("data/same.txt",)),
                    ComponentEntry(name="b", include=("data/same.json",)),
                ),
                _context(tree),
            )
        assert info.value.digest == _sha256(b"same")

    def test_divergent_media_type_raises(self, tree: Path) -> None:
        _write_files(tree, {"helper.bin": _HELPER})
        with pytest.raises(HashConsistencyError) as info:
            expand(
                _spec(
                    ComponentEntry(
                        name="lib",
                        include=("helper.bin",),
                        external=ExternalReference(_SHARED),
                    )
                ),
                _context(
                    tree,
                    external={_SHARED: _shared_external(media_type="application/x-helper")},
                ),
            )
        assert info.value.field == "media_type"
        assert info.value.first == "application/octet-stream"
        assert info.value.second == "application/x-helper"


class TestFailures:
    def test_empty_match_raises_spec_error(self, tree: Path) -> None:
        with pytest.raises(SpecError) as info:
            expand(
                _spec(ComponentEntry(name="assets", include=("assets/**",))),
                _context(tree),
            )
        assert info.value.entry == "assets"
        assert info.value.pattern == "assets/**"

    def test_bad_production_version_raises(self, tree: Path) -> None:
        with pytest.raises(VersioningError):
            expand(
                _spec(ComponentEntry(name="app", include=("bin/*",)), version="latest"),
                _context(tree),
            )

    def test_hash_failure_aborts_assembly(self, tree: Path) -> None:
        original = ContentHasher.hash_file

        def _failing(self: ContentHasher, path: Path):  # type: ignore[no-untyped-def]
            if path.name == "site.css":
                raise ContentIOError("simulated read failure", path)
            return original(self, path)

        with patch.object(ContentHasher, "hash_file", _failing), pytest.raises(
            ContentIOError, match="simulated read failure"
        ):
            expand(
                _spec(ComponentEntry(name="web", include=("static/**", "bin/**"))),
                _context(tree, max_workers=3),
            )
