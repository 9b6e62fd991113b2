"""Package manifest data model.

The package manifest is the immutable product of expansion: a final
identity string, named groups, and content-addressed parcels.  It is the
document written at the fixed path of a staging layout and the shape
fetched back from a registry when a package is imported by another one.

Classes
-------
- Group             A named, possibly conditional bundle of parcels.
- Parcel            A content-addressed blob descriptor with its memberships.
- PackageManifest   Pydantic v2 model for the full resolved package.
- ParcelSource      Protocol for a backing store serving parcel bytes.
- ExternalManifest  A fetched manifest paired with its backing store.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterable, Protocol

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from parcelkit.spec.model import PackageIdentity

DIGEST_PATTERN = r"^[0-9a-f]{64}$"


# ---------------------------------------------------------------------------
# Value models
# ---------------------------------------------------------------------------


class Group(BaseModel):
    """A named bundle of parcels.

    Attributes
    ----------
    name:
        Unique group name within the manifest.
    required:
        Whether the group is active without being selected.
    requires:
        Name of the group that must be active for this one to activate.
        A required group with ``requires`` follows that group.
    version:
        Version of the component the group was built from, if declared.
    features:
        Opaque component metadata, passed through from the spec.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    required: bool = True
    requires: str | None = None
    version: str | None = None
    features: dict[str, Any] = Field(default_factory=dict)


class Parcel(BaseModel):
    """Immutable, content-addressed blob descriptor.

    Attributes
    ----------
    digest:
        Lowercase hex SHA-256 of the exact stored bytes.
    media_type:
        Declared media type of the content.
    size:
        Byte size of the content.
    label:
        Human label: base-relative path for local files, or the label
        carried by an imported manifest.
    member_of:
        Sorted names of the groups this parcel belongs to.
    requires:
        Optional group that must be active before this parcel is included.
    """

    model_config = ConfigDict(frozen=True)

    digest: str = Field(pattern=DIGEST_PATTERN)
    media_type: str = Field(min_length=1)
    size: int = Field(ge=0)
    label: str = Field(min_length=1)
    member_of: tuple[str, ...] = Field(min_length=1)
    requires: str | None = None


# ---------------------------------------------------------------------------
# Backing stores
# ---------------------------------------------------------------------------


class ParcelSource(Protocol):
    """Anything able to stream the bytes of a parcel by digest."""

    def open_parcel(self, digest: str) -> BinaryIO:
        ...


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class PackageManifest(BaseModel):
    """The finished, resolved description of a distributable package.

    Groups are ordered by name and parcels by digest; the assembler
    guarantees this and the model refuses duplicates so that a manifest
    never holds two entries for the same name or content.

    Imported parcels remember the backing store they came from in a
    private attribute.  It is never serialised; a manifest read back from
    disk treats all of its parcels as local.
    """

    model_config = ConfigDict(frozen=True)

    identity: str = Field(min_length=1)
    groups: tuple[Group, ...] = ()
    parcels: tuple[Parcel, ...] = ()
    annotations: dict[str, str] = Field(default_factory=dict)

    _imported_sources: dict[str, ParcelSource] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _check_invariants(self) -> "PackageManifest":
        group_names: set[str] = set()
        for group in self.groups:
            if group.name in group_names:
                raise ValueError(f"Duplicate group name: {group.name!r}")
            group_names.add(group.name)

        digests: set[str] = set()
        for parcel in self.parcels:
            if parcel.digest in digests:
                raise ValueError(f"Duplicate parcel digest: {parcel.digest}")
            digests.add(parcel.digest)
            unknown = [g for g in parcel.member_of if g not in group_names]
            if unknown:
                raise ValueError(
                    f"Parcel {parcel.label!r} is a member of unknown group(s): {unknown}"
                )
        return self

    @classmethod
    def build(
        cls,
        identity: str,
        groups: Iterable[Group],
        parcels: Iterable[Parcel],
        annotations: dict[str, str] | None = None,
        imported_sources: dict[str, ParcelSource] | None = None,
    ) -> "PackageManifest":
        """Construct a manifest and attach the backing stores of imported parcels."""
        manifest = cls(
            identity=identity,
            groups=tuple(groups),
            parcels=tuple(parcels),
            annotations=dict(annotations or {}),
        )
        manifest._imported_sources = dict(imported_sources or {})
        return manifest

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def group(self, name: str) -> Group:
        """Return the group called *name*.

        Raises
        ------
        KeyError
            If the manifest has no such group.
        """
        for group in self.groups:
            if group.name == name:
                return group
        raise KeyError(f"No group named {name!r} in manifest.")

    def parcel(self, digest: str) -> Parcel:
        """Return the parcel with *digest*, or raise ``KeyError``."""
        for parcel in self.parcels:
            if parcel.digest == digest:
                return parcel
        raise KeyError(f"No parcel with digest {digest} in manifest.")

    def imported_source(self, digest: str) -> ParcelSource | None:
        """Return the backing store of an imported parcel, or ``None`` for local ones."""
        return self._imported_sources.get(digest)

    @property
    def total_size(self) -> int:
        """Return the summed byte size of all parcels."""
        return sum(p.size for p in self.parcels)

    # ------------------------------------------------------------------
    # Reachability
    # ------------------------------------------------------------------

    def active_groups(self, selected: Iterable[str] = ()) -> frozenset[str]:
        """Return the names of groups active for a selection.

        A group is active when it is required or selected, and, if it
        has ``requires``, the group it requires is active as well.
        Requirement cycles never activate.
        """
        chosen = set(selected)
        active: set[str] = set()
        changed = True
        while changed:
            changed = False
            for group in self.groups:
                if group.name in active:
                    continue
                if group.requires is not None and group.requires not in active:
                    continue
                if group.required or group.name in chosen:
                    active.add(group.name)
                    changed = True
        return frozenset(active)

    def reachable_parcels(self, selected: Iterable[str] = ()) -> list[Parcel]:
        """Return the parcels included for a selection, in manifest order."""
        active = self.active_groups(selected)
        return [
            p
            for p in self.parcels
            if any(g in active for g in p.member_of)
            and (p.requires is None or p.requires in active)
        ]

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_json(self, indent: int = 2) -> str:
        """Serialise the manifest deterministically (sorted keys)."""
        raw = self.model_dump(mode="json")
        return json.dumps(raw, indent=indent, sort_keys=True) + "\n"

    @classmethod
    def from_json(cls, data: str) -> "PackageManifest":
        """Deserialise a manifest produced by :meth:`to_json`.

        Raises
        ------
        pydantic.ValidationError
            If the JSON does not match the manifest schema.
        json.JSONDecodeError
            If *data* is not valid JSON.
        """
        return cls.model_validate(json.loads(data))


@dataclass(frozen=True)
class ExternalManifest:
    """A previously published manifest, fetched ahead of expansion.

    External manifests are leaves: the assembler copies their groups and
    parcels but never expands them again, so cyclic imports cannot occur.
    """

    identity: PackageIdentity
    manifest: PackageManifest
    source: ParcelSource


__all__ = [
    "DIGEST_PATTERN",
    "ExternalManifest",
    "Group",
    "PackageManifest",
    "Parcel",
    "ParcelSource",
]
