"""Error taxonomy for parcelkit.

Every failure the core can produce is a subclass of :class:`ParcelkitError`
and carries the structured context (entry, pattern, path, digest, identity)
needed by the caller to render a precise message.  The core never formats
output for the user itself.

Classes
-------
- ParcelkitError          Base class for all parcelkit failures.
- SpecError               Author mistake in the package spec.
- ResolutionError         External reference missing from the prefetched map.
- HashConsistencyError    Same digest observed with divergent metadata.
- ContentIOError          Read / write / size-mismatch failure.
- VersioningError         Malformed declared version.
- NotFoundError           Registry has no manifest for an identity.
- PushError               Uploading a staging layout failed.
- RegistrationError       Notifying the deployment registrar failed.
"""
from __future__ import annotations

from pathlib import Path


class ParcelkitError(Exception):
    """Base class for all parcelkit errors."""


# ---------------------------------------------------------------------------
# Core errors
# ---------------------------------------------------------------------------


class SpecError(ParcelkitError):
    """Raised for author mistakes: empty pattern matches, malformed entries."""

    def __init__(
        self,
        message: str,
        entry: str | None = None,
        pattern: str | None = None,
    ) -> None:
        self.entry = entry
        self.pattern = pattern
        context = []
        if entry is not None:
            context.append(f"entry {entry!r}")
        if pattern is not None:
            context.append(f"pattern {pattern!r}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class ResolutionError(ParcelkitError):
    """Raised when an external reference was not prefetched."""

    def __init__(self, identity: str, entry: str | None = None) -> None:
        self.identity = identity
        self.entry = entry
        where = f" referenced by entry {entry!r}" if entry else ""
        super().__init__(
            f"External package {identity!r}{where} was not fetched; "
            "a registry source is required to resolve external references."
        )


class HashConsistencyError(ParcelkitError):
    """Raised when one digest is seen with two different labels or media types."""

    def __init__(
        self,
        digest: str,
        field: str,
        first: str,
        second: str,
    ) -> None:
        self.digest = digest
        self.field = field
        self.first = first
        self.second = second
        super().__init__(
            f"Content {digest} declared with conflicting {field}: "
            f"{first!r} vs {second!r}"
        )


class ContentIOError(ParcelkitError):
    """Raised for read, write and size-mismatch failures on parcel content."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)


class VersioningError(ParcelkitError):
    """Raised when a declared version cannot be used under the active policy."""

    def __init__(self, version: str, reason: str) -> None:
        self.version = version
        super().__init__(f"Invalid package version {version!r}: {reason}")


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class NotFoundError(ParcelkitError):
    """Raised when a registry holds no manifest for the requested identity."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(f"Package {identity!r} not found in registry")


class PushError(ParcelkitError):
    """Raised when a staging layout cannot be uploaded."""

    def __init__(self, identity: str, reason: str) -> None:
        self.identity = identity
        super().__init__(f"Failed to push {identity!r}: {reason}")


class RegistrationError(ParcelkitError):
    """Raised when the deployment registrar rejects a package."""

    def __init__(self, identity: str, reason: str) -> None:
        self.identity = identity
        super().__init__(f"Failed to register {identity!r}: {reason}")


__all__ = [
    "ContentIOError",
    "HashConsistencyError",
    "NotFoundError",
    "ParcelkitError",
    "PushError",
    "RegistrationError",
    "ResolutionError",
    "SpecError",
    "VersioningError",
]
