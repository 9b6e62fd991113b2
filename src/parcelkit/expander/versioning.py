"""Identity versioning policies.

Classes
-------
- InvoiceVersioning   ``dev`` / ``production`` policy enum.
- IdentityVersioner   Computes the final identity string for a run.
"""
from __future__ import annotations

import datetime
import os
import re
from enum import Enum
from typing import Callable

from parcelkit.errors import VersioningError
from parcelkit.spec.model import PackageIdentity

SEMVER_PATTERN_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*)"
    r"(?:\.(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_USER_SANITISE_RE = re.compile(r"[^0-9A-Za-z-]+")


class InvoiceVersioning(str, Enum):
    """How the final package identity is derived.

    Values
    ------
    DEV:
        Declared version plus a per-run user/time disambiguator.
    PRODUCTION:
        Declared version, unmodified and reproducible.
    """

    DEV = "dev"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, text: str) -> "InvoiceVersioning":
        """Parse a policy name; anything but ``production`` means dev."""
        if text.strip().lower() == cls.PRODUCTION.value:
            return cls.PRODUCTION
        return cls.DEV


def _default_user() -> str:
    return os.environ.get("USER") or os.environ.get("USERNAME") or "dev"


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class IdentityVersioner:
    """Computes a package identity under one versioning policy.

    The policy only affects the identity string; it never touches group
    or parcel content.

    Parameters
    ----------
    policy:
        Versioning policy for the run.
    clock:
        Returns the current time.  Used for the dev disambiguator.
    user:
        User name embedded in dev versions.  Defaults to ``$USER``.
    """

    def __init__(
        self,
        policy: InvoiceVersioning,
        clock: Callable[[], datetime.datetime] = _utc_now,
        user: str | None = None,
    ) -> None:
        self._policy = policy
        self._clock = clock
        self._user = user

    @property
    def policy(self) -> InvoiceVersioning:
        return self._policy

    def identity(self, declared: PackageIdentity) -> PackageIdentity:
        """Return the final identity for *declared*.

        Raises
        ------
        VersioningError
            Under production policy, if the declared version is not a
            valid semantic version.
        """
        if self._policy is InvoiceVersioning.PRODUCTION:
            if not SEMVER_PATTERN_RE.match(declared.version):
                raise VersioningError(
                    declared.version, "production versions must be semantic versions"
                )
            return declared
        return PackageIdentity(name=declared.name, version=self.dev_version(declared.version))

    def dev_version(self, version: str) -> str:
        """Append the ``<user>-<timestamp>`` disambiguator to *version*.

        Lands in the pre-release part, before any build metadata, so the
        result still orders as a pre-release of the declared version.
        """
        core, plus, build = version.partition("+")
        stamp = self._clock().strftime("%Y%m%d%H%M%S%f")[:-3]
        user = _USER_SANITISE_RE.sub("-", self._user or _default_user()).strip("-") or "dev"
        separator = "." if "-" in core else "-"
        return f"{core}{separator}{user}-{stamp}{plus}{build}"


__all__ = [
    "SEMVER_PATTERN_RE",
    "IdentityVersioner",
    "InvoiceVersioning",
]
