"""Pattern resolver — turns a component's patterns into concrete files.

Patterns use gitignore semantics via :class:`pathspec.GitIgnoreSpec`:
``**`` crosses directories, a pattern without a slash matches at any
depth, and a pattern matching a directory covers everything below it.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import pathspec

from parcelkit.errors import SpecError
from parcelkit.spec.model import ComponentEntry

logger = logging.getLogger(__name__)


def _is_confined_to_root(path: Path, root: Path) -> bool:
    try:
        resolved = path.resolve()
    except OSError:
        return False
    try:
        resolved.relative_to(root)
    except ValueError:
        return False
    return True


class PatternResolver:
    """Resolves include / exclude patterns relative to a base directory.

    The candidate file list under the base directory is walked once and
    cached, so resolving many entries against one tree stays cheap.

    Parameters
    ----------
    base_dir:
        Directory all patterns are relative to.
    skip_dirs:
        Directories whose contents are never candidates, such as a
        staging directory placed inside the project.
    """

    def __init__(self, base_dir: Path, skip_dirs: Iterable[Path] = ()) -> None:
        self._base_dir = base_dir.resolve()
        self._skip_dirs = tuple(d.resolve() for d in skip_dirs)
        self._candidates: list[tuple[str, Path]] | None = None

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def resolve(self, entry: ComponentEntry) -> frozenset[Path]:
        """Return the absolute paths selected by *entry*'s patterns.

        Raises
        ------
        SpecError
            If an include pattern contributes no file once excludes are
            applied.
        """
        exclude = pathspec.GitIgnoreSpec.from_lines(entry.exclude)
        selected: set[Path] = set()

        for pattern in entry.include:
            include = pathspec.GitIgnoreSpec.from_lines([pattern])
            matched = [
                path
                for rel, path in self._list_candidates()
                if include.match_file(rel) and not exclude.match_file(rel)
            ]
            if not matched:
                raise SpecError(
                    "Include pattern matched no files", entry=entry.name, pattern=pattern
                )
            logger.debug(
                "Entry %r: pattern %r matched %d file(s)", entry.name, pattern, len(matched)
            )
            selected.update(matched)

        return frozenset(selected)

    def relative_label(self, path: Path) -> str:
        """Return the base-relative POSIX path used as a parcel label."""
        return path.relative_to(self._base_dir).as_posix()

    def _list_candidates(self) -> list[tuple[str, Path]]:
        if self._candidates is None:
            candidates: list[tuple[str, Path]] = []
            for path in sorted(self._base_dir.rglob("*")):
                if not path.is_file():
                    continue
                if any(path.is_relative_to(d) for d in self._skip_dirs):
                    continue
                if not _is_confined_to_root(path, self._base_dir):
                    logger.debug("Skipping %s: resolves outside base directory", path)
                    continue
                candidates.append((self.relative_label(path), path))
            self._candidates = candidates
        return self._candidates


def resolve_entry(entry: ComponentEntry, base_dir: Path) -> frozenset[Path]:
    """Resolve a single entry against *base_dir*."""
    return PatternResolver(base_dir).resolve(entry)


__all__ = [
    "PatternResolver",
    "resolve_entry",
]
