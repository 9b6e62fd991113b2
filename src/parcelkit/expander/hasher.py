"""Content hasher — streamed SHA-256, media type and verified size.

Classes
-------
- HashedContent   Frozen result of hashing one file.
- ContentHasher   Streams files through SHA-256 in bounded chunks.
"""
from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from parcelkit.errors import ContentIOError

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"

# Extension (lowercase, with dot) to media type.
MEDIA_TYPES: dict[str, str] = {
    # Web
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".xml": "application/xml",
    ".wasm": "application/wasm",
    # Text
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".toml": "application/toml",
    ".yaml": "application/yaml",
    ".yml": "application/yaml",
    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/vnd.microsoft.icon",
    ".webp": "image/webp",
    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    # Archives and documents
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
    ".pdf": "application/pdf",
}


def media_type_for(path: Path) -> str:
    """Return the media type for *path*'s extension, or the binary fallback."""
    return MEDIA_TYPES.get(path.suffix.lower(), DEFAULT_MEDIA_TYPE)


@dataclass(frozen=True)
class HashedContent:
    """Result of hashing one file.

    Attributes
    ----------
    path:
        The file that was hashed.
    digest:
        Lowercase hex SHA-256 of the bytes read.
    media_type:
        Media type detected from the extension.
    size:
        Number of bytes hashed, equal to the size the filesystem reported.
    """

    path: Path
    digest: str
    media_type: str
    size: int


class ContentHasher:
    """Streams files through SHA-256 without loading them whole.

    Parameters
    ----------
    chunk_size:
        Read size in bytes.  Default: 64 KiB.
    """

    def __init__(self, chunk_size: int = 65_536) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
        self._chunk_size = chunk_size

    def hash_file(self, path: Path) -> HashedContent:
        """Hash *path* and verify its size.

        Raises
        ------
        ContentIOError
            If the file cannot be read, or if the number of bytes hashed
            differs from the size the filesystem reports once reading is
            done (the file changed while it was being hashed).
        """
        hasher = hashlib.sha256()
        hashed = 0
        try:
            with path.open("rb") as fh:
                while True:
                    chunk = fh.read(self._chunk_size)
                    if not chunk:
                        break
                    hasher.update(chunk)
                    hashed += len(chunk)
                reported = os.fstat(fh.fileno()).st_size
        except OSError as exc:
            raise ContentIOError(f"Cannot read content ({exc.strerror or exc})", path) from exc

        if reported != hashed:
            raise ContentIOError(
                f"Size changed while hashing ({hashed} bytes read, {reported} reported)",
                path,
            )

        digest = hasher.hexdigest()
        logger.debug("Hashed %s: %s (%d bytes)", path, digest, hashed)
        return HashedContent(
            path=path,
            digest=digest,
            media_type=media_type_for(path),
            size=hashed,
        )


__all__ = [
    "DEFAULT_MEDIA_TYPE",
    "MEDIA_TYPES",
    "ContentHasher",
    "HashedContent",
    "media_type_for",
]
