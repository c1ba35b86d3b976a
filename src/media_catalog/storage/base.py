"""Content store boundary: where ingested bytes live."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Protocol

from media_catalog.errors import InputInvalid


class ContentStore(Protocol):
    """Protocol for blob stores.

    Addresses are the storage paths themselves. Paths are derived from
    folder id + relative path, so ``put`` must tolerate overwriting.
    """

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        """Write ``data`` at ``path`` and return its address.

        Raises:
            BlobWriteFailure: If the bytes could not be stored.
        """
        ...

    async def make_public(self, address: str) -> None:
        """Grant public read access. Callers treat failures as non-fatal."""
        ...

    def public_url(self, address: str) -> str:
        """Return a durable, publicly fetchable URL for ``address``."""
        ...

    async def delete(self, address: str) -> None:
        """Remove the bytes at ``address``. Deleting a missing object is not an error."""
        ...


def normalize_storage_path(path: str) -> str:
    """Validate and normalize a storage path to ``a/b/c`` form.

    Raises:
        InputInvalid: If the path is empty, absolute after cleanup, or escapes
            the store via ``..`` segments.
    """
    cleaned = path.replace("\\", "/").strip().lstrip("/")
    parts = [part for part in PurePosixPath(cleaned).parts if part not in ("", ".")]
    if not parts:
        raise InputInvalid(f"Empty storage path: {path!r}")
    if ".." in parts:
        raise InputInvalid(f"Storage path may not contain '..': {path!r}")
    return "/".join(parts)
