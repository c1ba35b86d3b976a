"""Content fingerprints used as the catalog-wide deduplication key."""

from __future__ import annotations

import hashlib
from collections.abc import AsyncIterable

from media_catalog.errors import HashFailure

CHUNK_SIZE = 1024 * 1024  # 1MB


def content_fingerprint(data: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


async def read_and_fingerprint(chunks: AsyncIterable[bytes]) -> tuple[bytes, str]:
    """Drain a chunk stream, returning the full content and its fingerprint.

    Raises:
        HashFailure: If the stream breaks before it is exhausted.
    """
    hasher = hashlib.sha256()
    buffer = bytearray()
    try:
        async for chunk in chunks:
            hasher.update(chunk)
            buffer.extend(chunk)
    except (OSError, EOFError) as e:
        raise HashFailure(f"Content stream broke after {len(buffer)} bytes: {e}") from e
    return bytes(buffer), hasher.hexdigest()
