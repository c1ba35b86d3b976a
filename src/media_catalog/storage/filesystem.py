"""Filesystem-backed content store."""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from pathlib import Path
from urllib.parse import quote

import aiofiles
import aiofiles.os

from media_catalog.errors import BlobWriteFailure
from media_catalog.storage.base import normalize_storage_path

logger = logging.getLogger(__name__)

_PUBLIC_READ = stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IROTH


class FilesystemContentStore:
    """Stores blobs under a root directory and serves them from a base URL.

    The app mounts ``root`` at ``/media`` so that ``public_url`` resolves.
    """

    def __init__(self, root: Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, address: str) -> Path:
        return self.root / normalize_storage_path(address)

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        address = normalize_storage_path(path)
        target = self.root / address
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Failed to write blob %s: %s", address, e)
            raise BlobWriteFailure(f"Failed to write {address}: {e}") from e

        logger.debug("Stored %d bytes (%s) at %s", len(data), content_type, target)
        return address

    async def make_public(self, address: str) -> None:
        await asyncio.to_thread(os.chmod, self._resolve(address), _PUBLIC_READ)

    def public_url(self, address: str) -> str:
        return f"{self.public_base_url}/{quote(normalize_storage_path(address))}"

    async def delete(self, address: str) -> None:
        try:
            await aiofiles.os.remove(self._resolve(address))
        except FileNotFoundError:
            logger.debug("Blob %s already absent", address)

    async def read(self, address: str) -> bytes:
        async with aiofiles.open(self._resolve(address), "rb") as f:
            return await f.read()
