"""In-memory content store for tests and local experiments."""

from __future__ import annotations

from urllib.parse import quote

from media_catalog.storage.base import normalize_storage_path


class InMemoryContentStore:
    """Keeps blobs in a dict keyed by address."""

    def __init__(self, public_base_url: str = "memory://blobs") -> None:
        self.public_base_url = public_base_url.rstrip("/")
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.public: set[str] = set()

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        address = normalize_storage_path(path)
        self.objects[address] = bytes(data)
        self.content_types[address] = content_type
        return address

    async def make_public(self, address: str) -> None:
        self.public.add(address)

    def public_url(self, address: str) -> str:
        return f"{self.public_base_url}/{quote(address)}"

    async def delete(self, address: str) -> None:
        self.objects.pop(address, None)
        self.content_types.pop(address, None)
        self.public.discard(address)

    async def read(self, address: str) -> bytes:
        return self.objects[address]
