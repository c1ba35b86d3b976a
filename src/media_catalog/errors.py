"""Error taxonomy for ingestion and catalog queries.

Every failure a caller can observe is a ``CatalogError`` subclass:

- ``InputInvalid``: request is missing or malformed (empty relative path, bad page size)
- ``StoreUnavailable``: document store unreachable; safe for the caller to retry
- ``HashFailure``: the byte stream broke while fingerprinting
- ``BlobWriteFailure``: the content store rejected the bytes
- ``PersistFailure``: blob stored, record write failed; blob was deleted again
- ``OrphanedBlobFailure``: as above, but the compensating delete failed too
- ``InvalidCursor``: a page token cannot be resolved
- ``FileNotFound``: the referenced file record does not exist

Nothing here retries. Retry policy belongs to the caller.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError


class CatalogError(Exception):
    """Base class for all catalog failures."""


class InputInvalid(CatalogError):
    """A required field is missing or malformed."""


class StoreUnavailable(CatalogError):
    """The document store cannot be reached."""


class HashFailure(CatalogError):
    """Content could not be read to completion for fingerprinting."""


class BlobWriteFailure(CatalogError):
    """Writing bytes to the content store failed."""


class PersistFailure(CatalogError):
    """The file record could not be written after its blob was stored.

    ``blob_orphaned`` tells the caller whether the stored bytes are still
    lying around without a record pointing at them.
    """

    blob_orphaned = False

    def __init__(self, message: str, *, storage_path: str | None = None) -> None:
        super().__init__(message)
        self.storage_path = storage_path


class OrphanedBlobFailure(PersistFailure):
    """Record write failed and the compensating blob delete failed as well."""

    blob_orphaned = True


class InvalidCursor(CatalogError):
    """Page token is malformed, foreign to this query, or its boundary record is gone."""


class FileNotFound(CatalogError):
    """No file record exists with the given id."""


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate connectivity failures from the database layer into ``StoreUnavailable``."""
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        raise StoreUnavailable(f"{operation}: {e.orig}") from e
    except OSError as e:
        raise StoreUnavailable(f"{operation}: {e}") from e
