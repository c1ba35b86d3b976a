"""Content-type sniffing.

Detects a MIME type from the leading bytes of a file using magic byte
signatures, with a text heuristic and the filename extension as fallbacks.
Used when an uploader does not supply a content type, and by the
content-type correction tooling.
"""

from __future__ import annotations

from pathlib import Path
from typing import Final

from media_catalog.models.enums import Medium

DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"
TEXT_CONTENT_TYPE: Final[str] = "text/plain; charset=utf-8"

# Bytes worth reading for reliable detection
SNIFF_LENGTH: Final[int] = 512

# Magic byte signatures for common formats
# Format: (magic_bytes, offset, content_type)
_MAGIC_SIGNATURES: Final[list[tuple[bytes, int, str]]] = [
    # Images
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    (b"BM", 0, "image/bmp"),
    (b"II*\x00", 0, "image/tiff"),  # little-endian
    (b"MM\x00*", 0, "image/tiff"),  # big-endian
    (b"\x00\x00\x01\x00", 0, "image/x-icon"),
    # Video
    (b"\x1aE\xdf\xa3", 0, "video/webm"),  # EBML (WebM/MKV)
    # Audio
    (b"ID3", 0, "audio/mpeg"),  # MP3 with ID3 tag
    (b"\xff\xfb", 0, "audio/mpeg"),  # MP3 frame sync
    (b"\xff\xfa", 0, "audio/mpeg"),
    (b"\xff\xf3", 0, "audio/mpeg"),
    (b"\xff\xf2", 0, "audio/mpeg"),
    (b"fLaC", 0, "audio/flac"),
    (b"OggS", 0, "audio/ogg"),
    # Documents
    (b"%PDF-", 0, "application/pdf"),
    (b"PK\x03\x04", 0, "application/zip"),
]

# RIFF container subtypes (bytes 8..12)
_RIFF_TYPES: Final[dict[bytes, str]] = {
    b"WEBP": "image/webp",
    b"WAVE": "audio/wav",
    b"AVI ": "video/x-msvideo",
}

# ISO base media (ftyp box) brands
_HEIC_BRANDS: Final[frozenset[bytes]] = frozenset(
    {b"heic", b"heix", b"hevc", b"hevx", b"mif1", b"msf1"}
)
_AVIF_BRANDS: Final[frozenset[bytes]] = frozenset({b"avif", b"avis"})
_QUICKTIME_BRANDS: Final[frozenset[bytes]] = frozenset({b"qt  "})
_M4V_BRANDS: Final[frozenset[bytes]] = frozenset({b"M4V ", b"M4VP"})
_M4A_BRANDS: Final[frozenset[bytes]] = frozenset({b"M4A ", b"M4B "})

# Extension fallback when bytes are inconclusive
_EXTENSION_MAP: Final[dict[str, str]] = {
    # Images
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".avif": "image/avif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    # Video
    ".mp4": "video/mp4",
    ".m4v": "video/x-m4v",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".wmv": "video/x-ms-wmv",
    # Audio
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    # Text
    ".txt": TEXT_CONTENT_TYPE,
    ".csv": "text/csv",
    ".json": "application/json",
}


def sniff_content_type(data: bytes, *, filename: str | None = None) -> str:
    """Detect a MIME type from content bytes and an optional filename hint.

    Detection strategy (in priority order):
    1. Magic bytes - container and header signatures
    2. Extension - filename hint
    3. Text heuristic - mostly printable UTF-8
    4. ``application/octet-stream``

    Args:
        data: Raw file content (only the first ``SNIFF_LENGTH`` bytes are used).
        filename: Optional filename or relative path for the extension fallback.

    Returns:
        The detected MIME type.
    """
    if not data:
        return _detect_by_extension(filename) or DEFAULT_CONTENT_TYPE

    header = data[:SNIFF_LENGTH]

    content_type = _detect_by_magic(header)
    if content_type is not None:
        return content_type

    content_type = _detect_by_extension(filename)
    if content_type is not None:
        return content_type

    if _is_text_like(header):
        return TEXT_CONTENT_TYPE

    return DEFAULT_CONTENT_TYPE


def sniff_content_type_from_path(path: str | Path) -> str:
    """Detect a MIME type from a file on disk, reading just its header."""
    path = Path(path)
    with path.open("rb") as f:
        header = f.read(SNIFF_LENGTH)
    return sniff_content_type(header, filename=path.name)


def medium_of(content_type: str | None) -> Medium:
    """Map a MIME type to its top-level category."""
    if not content_type:
        return Medium.BINARY
    major = content_type.split("/", 1)[0].strip().lower()
    try:
        return Medium(major)
    except ValueError:
        return Medium.BINARY


def _detect_by_magic(data: bytes) -> str | None:
    """Detect a MIME type from magic bytes."""
    # RIFF container (WebP, WAV, AVI)
    if data.startswith(b"RIFF") and len(data) >= 12:
        return _RIFF_TYPES.get(data[8:12])

    ftyp_type = _check_ftyp(data)
    if ftyp_type is not None:
        return ftyp_type

    for magic, offset, content_type in _MAGIC_SIGNATURES:
        if data[offset : offset + len(magic)] == magic:
            return content_type

    return None


def _check_ftyp(data: bytes) -> str | None:
    """Check for an ISO base media file (ftyp box): MP4, MOV, HEIC, M4A."""
    if len(data) < 12 or data[4:8] != b"ftyp":
        return None

    brand = data[8:12]
    if brand in _HEIC_BRANDS:
        return "image/heic"
    if brand in _AVIF_BRANDS:
        return "image/avif"
    if brand in _QUICKTIME_BRANDS:
        return "video/quicktime"
    if brand in _M4V_BRANDS:
        return "video/x-m4v"
    if brand in _M4A_BRANDS:
        return "audio/mp4"

    # isom, mp41, mp42, avc1 and the long tail of other brands
    return "video/mp4"


def _detect_by_extension(filename: str | None) -> str | None:
    if not filename:
        return None
    return _EXTENSION_MAP.get(Path(filename).suffix.lower())


def _is_text_like(data: bytes) -> bool:
    """Check whether bytes look like human-readable UTF-8 text."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multibyte sequence cut off by the sniff window is still text
        if e.start < len(data) - 3:
            return False
        text = data[: e.start].decode("utf-8")

    if not text:
        return False

    printable = sum(1 for char in text if char.isprintable() or char in "\n\r\t")
    return printable / len(text) > 0.9
