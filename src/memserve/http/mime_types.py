"""
=============================================================================
CONTENT TYPE DETECTION
=============================================================================

Every FileRecord gets its Content-Type exactly once, at load time. The
decision is made in three passes:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                   detect_content_type(name, data)                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. EXTENSION TABLE         "style.css"  → text/css; charset=utf-8 │
    │         │ unknown extension                                          │
    │         ▼                                                            │
    │   2. MAGIC BYTES             b"\x89PNG..." → image/png               │
    │         │ no signature matched (first 512 bytes)                    │
    │         ▼                                                            │
    │   3. TEXT / BINARY           no control bytes → text/plain           │
    │                              otherwise → application/octet-stream    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Extension first: a site generator names its files honestly, and byte
sniffing alone cannot tell CSS or JavaScript from plain text.

=============================================================================
"""

from pathlib import Path
from typing import Optional


MIME_TYPES = {
    # ─────────────────────────────────────────────────────────────────────
    # TEXT
    # ─────────────────────────────────────────────────────────────────────
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".rss": "application/rss+xml",
    ".atom": "application/atom+xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".webmanifest": "application/manifest+json",
    ".map": "application/json",

    # ─────────────────────────────────────────────────────────────────────
    # IMAGES
    # ─────────────────────────────────────────────────────────────────────
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # ─────────────────────────────────────────────────────────────────────
    # FONTS
    # ─────────────────────────────────────────────────────────────────────
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".eot": "application/vnd.ms-fontobject",

    # ─────────────────────────────────────────────────────────────────────
    # MEDIA / DOCUMENTS / ARCHIVES
    # ─────────────────────────────────────────────────────────────────────
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

# Only this many leading bytes are examined when sniffing.
SNIFF_LEN = 512

# Tags that mark a document as HTML when they open it (case-insensitive,
# after leading whitespace), followed by a space or ">".
_HTML_TAGS = (
    b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1",
    b"<DIV", b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B",
    b"<BODY", b"<BR", b"<P",
)

# (prefix, mime type) checked in order against the raw leading bytes.
_SIGNATURES = (
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", "text/plain; charset=utf-8"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"OggS\x00", "application/ogg"),
    (b"ID3", "audio/mpeg"),
    (b"wOFF", "font/woff"),
    (b"wOF2", "font/woff2"),
    (b"OTTO", "font/otf"),
    (b"\x00\x01\x00\x00", "font/ttf"),
    (b"\x00asm", "application/wasm"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"Rar!\x1a\x07", "application/x-rar-compressed"),
)

# Bytes that never appear in text (everything below 0x20 except
# TAB, LF, FF, CR and ESC).
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)


def get_mime_type(path: str | Path, default: Optional[str] = None) -> Optional[str]:
    """
    Look up the MIME type for a file name by extension.

    Returns ``default`` (None unless given) when the extension is unknown,
    so callers can fall through to sniffing.

        >>> get_mime_type("post/index.html")
        'text/html'
        >>> get_mime_type("blob.xyz") is None
        True
    """
    if isinstance(path, str):
        path = Path(path)
    return MIME_TYPES.get(path.suffix.lower(), default)


def is_text_type(mime_type: str) -> bool:
    """Whether a MIME type is text-based (and so gets a charset)."""
    if mime_type.startswith("text/"):
        return True
    return mime_type in {
        "application/json",
        "application/xml",
        "application/rss+xml",
        "application/atom+xml",
        "application/manifest+json",
        "image/svg+xml",
    }


def sniff_content_type(data: bytes) -> str:
    """
    Guess a Content-Type from the leading bytes of a file.

    Follows the WHATWG MIME sniffing order: HTML/XML markup, then
    binary signatures, then a text-versus-binary check.
    """
    head = data[:SNIFF_LEN]

    # Markup checks skip leading whitespace.
    stripped = head.lstrip(b"\t\n\x0c\r ")
    upper = stripped[:16].upper()
    for tag in _HTML_TAGS:
        if upper.startswith(tag):
            following = stripped[len(tag):len(tag) + 1]
            if following in (b" ", b">"):
                return "text/html; charset=utf-8"
    if stripped.startswith(b"<!--"):
        return "text/html; charset=utf-8"
    if stripped.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"

    for prefix, mime_type in _SIGNATURES:
        if head.startswith(prefix):
            return mime_type

    if head[:4] == b"RIFF" and head[8:14] == b"WEBPVP":
        return "image/webp"
    if head[4:8] == b"ftyp":
        return "video/mp4"

    if any(byte in _BINARY_BYTES for byte in head):
        return DEFAULT_MIME_TYPE
    return "text/plain; charset=utf-8"


def detect_content_type(path: str | Path, data: bytes, charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for a loaded file.

    Args:
        path: File name (only the extension is used).
        data: The file's bytes, used when the extension is unknown.
        charset: Charset appended to text types.

    Examples:
        >>> detect_content_type("index.html", b"<h1>Home</h1>")
        'text/html; charset=utf-8'
        >>> detect_content_type("LICENSE", b"MIT License")
        'text/plain; charset=utf-8'
        >>> detect_content_type("blob", b"\\x89PNG\\r\\n\\x1a\\n....")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if mime_type is None:
        return sniff_content_type(data)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
