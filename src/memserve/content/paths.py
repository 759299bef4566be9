"""
=============================================================================
PATH NORMALIZATION
=============================================================================

Both sides of a store lookup must agree on one spelling of every path.

    LOAD TIME                              REQUEST TIME
    ─────────                              ────────────
    posts/café/index.html                  GET /posts/caf%C3%A9/
           │                                       │
    canonical_url_path()                   sanitize_path()
           │                                       │
           ▼                                       ▼
    /posts/caf%C3%A9/index.html    ==      /posts/caf%C3%A9/ + index.html

=============================================================================
THE ESCAPING RULE
=============================================================================

    1. Percent-decode the request path to raw bytes.
    2. Drop control bytes (0x00-0x1F and 0x7F). They can never reach a
       log line or a header through a crafted path.
    3. Re-escape with query-component escaping, leaving "/" alone:
       unreserved A-Z a-z 0-9 - _ . ~ stay, space becomes "+",
       everything else becomes %XX.

    Request                       Key
    ───────                       ───
    /a b.html                     /a+b.html
    /a%20b.html                   /a+b.html
    /a+b.html                     /a%2Bb.html
    /caf%c3%a9.html               /caf%C3%A9.html
    /evil%0d%0aSet-Cookie:x       /evilSet-Cookie%3Ax
    /../etc/passwd                /../etc/passwd     (no such key → 404)

Filesystem names go through steps 2 and 3 only; a file literally named
"%41.html" is stored as "/%2541.html", which is exactly what a request
for "/%2541.html" sanitizes to.

No ".." collapsing is done. The store is a flat map built from a walk
that never leaves the root, so a traversal attempt is just a miss.

=============================================================================
"""

import os
from pathlib import PurePath
from typing import List, Union
from urllib.parse import quote_plus, unquote_to_bytes


INDEX_FILE = "index.html"


def strip_control_bytes(data: bytes) -> bytes:
    """Remove every byte below 0x20 and DEL."""
    return bytes(b for b in data if b >= 0x20 and b != 0x7F)


def _escape(data: bytes) -> str:
    return quote_plus(strip_control_bytes(data), safe="/")


def sanitize_path(raw: str) -> str:
    """
    Turn a raw (percent-encoded) request path into a store key.

        >>> sanitize_path("/posts/hello%20world.html")
        '/posts/hello+world.html'
        >>> sanitize_path("/a%0Ab")
        '/ab'
    """
    return _escape(unquote_to_bytes(raw))


def canonical_url_path(relative: Union[str, PurePath], is_dir: bool = False) -> str:
    """
    Store key for a path relative to the content root.

    Args:
        relative: Root-relative path in OS form ("" or "." for the root).
        is_dir: Directories get a trailing slash.

        >>> canonical_url_path("post/hello.html")
        '/post/hello.html'
        >>> canonical_url_path("post", is_dir=True)
        '/post/'
        >>> canonical_url_path(".", is_dir=True)
        '/'
    """
    posix = PurePath(relative).as_posix()
    if posix == ".":
        posix = ""
    url = "/" + posix.strip("/")
    if is_dir and not url.endswith("/"):
        url += "/"
    return _escape(os.fsencode(url))


def lookup_candidates(raw_path: str) -> List[str]:
    """
    The ordered store keys to try for a request path.

        1. sanitize the path
        2. trailing "/"  →  append "index.html"
        3. unless the key already names an index.html, also try
           key + "/index.html" (a directory requested without its slash)

        >>> lookup_candidates("/")
        ['/index.html']
        >>> lookup_candidates("/post")
        ['/post', '/post/index.html']
        >>> lookup_candidates("/post/index.html")
        ['/post/index.html']
    """
    key = sanitize_path(raw_path)
    if key.endswith("/"):
        key += INDEX_FILE

    candidates = [key]
    if not key.endswith("/" + INDEX_FILE):
        candidates.append(key + "/" + INDEX_FILE)
    return candidates
