"""
Content layer: the store of servable files and the path rules used to
index it.
"""

from .paths import canonical_url_path, lookup_candidates, sanitize_path, strip_control_bytes
from .store import (
    ContentLoadError,
    ContentStore,
    FileRecord,
    FilesystemContentStore,
    MemoryContentStore,
    load_content_store,
    open_content_store,
)

__all__ = [
    "canonical_url_path",
    "lookup_candidates",
    "sanitize_path",
    "strip_control_bytes",
    "ContentLoadError",
    "ContentStore",
    "FileRecord",
    "FilesystemContentStore",
    "MemoryContentStore",
    "load_content_store",
    "open_content_store",
]
