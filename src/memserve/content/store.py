"""
=============================================================================
CONTENT STORE
=============================================================================

The Content Store maps canonical URL paths to immutable FileRecords. The
in-memory implementation is built once, before any listener accepts a
connection, and is never written to again.

=============================================================================
LIFECYCLE
=============================================================================

    process start
         │
         ▼
    load_content_store(web_root) ─── any OSError ──► ContentLoadError
         │                                            (logged, exit 1)
         │  walk (sorted, depth-first)
         │    dir with index.html → register "/dir/" and "/dir/index.html"
         │    dir without         → nothing for "/dir/"
         │    file                → register "/dir/file.ext"
         ▼
    MemoryContentStore (read-only mapping)
         │
         │  happens-before: listeners start only after the load returns
         ▼
    N connection threads read concurrently, no locks

=============================================================================
STRATEGIES
=============================================================================

    ┌────────────────────────┬───────────────────────────────────────────┐
    │ MemoryContentStore     │ all bytes in RAM, last_modified = load    │
    │                        │ time, no disk I/O per request             │
    ├────────────────────────┼───────────────────────────────────────────┤
    │ FilesystemContentStore │ reads from disk per request, disk mtime,  │
    │                        │ refuses paths resolving outside the root  │
    └────────────────────────┴───────────────────────────────────────────┘

    Both answer the same get() / lookup() contract, so the request
    handler does not know which one it is talking to.

=============================================================================
"""

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Iterator, Mapping, Optional, Union
from urllib.parse import unquote_to_bytes

from ..http.mime_types import detect_content_type
from .paths import INDEX_FILE, canonical_url_path, lookup_candidates


logger = logging.getLogger(__name__)


class ContentLoadError(Exception):
    """
    Raised when the content root cannot be fully materialized.

    There is no partial mode: one unreadable file, broken symlink or
    permission problem aborts the whole load.
    """

    def __init__(self, message: str, path: Union[str, Path, None] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


@dataclass(frozen=True)
class FileRecord:
    """
    One servable asset.

    Attributes:
        url_path: Canonical key ("/post/hello.html").
        content_type: Content-Type header value, decided at load time.
        content: The file's bytes.
        last_modified: When the record was loaded (UTC, whole seconds),
            not the file's mtime.
    """

    url_path: str
    content_type: str
    content: bytes
    last_modified: datetime

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def etag(self) -> str:
        """Weak validator derived from the load timestamp: W/"<unix seconds>"."""
        return f'W/"{int(self.last_modified.timestamp())}"'


class ContentStore(ABC):
    """Read-only mapping from canonical URL path to FileRecord."""

    @abstractmethod
    def get(self, key: str) -> Optional[FileRecord]:
        """Exact-key lookup; None on miss."""

    def lookup(self, raw_path: str) -> Optional[FileRecord]:
        """
        Resolve a raw request path with the directory-index rules.

        Tries each key from lookup_candidates() in order.
        """
        for key in lookup_candidates(raw_path):
            record = self.get(key)
            if record is not None:
                return record
        return None

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MemoryContentStore(ContentStore):
    """
    Immutable in-memory store.

    The mapping is wrapped in a MappingProxyType; nothing can add or
    replace an entry after construction.
    """

    def __init__(self, records: Mapping[str, FileRecord], loaded_at: Optional[datetime] = None):
        self._records = MappingProxyType(dict(records))
        self.loaded_at = loaded_at

    def get(self, key: str) -> Optional[FileRecord]:
        return self._records.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def keys(self):
        return self._records.keys()

    @property
    def total_bytes(self) -> int:
        """Bytes held, counting a record registered under two keys once."""
        seen = {id(record): record.size for record in self._records.values()}
        return sum(seen.values())


class FilesystemContentStore(ContentStore):
    """
    Disk-backed store for ``use_memory = False``.

    Every lookup maps the key back to a file under ``root`` and reads it.
    A key that resolves outside the root (via "..", or a symlink) is
    treated as a miss.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise ContentLoadError(f"Web root is not a directory: {root}", path=root)

    def _resolve(self, key: str) -> Optional[Path]:
        # Inverse of the key escaping: "+" was a space, %XX a byte.
        relative = os.fsdecode(unquote_to_bytes(key.replace("+", " "))).lstrip("/")
        candidate = (self.root / relative).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            logger.warning(f"Refusing path outside web root: {key}")
            return None
        return candidate

    def get(self, key: str) -> Optional[FileRecord]:
        if key.endswith("/"):
            return None

        path = self._resolve(key)
        if path is None or not path.is_file():
            return None

        try:
            stat = path.stat()
            content = path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            return None  # removed between is_file() and the read

        return FileRecord(
            url_path=key,
            content_type=detect_content_type(path.name, content),
            content=content,
            last_modified=datetime.fromtimestamp(int(stat.st_mtime), tz=timezone.utc),
        )


# =============================================================================
# LOADING
# =============================================================================

def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class _Loader:
    """Depth-first walk that fills a dict of records."""

    def __init__(self, root: Path, loaded_at: datetime):
        self.root = root
        self.loaded_at = loaded_at
        self.records: Dict[str, FileRecord] = {}

    def _read(self, path: Path, relative: str) -> FileRecord:
        try:
            content = path.read_bytes()
        except OSError as e:
            raise ContentLoadError(f"Failed to read {path}: {e}", path=path) from e

        record = FileRecord(
            url_path=canonical_url_path(relative),
            content_type=detect_content_type(path.name, content),
            content=content,
            last_modified=self.loaded_at,
        )
        logger.debug(f"Loaded {record.url_path} ({record.size} bytes, {record.content_type})")
        return record

    def walk(self, directory: Path, relative: str = "") -> None:
        dir_key = canonical_url_path(relative, is_dir=True)

        index_path = directory / INDEX_FILE
        index_relative = os.path.join(relative, INDEX_FILE)
        if os.path.lexists(index_path):
            record = self._read(index_path, index_relative)
            self.records[dir_key] = record
            self.records[record.url_path] = record
            logger.debug(f"Directory {dir_key} served by its {INDEX_FILE}")
        else:
            logger.debug(f"Directory {dir_key} has no {INDEX_FILE}")

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            raise ContentLoadError(f"Failed to list {directory}: {e}", path=directory) from e

        for entry in entries:
            entry_relative = os.path.join(relative, entry.name)
            entry_path = Path(entry.path)
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_link = entry.is_symlink()
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as e:
                raise ContentLoadError(f"Failed to stat {entry_path}: {e}", path=entry_path) from e

            if is_dir:
                self.walk(entry_path, entry_relative)
            elif is_link or is_file:
                # Symlinks are read through, never descended: a link to a
                # directory (or a dangling link) fails the read.
                key = canonical_url_path(entry_relative)
                if key not in self.records:
                    self.records[key] = self._read(entry_path, entry_relative)
            else:
                raise ContentLoadError(f"Not a regular file: {entry_path}", path=entry_path)


def load_content_store(
    root: Union[str, Path],
    clock: Callable[[], datetime] = _utc_now,
) -> MemoryContentStore:
    """
    Materialize every file under ``root`` into a MemoryContentStore.

    Args:
        root: The content root (the site generator's output directory).
        clock: Source of the load timestamp; tests pass a fixed clock.

    Returns:
        A fully built, read-only store.

    Raises:
        ContentLoadError: If anything under ``root`` cannot be read.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise ContentLoadError(f"Web root is not a directory: {root}", path=root)

    started = time.perf_counter()
    loader = _Loader(root_path, clock())
    loader.walk(root_path)

    store = MemoryContentStore(loader.records, loaded_at=loader.loaded_at)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"Loaded {len(store)} paths ({store.total_bytes} bytes) "
        f"from {root_path} in {elapsed_ms:.1f}ms"
    )
    return store


def open_content_store(root: Union[str, Path], use_memory: bool = True) -> ContentStore:
    """Pick the store strategy: in-memory (default) or disk passthrough."""
    if use_memory:
        return load_content_store(root)
    logger.info(f"Serving {root} directly from disk")
    return FilesystemContentStore(root)
