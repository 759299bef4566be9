"""
Unit tests for the Content Store and its loader.
"""

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from memserve.content import (
    ContentLoadError,
    FileRecord,
    FilesystemContentStore,
    MemoryContentStore,
    load_content_store,
    open_content_store,
)

from conftest import INDEX_HTML, LOADED_AT, POST_HTML, STYLE_CSS


class TestLoadContentStore:
    """Tests for load_content_store()."""

    def test_files_registered_under_canonical_keys(self, store):
        assert store.get("/css/style.css").content == STYLE_CSS
        assert store.get("/data.bin").size == 256

    def test_directory_and_index_share_one_record(self, store):
        """ "/post/" and "/post/index.html" are the same object."""
        assert store.get("/post/") is store.get("/post/index.html")
        assert store.get("/post/").content == POST_HTML

    def test_root_directory_registered(self, store):
        assert store.get("/").content == INDEX_HTML
        assert store.get("/") is store.get("/index.html")

    def test_directory_without_index_not_registered(self, store):
        assert "/css/" not in store

    def test_every_record_shares_the_load_timestamp(self, store):
        stamps = {store.get(key).last_modified for key in store}
        assert stamps == {LOADED_AT}

    def test_content_types_decided_at_load(self, store):
        assert store.get("/index.html").content_type == "text/html; charset=utf-8"
        assert store.get("/css/style.css").content_type == "text/css; charset=utf-8"
        assert store.get("/data.bin").content_type == "application/octet-stream"

    def test_empty_file_is_servable(self, store):
        record = store.get("/empty.txt")
        assert record is not None
        assert record.size == 0

    def test_total_bytes_counts_shared_records_once(self, store, site_root):
        on_disk = sum(
            path.stat().st_size for path in site_root.rglob("*") if path.is_file()
        )
        assert store.total_bytes == on_disk

    def test_store_is_read_only(self, store):
        with pytest.raises(TypeError):
            store._records["/new"] = store.get("/")

    def test_missing_root_fails(self, tmp_path):
        with pytest.raises(ContentLoadError) as exc_info:
            load_content_store(tmp_path / "nope")
        assert exc_info.value.path == str(tmp_path / "nope")

    def test_unreadable_file_aborts_load(self, site_root):
        """A dangling symlink cannot be read, so the whole load fails."""
        os.symlink(site_root / "missing.html", site_root / "broken.html")
        with pytest.raises(ContentLoadError) as exc_info:
            load_content_store(site_root)
        assert exc_info.value.path.endswith("broken.html")
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_symlinked_file_read_through(self, site_root):
        os.symlink(site_root / "css" / "style.css", site_root / "alias.css")
        store = load_content_store(site_root)
        assert store.get("/alias.css").content == STYLE_CSS

    def test_unusual_names_are_escaped(self, site_root):
        (site_root / "my notes").mkdir()
        (site_root / "my notes" / "café.html").write_bytes(b"<p>x</p>")
        store = load_content_store(site_root)
        assert store.lookup("/my%20notes/caf%C3%A9.html").content == b"<p>x</p>"
        assert store.lookup("/my notes/café.html").content == b"<p>x</p>"

    def test_default_clock_truncates_to_seconds(self, site_root):
        store = load_content_store(site_root)
        assert store.loaded_at.microsecond == 0
        assert store.loaded_at.tzinfo is not None


class TestLookup:
    """Tests for ContentStore.lookup() directory-index resolution."""

    def test_root(self, store):
        assert store.lookup("/").content == INDEX_HTML

    def test_directory_with_slash(self, store):
        assert store.lookup("/post/").content == POST_HTML

    def test_directory_without_slash(self, store):
        assert store.lookup("/post").content == POST_HTML

    def test_missing_file(self, store):
        assert store.lookup("/nope") is None

    def test_directory_without_index(self, store):
        assert store.lookup("/css/") is None

    def test_traversal_misses(self, store):
        assert store.lookup("/../etc/passwd") is None
        assert store.lookup("/%2e%2e/etc/passwd") is None


class TestFileRecord:
    """Tests for FileRecord validators."""

    def test_weak_etag_from_timestamp(self):
        record = FileRecord(
            url_path="/a.txt",
            content_type="text/plain; charset=utf-8",
            content=b"a",
            last_modified=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )
        assert record.etag == 'W/"1704164645"'

    def test_etag_is_identical_across_files(self, store):
        assert store.get("/index.html").etag == store.get("/css/style.css").etag


class TestFilesystemContentStore:
    """Tests for the disk-backed strategy."""

    def test_serves_from_disk(self, site_root):
        store = FilesystemContentStore(site_root)
        assert store.lookup("/css/style.css").content == STYLE_CSS
        assert store.lookup("/post/").content == POST_HTML
        assert store.lookup("/").content == INDEX_HTML

    def test_sees_changes_without_reload(self, site_root):
        store = FilesystemContentStore(site_root)
        (site_root / "new.txt").write_bytes(b"fresh")
        assert store.lookup("/new.txt").content == b"fresh"

    def test_last_modified_is_mtime(self, site_root):
        os.utime(site_root / "index.html", (1_700_000_000, 1_700_000_000))
        store = FilesystemContentStore(site_root)
        record = store.lookup("/index.html")
        assert record.last_modified == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    def test_refuses_paths_outside_root(self, site_root):
        (site_root.parent / "secret.txt").write_bytes(b"secret")
        store = FilesystemContentStore(site_root)
        assert store.lookup("/../secret.txt") is None

    def test_missing(self, site_root):
        assert FilesystemContentStore(site_root).lookup("/nope") is None

    def test_root_must_exist(self, tmp_path):
        with pytest.raises(ContentLoadError):
            FilesystemContentStore(tmp_path / "nope")


class TestOpenContentStore:
    """Tests for strategy selection."""

    def test_memory_by_default(self, site_root):
        assert isinstance(open_content_store(site_root), MemoryContentStore)

    def test_disk_when_requested(self, site_root):
        assert isinstance(open_content_store(site_root, use_memory=False), FilesystemContentStore)
