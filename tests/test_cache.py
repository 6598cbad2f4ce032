"""Unit tests for kevfeed.cache: stores, cache-aside accessor, refresh trigger."""

import threading
from unittest.mock import MagicMock

import pytest

from kevfeed.cache import UPSTREAM_KV_KEY, FileStore, MemoryStore, get_or_refresh, refresh_cache
from kevfeed.errors import CacheError, DecodeError, TransportError
from kevfeed.models import CatalogRecord


class BrokenStore:
    """Store whose reads and/or writes fail."""

    def __init__(self, fail_get: bool = True, fail_put: bool = True):
        self.fail_get = fail_get
        self.fail_put = fail_put
        self.inner = MemoryStore()

    def get(self, key):
        if self.fail_get:
            raise CacheError("read failed")
        return self.inner.get(key)

    def put(self, key, value):
        if self.fail_put:
            raise CacheError("write failed")
        self.inner.put(key, value)


# ── MemoryStore ──────────────────────────────────────────────────────────────


class TestMemoryStore:
    def test_missing(self):
        assert MemoryStore().get("nope") is None

    def test_put_get(self):
        s = MemoryStore()
        s.put("k", b"v1")
        s.put("k", b"v2")
        assert s.get("k") == b"v2"


# ── FileStore ────────────────────────────────────────────────────────────────


class TestFileStore:
    def test_missing(self, tmp_path):
        assert FileStore(tmp_path).get(UPSTREAM_KV_KEY) is None

    def test_put_creates_dir(self, tmp_path):
        s = FileStore(tmp_path / "nested" / "cache")
        s.put(UPSTREAM_KV_KEY, b'{"a": 1}')
        assert s.get(UPSTREAM_KV_KEY) == b'{"a": 1}'
        assert (tmp_path / "nested" / "cache" / "upstream_response.json").exists()

    def test_no_tmp_left_behind(self, tmp_path):
        s = FileStore(tmp_path)
        s.put("k", b"x")
        assert [p.name for p in tmp_path.iterdir()] == ["k.json"]

    def test_concurrent_writers_same_key(self, tmp_path):
        s = FileStore(tmp_path)
        errors: list[Exception] = []
        payloads = [f'{{"writer": {n}}}'.encode() for n in range(4)]

        def writer(payload: bytes) -> None:
            for _ in range(25):
                try:
                    s.put(UPSTREAM_KV_KEY, payload)
                except CacheError as e:
                    errors.append(e)

        threads = [threading.Thread(target=writer, args=(p,)) for p in payloads]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert s.get(UPSTREAM_KV_KEY) in payloads
        assert [p.name for p in tmp_path.iterdir()] == ["upstream_response.json"]

    def test_rejects_path_traversal(self, tmp_path):
        with pytest.raises(CacheError):
            FileStore(tmp_path).put("../evil", b"x")

    def test_write_failure_wrapped(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(CacheError):
            FileStore(blocker / "sub").put("k", b"x")

    def test_read_failure_wrapped(self, tmp_path):
        (tmp_path / "k.json").mkdir()
        with pytest.raises(CacheError):
            FileStore(tmp_path).get("k")


# ── get_or_refresh ───────────────────────────────────────────────────────────


class TestGetOrRefresh:
    def test_empty_cache_fetches_once_and_stores(self, catalog):
        store = MemoryStore()
        fetcher = MagicMock(return_value=catalog)
        result = get_or_refresh(store, fetcher)
        assert result == catalog
        fetcher.assert_called_once_with()
        assert CatalogRecord.model_validate_json(store.get(UPSTREAM_KV_KEY)) == catalog

    def test_populated_cache_skips_fetcher(self, catalog):
        store = MemoryStore()
        store.put(UPSTREAM_KV_KEY, catalog.to_json())
        fetcher = MagicMock()
        assert get_or_refresh(store, fetcher) == catalog
        fetcher.assert_not_called()

    def test_second_call_is_a_hit(self, catalog):
        store = MemoryStore()
        fetcher = MagicMock(return_value=catalog)
        get_or_refresh(store, fetcher)
        get_or_refresh(store, fetcher)
        assert fetcher.call_count == 1

    def test_undecodable_entry_is_a_miss(self, catalog):
        store = MemoryStore()
        store.put(UPSTREAM_KV_KEY, b"garbage")
        fetcher = MagicMock(return_value=catalog)
        assert get_or_refresh(store, fetcher) == catalog
        fetcher.assert_called_once()
        assert store.get(UPSTREAM_KV_KEY) == catalog.to_json()

    def test_read_failure_is_a_miss(self, catalog):
        store = BrokenStore(fail_get=True, fail_put=False)
        fetcher = MagicMock(return_value=catalog)
        assert get_or_refresh(store, fetcher) == catalog
        fetcher.assert_called_once()

    def test_write_failure_still_returns_fresh(self, catalog):
        store = BrokenStore(fail_get=False, fail_put=True)
        fetcher = MagicMock(return_value=catalog)
        assert get_or_refresh(store, fetcher) == catalog

    def test_fetch_failure_propagates(self):
        fetcher = MagicMock(side_effect=TransportError("HTTP 503", status=503))
        with pytest.raises(TransportError):
            get_or_refresh(MemoryStore(), fetcher)

    def test_decode_failure_propagates(self):
        fetcher = MagicMock(side_effect=DecodeError("bad body"))
        with pytest.raises(DecodeError):
            get_or_refresh(MemoryStore(), fetcher)

    def test_custom_key(self, catalog):
        store = MemoryStore()
        get_or_refresh(store, MagicMock(return_value=catalog), key="other")
        assert store.get("other") is not None
        assert store.get(UPSTREAM_KV_KEY) is None


# ── refresh_cache ────────────────────────────────────────────────────────────


class TestRefreshCache:
    def test_overwrites_existing(self, catalog, make_entry, make_catalog_dict):
        old = CatalogRecord.model_validate(make_catalog_dict([make_entry()], catalogVersion="old"))
        store = MemoryStore()
        store.put(UPSTREAM_KV_KEY, old.to_json())
        fetcher = MagicMock(return_value=catalog)
        assert refresh_cache(store, fetcher) is True
        fetcher.assert_called_once()
        assert CatalogRecord.model_validate_json(store.get(UPSTREAM_KV_KEY)) == catalog

    def test_fetch_failure_swallowed(self, catalog):
        store = MemoryStore()
        store.put(UPSTREAM_KV_KEY, catalog.to_json())
        fetcher = MagicMock(side_effect=TransportError("down"))
        assert refresh_cache(store, fetcher) is False
        assert store.get(UPSTREAM_KV_KEY) == catalog.to_json()

    def test_write_failure_swallowed(self, catalog):
        assert refresh_cache(BrokenStore(), MagicMock(return_value=catalog)) is False

    def test_unexpected_store_error_swallowed(self, catalog):
        store = MagicMock()
        store.put.side_effect = RuntimeError("backend exploded")
        assert refresh_cache(store, MagicMock(return_value=catalog)) is False
        store.put.assert_called_once()
