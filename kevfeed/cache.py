"""Key-value storage for the catalog snapshot and the cache-aside accessor.

One snapshot lives under one well-known key. Request handlers read it
through ``get_or_refresh``; the scheduled trigger overwrites it with
``refresh_cache``. Stores only ever see bytes.
"""

import os
import re
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from .downloaders import parse_catalog
from .errors import CacheError, DecodeError, KevFeedError
from .log import get_logger
from .models import CatalogRecord

UPSTREAM_KV_KEY = "upstream_response"

logger = get_logger(__name__)

Fetcher = Callable[[], CatalogRecord]


class KeyValueStore(Protocol):
    """Minimal get/put capability the cache needs."""

    def get(self, key: str) -> bytes | None:
        """Return the stored value, ``None`` when absent. Raises ``CacheError``."""
        ...

    def put(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value. Raises ``CacheError``."""
        ...


class MemoryStore:
    """Process-local store; contents vanish with the process."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)


class FileStore:
    """Store each key as a file in a directory.

    Each write goes to its own temporary file in ``root`` that is renamed
    into place, so readers never see a half-written snapshot and concurrent
    writers to one key end up last-writer-wins.

    Attributes:
        root: Directory holding one file per key.
    """

    def __init__(self, root: Path):
        self.root = root

    def _path(self, key: str) -> Path:
        if not re.fullmatch(r"[A-Za-z0-9_.-]+", key) or key.startswith("."):
            raise CacheError(f"Invalid cache key: {key!r}")
        return self.root / f"{key}.json"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"Could not read {path}: {e}") from e

    def put(self, key: str, value: bytes) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=self.root, prefix=f".{key}.", suffix=".tmp", delete=False) as tmp:
                tmp_name = tmp.name
                tmp.write(value)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise CacheError(f"Could not write {path}: {e}") from e


def _read_cached(store: KeyValueStore, key: str) -> CatalogRecord | None:
    try:
        raw = store.get(key)
    except CacheError as e:
        logger.warning("Cache read failed for %s: %s", key, e)
        return None
    if raw is None:
        return None
    try:
        return parse_catalog(raw)
    except DecodeError as e:
        logger.warning("Discarding undecodable cache entry %s: %s", key, e)
        return None


def _write_cached(store: KeyValueStore, key: str, catalog: CatalogRecord) -> None:
    store.put(key, catalog.to_json())


def get_or_refresh(store: KeyValueStore, fetcher: Fetcher, key: str = UPSTREAM_KV_KEY) -> CatalogRecord:
    """Return the cached catalog, fetching and caching it on a miss.

    A failed cache read or an undecodable entry counts as a miss. A failed
    write after a successful fetch is logged and the fresh catalog is still
    returned.

    Args:
        store: Key-value store holding the snapshot.
        fetcher: Zero-argument callable returning a fresh ``CatalogRecord``.
        key: Cache key.

    Returns:
        The cached or freshly fetched catalog.

    Raises:
        TransportError: If the cache misses and the upstream is unreachable.
        DecodeError: If the cache misses and the upstream body is invalid.
    """
    cached = _read_cached(store, key)
    if cached is not None:
        return cached

    logger.info("No cached catalog under %s, falling back to an upstream fetch", key)
    catalog = fetcher()
    try:
        _write_cached(store, key, catalog)
    except CacheError as e:
        logger.warning("Error while updating cache: %s", e)
    return catalog


def refresh_cache(store: KeyValueStore, fetcher: Fetcher, key: str = UPSTREAM_KV_KEY) -> bool:
    """Fetch the catalog and overwrite the cache entry.

    Meant for an external scheduler; nothing is raised for fetch or write
    failures since there is no caller to report to. That includes errors
    from third-party stores that do not wrap their failures in ``CacheError``.

    Returns:
        ``True`` if the cache now holds the fresh catalog.
    """
    try:
        catalog = fetcher()
        _write_cached(store, key, catalog)
    except KevFeedError as e:
        logger.error("Scheduled refresh failed: %s", e)
        return False
    except Exception:
        logger.exception("Scheduled refresh failed with an unexpected error")
        return False
    logger.info("Cache %s refreshed with catalog %s", key, catalog.catalog_version)
    return True
