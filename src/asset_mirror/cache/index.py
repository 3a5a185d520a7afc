from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

from asset_mirror.cache.io import atomic_write_json, empty_index, encode_index, read_index_file
from asset_mirror.cache.models import CacheEntry, IndexState
from asset_mirror.cache.utils import format_rfc3339, utc_now

logger = logging.getLogger(__name__)


class CacheIndex:
    """
    Persisted mapping from external URL to its local mirror.

    Every operation reads the index file, and every mutation rewrites it atomically, so the
    index stays consistent across processes sharing the same state directory. Read-then-write
    sequences are not linearizable; the last writer wins.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def get(self, url: str) -> Optional[CacheEntry]:
        return self._load().entries.get(url)

    def put(self, url: str, entry: CacheEntry) -> None:
        state = self._load()
        state.entries[url] = entry
        self._write(state)
        logger.debug("Cache index entry stored. url=%s file=%s expires=%d", url, entry.file, entry.expires)

    def all_entries(self) -> list[tuple[str, CacheEntry]]:
        return list(self._load().entries.items())

    def clear(self) -> None:
        self._write(empty_index())

    def fingerprint(self) -> str:
        # Only the url -> file mapping counts, so refetches that keep the filename do not change it.
        digest = hashlib.sha256()
        for url, entry in sorted(self._load().entries.items()):
            digest.update(f"{url}\n{entry.file}\n".encode("utf-8"))
        return digest.hexdigest()[:12]

    def _load(self) -> IndexState:
        return read_index_file(self._path)

    def _write(self, state: IndexState) -> None:
        state.generated_at = format_rfc3339(utc_now())
        atomic_write_json(self._path, encode_index(state))
