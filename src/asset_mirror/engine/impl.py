from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from asset_mirror.cache.index import CacheIndex
from asset_mirror.cache.locations import AssetLocations
from asset_mirror.cache.models import AssetRow, AssetStatus
from asset_mirror.cache.urls import ExternalUrlClassifier
from asset_mirror.config.models import CacheSettings
from asset_mirror.engine.lock import WorkerLock
from asset_mirror.engine.queue import WorkQueue
from asset_mirror.engine.status import compute_status, display_status
from asset_mirror.errors import FilesystemFailure, NetworkFailure
from asset_mirror.fetch.fetcher import AssetFetcher
from asset_mirror.rewrite.rewriter import DependencyRewriter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DrainReport:
    skipped: bool = False
    fetched: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class AssetCacheEngine:
    """
    Entry point for callers that need local mirrors of external assets.

    Lookups never block on the network: they serve what is on disk (even when expired) or the
    external URL, and enqueue the asset for ``drain_queue``, which a periodic trigger owned by
    the caller is expected to run.
    """

    def __init__(self, config: CacheSettings, *, clock: Callable[[], float] = time.time) -> None:
        self._config = config
        self._clock = clock
        self._index = CacheIndex(config.index_path)
        self._queue = WorkQueue(config.queue_path)
        self._lock = WorkerLock(config.lock_path, stale_seconds=config.worker_lock_stale_seconds, clock=clock)
        self._locations = AssetLocations(storage_dir=config.storage_dir, public_base_url=config.public_base_url)
        self._classifier = ExternalUrlClassifier(config.site_url)
        self._rewriter = DependencyRewriter(classifier=self._classifier)

    @property
    def index(self) -> CacheIndex:
        return self._index

    @property
    def queue(self) -> WorkQueue:
        return self._queue

    @property
    def worker_lock(self) -> WorkerLock:
        return self._lock

    def asset_status(self, url: str) -> AssetStatus:
        return compute_status(self._index.get(url), locations=self._locations, now=self._clock())

    def get_local_url(self, url: str) -> Optional[str]:
        """Local URL of a valid mirror of ``url``, or None."""
        entry = self._index.get(url)
        if compute_status(entry, locations=self._locations, now=self._clock()) != "valid":
            return None
        assert entry is not None
        return self._locations.public_url(entry.file)

    def lookup_or_fallback(self, url: str) -> str:
        if not self._classifier.is_external(url):
            return url

        entry = self._index.get(url)
        status = compute_status(entry, locations=self._locations, now=self._clock())
        if status == "valid":
            assert entry is not None
            return self._locations.public_url(entry.file)

        if self._queue.add(url):
            logger.info("Asset enqueued for background fetch. url=%s status=%s", url, status)
        if status == "expired":
            # Keep serving the stale copy until the refetch replaces it.
            assert entry is not None
            return self._locations.public_url(entry.file)
        return url

    async def cache_asset(self, url: str, asset_type: Optional[str] = None) -> str:
        """Return a local URL for ``url``, downloading it right away when no valid mirror exists."""
        local_url = self.get_local_url(url)
        if local_url:
            return local_url
        async with self._new_fetcher() as fetcher:
            local_url = await fetcher.fetch(url, asset_type)
        self._queue.remove(url)
        return local_url

    def list_entries_with_status(self) -> list[AssetRow]:
        queued = self._queue.urls()
        queued_set = set(queued)
        now = self._clock()

        rows: list[AssetRow] = []
        indexed = set()
        for url, entry in self._index.all_entries():
            indexed.add(url)
            status = compute_status(entry, locations=self._locations, now=now)
            rows.append(
                AssetRow(
                    url=url,
                    status=display_status(status, queued=url in queued_set),
                    created=entry.created,
                    expires=entry.expires,
                )
            )
        for url in queued:
            if url not in indexed:
                rows.append(AssetRow(url=url, status="enqueued"))
        return rows

    def trigger_refresh(self) -> int:
        """Enqueue every mirrored asset. Existing files keep being served until replaced."""
        urls = [url for url, _ in self._index.all_entries()]
        added = self._queue.add_many(urls)
        logger.info("Asset cache refresh requested. assets=%d newly_enqueued=%d", len(urls), added)
        return len(urls)

    def trigger_purge(self) -> int:
        """Delete all mirrored files and empty the index, then enqueue the old URLs for a rebuild."""
        entries = self._index.all_entries()
        self._queue.add_many(url for url, _ in entries)
        self._index.clear()

        failures: list[tuple[Path, OSError]] = []
        for _, entry in entries:
            path = self._locations.existing_path(entry.file)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to delete mirrored asset. path=%s error=%s", path, e)
                failures.append((path, e))
        if failures:
            path, error = failures[0]
            raise FilesystemFailure(
                str(path), f"Cannot delete {len(failures)} of {len(entries)} mirrored assets: {error}"
            ) from error
        logger.info("Asset cache purged. assets=%d", len(entries))
        return len(entries)

    def cache_version(self) -> str:
        return self._index.fingerprint()

    async def drain_queue(self) -> DrainReport:
        if not self._lock.try_acquire():
            logger.info("Asset queue drain skipped, another run holds the worker lock.")
            return DrainReport(skipped=True)

        try:
            urls = self._queue.urls()
            if self._config.drain_batch_size:
                urls = urls[: self._config.drain_batch_size]
            report = DrainReport()
            if not urls:
                return report

            logger.info("Asset queue drain started. urls=%d", len(urls))
            semaphore = asyncio.Semaphore(self._config.download_concurrency)
            async with self._new_fetcher() as fetcher:
                tasks = [
                    asyncio.create_task(self._drain_one(fetcher, semaphore, url, report))
                    for url in urls
                ]
                results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            logger.info(
                "Asset queue drain finished. fetched=%d failed=%d",
                len(report.fetched),
                len(report.failed),
            )
            return report
        finally:
            self._lock.release()

    async def _drain_one(
        self,
        fetcher: AssetFetcher,
        semaphore: asyncio.Semaphore,
        url: str,
        report: DrainReport,
    ) -> None:
        async with semaphore:
            try:
                await fetcher.fetch(url)
            except NetworkFailure as e:
                # Dropped from the queue; the next lookup of the asset enqueues it again.
                logger.warning("Background asset fetch failed. url=%s error=%s", url, e)
                report.failed.append(url)
            else:
                report.fetched.append(url)
        self._queue.remove(url)

    def _new_fetcher(self) -> AssetFetcher:
        return AssetFetcher(
            self._config,
            index=self._index,
            locations=self._locations,
            classifier=self._classifier,
            rewriter=self._rewriter,
            clock=self._clock,
        )
