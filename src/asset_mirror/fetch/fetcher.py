from __future__ import annotations

import asyncio
import logging
import re
import secrets
import time
from functools import partial
from pathlib import Path
from typing import Callable, Optional

import aiohttp

from asset_mirror.cache.index import CacheIndex
from asset_mirror.cache.locations import AssetLocations
from asset_mirror.cache.models import CacheEntry
from asset_mirror.cache.urls import ExternalUrlClassifier
from asset_mirror.config.models import CacheSettings
from asset_mirror.engine.status import compute_status
from asset_mirror.errors import FilesystemFailure, NetworkFailure
from asset_mirror.fetch.sniffer import detect_type
from asset_mirror.rewrite.rewriter import DependencyRewriter

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_MAX_AGE_PATTERN = re.compile(r"(?:^|[,\s])max-age\s*=\s*\"?(\d+)", re.IGNORECASE)


def parse_max_age(cache_control: Optional[str]) -> Optional[int]:
    if not cache_control:
        return None
    match = _MAX_AGE_PATTERN.search(cache_control)
    if not match:
        return None
    seconds = int(match.group(1))
    return seconds if seconds > 0 else None


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Failed to remove partial download. path=%s error=%s", path, e)


class AssetFetcher:
    """
    Downloads external assets into local storage and records them in the cache index.

    Use as an async context manager so one HTTP session is shared by an asset and all of its
    dependencies.
    """

    def __init__(
        self,
        config: CacheSettings,
        *,
        index: CacheIndex,
        locations: AssetLocations,
        classifier: ExternalUrlClassifier,
        rewriter: Optional[DependencyRewriter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._index = index
        self._locations = locations
        self._classifier = classifier
        self._rewriter = rewriter or DependencyRewriter(classifier=classifier)
        self._clock = clock
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> AssetFetcher:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        if self._session:
            return
        headers = {}
        if self._config.user_agent:
            headers["User-Agent"] = self._config.user_agent
        timeout = aiohttp.ClientTimeout(total=self._config.fetch_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)

    async def stop(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def fetch(self, url: str, asset_type: Optional[str] = None) -> str:
        """
        Mirror ``url`` locally and return the public URL of the copy.

        Raises NetworkFailure when the download fails and FilesystemFailure when the copy cannot
        be stored. In both cases nothing is committed to the cache index.
        """
        should_close = False
        if not self._session:
            await self.start()
            should_close = True
        try:
            return await self._fetch(url, asset_type, trail=())
        finally:
            if should_close:
                await self.stop()

    async def _fetch(self, url: str, asset_type: Optional[str], *, trail: tuple[str, ...]) -> str:
        assert self._session is not None
        asset_type = (asset_type or "").strip().lower()
        if not asset_type:
            asset_type = await detect_type(self._session, url)

        filename = self._locations.filename_for(url, asset_type)
        target = self._locations.local_path(filename)
        part_path = target.with_name(f"{target.name}.{secrets.token_hex(4)}.part")

        logger.debug("Asset download started. url=%s file=%s", url, filename)
        try:
            lifetime = await self._download(url, part_path)
            if asset_type == "css":
                await self._rewriter.rewrite_stylesheet(
                    part_path,
                    base_url=url,
                    resolve=partial(self._resolve_dependency, trail=trail + (url,)),
                )
            part_path.replace(target)
            now = int(self._clock())
            # Only a file with an index entry counts as mirrored.
            try:
                self._index.put(url, CacheEntry(file=filename, created=now, expires=now + lifetime))
            except FilesystemFailure:
                _discard(target)
                raise
        except OSError as e:
            _discard(part_path)
            raise FilesystemFailure(str(target), f"Cannot store mirrored asset: {e}") from e
        except BaseException:
            _discard(part_path)
            raise

        logger.info("Asset mirrored. url=%s file=%s lifetime=%d", url, filename, lifetime)
        return self._locations.public_url(filename)

    async def _download(self, url: str, part_path: Path) -> int:
        assert self._session is not None
        try:
            async with self._session.get(url) as response:
                if response.status < 200 or response.status >= 300:
                    raise NetworkFailure(url, f"Unexpected response status {response.status}")
                with part_path.open("wb") as handle:
                    async for chunk in response.content.iter_chunked(_CHUNK_SIZE):
                        handle.write(chunk)
                cache_control = response.headers.get("Cache-Control")
        except asyncio.TimeoutError as e:
            raise NetworkFailure(url, "Download timed out") from e
        except aiohttp.ClientError as e:
            raise NetworkFailure(url, f"Download failed: {e}") from e

        return parse_max_age(cache_control) or self._config.default_lifetime_seconds

    async def _resolve_dependency(
        self,
        url: str,
        asset_type: Optional[str],
        *,
        trail: tuple[str, ...],
    ) -> Optional[str]:
        if url in trail:
            logger.warning("Skipping circular asset dependency. url=%s chain=%s", url, " -> ".join(trail))
            return None
        if len(trail) > self._config.max_dependency_depth:
            logger.warning("Skipping asset dependency beyond maximum depth. url=%s depth=%d", url, len(trail))
            return None

        entry = self._index.get(url)
        if entry and compute_status(entry, locations=self._locations, now=self._clock()) == "valid":
            return self._locations.public_url(entry.file)

        try:
            return await self._fetch(url, asset_type, trail=trail)
        except NetworkFailure as e:
            logger.warning("Failed to mirror asset dependency. url=%s error=%s", url, e)
            return None
