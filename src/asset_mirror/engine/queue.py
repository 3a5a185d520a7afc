from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from asset_mirror.cache.io import atomic_write_json, encode_queue, read_queue_file
from asset_mirror.cache.models import QueueState, SchemaVersion

logger = logging.getLogger(__name__)


class WorkQueue:
    """Durable, de-duplicated list of URLs waiting for a background fetch."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def urls(self) -> list[str]:
        return list(read_queue_file(self._path).urls)

    def contains(self, url: str) -> bool:
        return url in read_queue_file(self._path).urls

    def add(self, url: str) -> bool:
        return self.add_many([url]) > 0

    def add_many(self, urls: Iterable[str]) -> int:
        state = read_queue_file(self._path)
        known = set(state.urls)
        added = 0
        for url in urls:
            if url in known:
                continue
            known.add(url)
            state.urls.append(url)
            added += 1
        if added:
            self._write(state)
            logger.debug("Assets enqueued. added=%d queued=%d", added, len(state.urls))
        return added

    def remove(self, url: str) -> None:
        state = read_queue_file(self._path)
        if url not in state.urls:
            return
        state.urls.remove(url)
        self._write(state)

    def clear(self) -> None:
        self._write(QueueState(schema_version=SchemaVersion, urls=[]))

    def _write(self, state: QueueState) -> None:
        atomic_write_json(self._path, encode_queue(state))
