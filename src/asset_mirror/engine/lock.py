from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from asset_mirror.cache.io import atomic_write_json, read_json_file
from asset_mirror.errors import FilesystemFailure

logger = logging.getLogger(__name__)


class WorkerLock:
    """
    Advisory lock that keeps two background refresh runs from overlapping.

    The lock is a start timestamp persisted next to the cache index. A run that crashed
    without releasing it blocks others only until the timestamp is older than ``stale_seconds``.
    This is not a distributed lock: acquiring it is a read followed by a write.
    """

    def __init__(self, path: Path, *, stale_seconds: int, clock: Callable[[], float] = time.time) -> None:
        self._path = path
        self._stale_seconds = stale_seconds
        self._clock = clock

    def started_at(self) -> Optional[int]:
        payload = read_json_file(self._path)
        if payload is None:
            return None
        value = payload.get("started_at")
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    def try_acquire(self) -> bool:
        now = int(self._clock())
        started_at = self.started_at()
        if started_at is not None:
            age = now - started_at
            if age < self._stale_seconds:
                logger.debug("Worker lock is held. started_at=%d age=%d", started_at, age)
                return False
            logger.warning("Reclaiming abandoned worker lock. started_at=%d age=%d", started_at, age)
        atomic_write_json(self._path, {"started_at": now})
        return True

    def release(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise FilesystemFailure(str(self._path), f"Cannot release worker lock: {e}") from e
