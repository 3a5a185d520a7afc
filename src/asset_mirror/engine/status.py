from __future__ import annotations

from typing import Optional

from asset_mirror.cache.locations import AssetLocations
from asset_mirror.cache.models import AssetStatus, CacheEntry


def compute_status(entry: Optional[CacheEntry], *, locations: AssetLocations, now: float) -> AssetStatus:
    """
    Freshness of a mirrored asset.

    A missing file always wins over the expiry date, so an entry whose file was deleted is
    reported as missing even while it is still nominally fresh.
    """
    if entry is None:
        return "missing"
    if not locations.existing_path(entry.file).is_file():
        return "missing"
    if now >= entry.expires:
        return "expired"
    return "valid"


def display_status(status: AssetStatus, *, queued: bool) -> AssetStatus:
    if queued and status in ("missing", "expired"):
        return "enqueued"
    return status
