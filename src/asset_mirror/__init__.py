"""Local mirror for externally hosted web assets."""

from asset_mirror.engine.impl import AssetCacheEngine, DrainReport
from asset_mirror.errors import AssetCacheError, FetchError, FilesystemFailure, NetworkFailure

__all__ = [
    "AssetCacheEngine",
    "AssetCacheError",
    "DrainReport",
    "FetchError",
    "FilesystemFailure",
    "NetworkFailure",
]
