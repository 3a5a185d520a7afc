from __future__ import annotations


class AssetCacheError(Exception):
    """Base class for errors raised by the asset cache engine."""


class FetchError(AssetCacheError):
    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message} url={url}")
        self.url = url


class NetworkFailure(FetchError):
    """Timeout, DNS, connection or non-2xx response while downloading an asset."""


class FilesystemFailure(AssetCacheError):
    """The local storage could not be created or written."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{message} path={path}")
        self.path = path
