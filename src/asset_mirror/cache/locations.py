from __future__ import annotations

from pathlib import Path

from asset_mirror.cache.utils import hash_url
from asset_mirror.errors import FilesystemFailure

UNKNOWN_TYPE = "tmp"


class AssetLocations:
    """Maps mirrored assets to their file on disk and the public URL they are served from."""

    def __init__(self, *, storage_dir: str | Path, public_base_url: str) -> None:
        self._storage_dir = Path(storage_dir)
        self._public_base_url = public_base_url if public_base_url.endswith("/") else public_base_url + "/"
        self._storage_ready = False

    def local_path(self, filename: str) -> Path:
        if not self._storage_ready:
            try:
                self._storage_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemFailure(str(self._storage_dir), f"Cannot create asset storage directory: {e}") from e
            self._storage_ready = True
        return self._storage_dir / filename

    def existing_path(self, filename: str) -> Path:
        """Path of ``filename`` without creating the storage directory."""
        return self._storage_dir / filename

    def public_url(self, filename: str) -> str:
        return self._public_base_url + filename

    @staticmethod
    def filename_for(url: str, asset_type: str) -> str:
        extension = asset_type.strip().lower() or UNKNOWN_TYPE
        return f"{hash_url(url)}.{extension}"
