from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from asset_mirror.cache.models import CacheEntry, IndexState, QueueState, SchemaVersion
from asset_mirror.cache.utils import format_rfc3339, utc_now
from asset_mirror.errors import FilesystemFailure

logger = logging.getLogger(__name__)


def _tmp_path(path: Path) -> Path:
    return path.with_name(f"{path.name}.{os.getpid()}.tmp")


def atomic_write_json(path: Path, payload: dict) -> None:
    atomic_write_bytes(path, json.dumps(payload, indent=2, sort_keys=True).encode("utf-8"))


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` through a temp file. Raises FilesystemFailure on any OS error."""
    tmp_path = _tmp_path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
    except OSError as e:
        _discard(tmp_path)
        raise FilesystemFailure(str(path), f"Cannot write file: {e}") from e


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("Failed to remove temp file. path=%s", path)


def read_json_file(path: Path) -> Optional[dict]:
    """Return the decoded JSON object at ``path``, or None when absent or unreadable."""
    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.exception("Failed to read state file, starting fresh. path=%s", path)
        return None
    if not isinstance(payload, dict):
        logger.warning("State file is not a JSON object, starting fresh. path=%s", path)
        return None
    return payload


def _decode_entry(url: str, payload: Any) -> Optional[CacheEntry]:
    if not isinstance(payload, dict):
        logger.warning("Dropping malformed cache entry. url=%s", url)
        return None
    file = payload.get("file")
    expires = payload.get("expires")
    created = payload.get("created", 0)
    if not isinstance(file, str) or not file.strip():
        logger.warning("Dropping cache entry without a file. url=%s", url)
        return None
    if isinstance(expires, bool) or not isinstance(expires, int):
        logger.warning("Dropping cache entry with invalid expiry. url=%s expires=%r", url, expires)
        return None
    if isinstance(created, bool) or not isinstance(created, int):
        created = 0
    return CacheEntry(file=file, created=created, expires=expires)


def _encode_entry(entry: CacheEntry) -> dict:
    return {
        "file": entry.file,
        "created": entry.created,
        "expires": entry.expires,
    }


def empty_index() -> IndexState:
    return IndexState(schema_version=SchemaVersion, generated_at=format_rfc3339(utc_now()), entries={})


def encode_index(state: IndexState) -> dict:
    return {
        "schema_version": state.schema_version,
        "generated_at": state.generated_at,
        "entries": {url: _encode_entry(entry) for url, entry in state.entries.items()},
    }


def decode_index(payload: dict) -> IndexState:
    entries_payload = payload.get("entries")
    entries: Dict[str, CacheEntry] = {}
    if isinstance(entries_payload, dict):
        for url, entry_payload in entries_payload.items():
            entry = _decode_entry(url, entry_payload)
            if entry is not None:
                entries[url] = entry
    return IndexState(
        schema_version=int(payload.get("schema_version", SchemaVersion)),
        generated_at=str(payload.get("generated_at", format_rfc3339(utc_now()))),
        entries=entries,
    )


def read_index_file(path: Path) -> IndexState:
    payload = read_json_file(path)
    if payload is None:
        return empty_index()
    try:
        state = decode_index(payload)
    except (TypeError, ValueError):
        logger.exception("Failed to decode cache index, starting fresh. path=%s", path)
        return empty_index()
    if state.schema_version != SchemaVersion:
        logger.warning(
            "Cache index schema version mismatch, starting fresh. path=%s expected=%s actual=%s",
            path,
            SchemaVersion,
            state.schema_version,
        )
        return empty_index()
    return state


def read_queue_file(path: Path) -> QueueState:
    payload = read_json_file(path)
    if payload is None:
        return QueueState(schema_version=SchemaVersion, urls=[])
    raw_urls = payload.get("urls")
    urls: list[str] = []
    if isinstance(raw_urls, list):
        seen: set[str] = set()
        for url in raw_urls:
            if not isinstance(url, str) or not url.strip() or url in seen:
                continue
            seen.add(url)
            urls.append(url)
    return QueueState(schema_version=SchemaVersion, urls=urls)


def encode_queue(state: QueueState) -> dict:
    return {"schema_version": state.schema_version, "urls": list(state.urls)}
