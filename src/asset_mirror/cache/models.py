from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Optional

SchemaVersion = 1

AssetStatus = Literal["valid", "expired", "missing", "enqueued"]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    file: str
    created: int
    expires: int


@dataclass(slots=True)
class IndexState:
    schema_version: int
    generated_at: str
    entries: Dict[str, CacheEntry]


@dataclass(slots=True)
class QueueState:
    schema_version: int
    urls: list[str]


@dataclass(frozen=True, slots=True)
class AssetRow:
    url: str
    status: AssetStatus
    created: Optional[int] = None
    expires: Optional[int] = None
