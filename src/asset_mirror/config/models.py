from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_USER_AGENT = "Mozilla/5.0 AppleWebKit/537 Chrome/105"


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = FileRotationSettings()


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = FileLoggingSettings()


class CacheSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Canonical origin of the site; URLs on other hosts are mirrored.
    site_url: str

    # Where mirrored files live and the public URL they are served under.
    storage_dir: str
    public_base_url: str

    # Index, queue and worker lock files.
    state_dir: str

    fetch_timeout_seconds: float = Field(default=300.0, gt=0)
    default_lifetime_seconds: int = Field(default=24 * 60 * 60, gt=0)
    user_agent: str = DEFAULT_USER_AGENT

    worker_lock_stale_seconds: int = Field(default=15 * 60, gt=0)
    max_dependency_depth: int = Field(default=3, ge=0)
    download_concurrency: int = Field(default=4, ge=1)
    drain_batch_size: int = Field(default=0, ge=0)

    @field_validator("public_base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"

    @property
    def index_path(self) -> Path:
        return Path(self.state_dir) / "index.json"

    @property
    def queue_path(self) -> Path:
        return Path(self.state_dir) / "queue.json"

    @property
    def lock_path(self) -> Path:
        return Path(self.state_dir) / "worker-lock.json"


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: LoggingSettings = LoggingSettings()
    cache: CacheSettings


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    Implementations may use these to control where configuration is read from.
    """

    yaml_path: str = "data/config/config.yaml"
    env_prefix: str = "APP__"
    dotenv_path: Optional[str] = "data/.env"
