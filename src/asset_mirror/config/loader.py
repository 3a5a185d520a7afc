from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterator, MutableMapping

import yaml
from dotenv import load_dotenv

from asset_mirror.config.models import AppConfig, ConfigLoadRequest


def _read_yaml_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path} (see examples/config.yaml)")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML must be a mapping, got: {type(data).__name__}")
    return data


def _iter_env_overrides(env_prefix: str) -> Iterator[tuple[list[str], str]]:
    """Yield ``(key path, value)`` for every ``<PREFIX>SECTION__KEY`` variable."""
    for name, value in os.environ.items():
        if not name.startswith(env_prefix):
            continue
        segments = [part.lower() for part in name[len(env_prefix) :].split("__") if part]
        if not segments:
            raise ValueError(f"Invalid environment variable override name: {name}")
        yield segments, value


def _apply_env_overrides(config: MutableMapping[str, Any], env_prefix: str) -> None:
    for segments, value in _iter_env_overrides(env_prefix):
        section: MutableMapping[str, Any] = config
        for segment in segments[:-1]:
            section = section.setdefault(segment, {})
            if not isinstance(section, dict):
                raise TypeError(f"Configuration key path does not point to a mapping: {'.'.join(segments)}")
        # Unknown keys and type coercion are left to Pydantic.
        section[segments[-1]] = value


class YamlConfigLoader:
    """Builds an ``AppConfig`` from the YAML file, an optional ``.env`` and environment overrides."""

    async def load(self, request: ConfigLoadRequest = ConfigLoadRequest()) -> AppConfig:
        config = _read_yaml_config(Path(request.yaml_path))

        if request.dotenv_path is not None and Path(request.dotenv_path).exists():
            load_dotenv(dotenv_path=request.dotenv_path, override=False)

        _apply_env_overrides(config, request.env_prefix)
        return AppConfig.model_validate(config)
