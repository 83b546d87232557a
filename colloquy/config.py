from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from colloquy.persistence.memory_storage import MemoryStorage
from colloquy.persistence.migrations import run_migrations
from colloquy.persistence.sqlite_storage import SQLiteStorage
from colloquy.protocols.storage import Storage


class StorageConfig(BaseModel):
    backend: Literal["memory", "sqlite"] = "memory"
    db_path: Path = Path("./data/colloquy.db")


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class EngineConfig(BaseModel):
    max_steps_per_turn: int = Field(default=1000, ge=1)
    max_prompt_attempts: int | None = Field(default=None, ge=1)
    """Give up on a Prompt after this many rejected answers. ``None`` re-asks forever."""


class ColloquySettings(BaseSettings):
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)

    model_config = SettingsConfigDict(
        env_prefix="COLLOQUY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _normalize_level(self) -> ColloquySettings:
        self.logging.level = self.logging.level.upper()
        return self


def _coerce_env_value(value: str) -> object:
    parsed = yaml.safe_load(value)
    return value if parsed is None else parsed


def _set_nested(mapping: dict[str, object], path: list[str], value: object) -> None:
    current = mapping
    for key in path[:-1]:
        existing = current.get(key)
        if not isinstance(existing, dict):
            existing = {}
            current[key] = existing
        current = existing
    current[path[-1]] = value


def _apply_env_overrides(data: dict[str, object]) -> dict[str, object]:
    merged = dict(data)
    prefix = "COLLOQUY_"
    for key, raw_value in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = key[len(prefix) :].lower().split("__")
        _set_nested(merged, path, _coerce_env_value(raw_value))
    return merged


def load_config(path: str | Path | None = None) -> ColloquySettings:
    """Load settings from a YAML file, then apply ``COLLOQUY_*`` overrides.

    Without a path only environment variables and defaults apply.
    """
    raw: dict[str, object] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"config file not found: {config_path}")

        loaded = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ValueError("config file must contain a top-level mapping")
        section = loaded.get("colloquy", loaded)
        if not isinstance(section, dict):
            raise ValueError("colloquy config section must be a mapping")
        raw = section

    merged = _apply_env_overrides(raw)
    return ColloquySettings.model_validate(merged)


async def build_storage(settings: ColloquySettings) -> Storage:
    if settings.storage.backend == "sqlite":
        db_path = str(settings.storage.db_path)
        await run_migrations(db_path)
        return SQLiteStorage(db_path)
    return MemoryStorage()


__all__ = [
    "ColloquySettings",
    "EngineConfig",
    "LoggingConfig",
    "StorageConfig",
    "build_storage",
    "load_config",
]
