from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .utils import _get


DEFAULT_BACKUPS = 5


@dataclass(frozen=True)
class EtlConfig:
    """Settings for one pipeline run, built once at process start."""

    mongodb_uri: str
    database: str = "todolist"
    collection: str = "tasks"
    timeout_ms: int = 10_000
    output_dir: Path = Path("./output")
    max_backups: int = DEFAULT_BACKUPS
    log_dir: Path = Path("./logs")
    log_level: str = "INFO"
    lock_timeout: float = 30.0


def read_yaml(path: str | Path) -> dict:
    p = Path(path)
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {p} must contain a mapping")
    return data


def _backup_count(raw) -> int:
    # Unparseable or non-positive counts fall back to the default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_BACKUPS
    return value if value >= 1 else DEFAULT_BACKUPS


def _number(raw, default, cast, name: str):
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from e


def load_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    dotenv: bool = True,
) -> EtlConfig:
    """Build an EtlConfig from defaults, an optional YAML file and the environment.

    Environment variables win over the file, which wins over defaults.
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ
    path = path or env.get("ETL_CONFIG")
    params = read_yaml(path) if path else {}

    def pick(var: str, *keys, default=None):
        value = env.get(var)
        if value not in (None, ""):
            return value
        return _get(params, *keys, default=default)

    uri = pick("MONGODB_URI", "mongodb", "uri")
    if not uri:
        raise ConfigError("MONGODB_URI is required")

    defaults = EtlConfig(mongodb_uri=uri)
    return EtlConfig(
        mongodb_uri=str(uri),
        database=str(pick("ETL_DATABASE", "mongodb", "database", default=defaults.database)),
        collection=str(
            pick("ETL_COLLECTION", "mongodb", "collection", default=defaults.collection)
        ),
        timeout_ms=_number(
            pick("ETL_TIMEOUT_MS", "mongodb", "timeout_ms"),
            defaults.timeout_ms,
            int,
            "ETL_TIMEOUT_MS",
        ),
        output_dir=Path(pick("ETL_OUTPUT_PATH", "output", "path", default=defaults.output_dir)),
        max_backups=_backup_count(
            pick("ETL_BACKUP_COUNT", "output", "max_backups", default=DEFAULT_BACKUPS)
        ),
        log_dir=Path(pick("ETL_LOG_PATH", "logging", "path", default=defaults.log_dir)),
        log_level=str(pick("ETL_LOG_LEVEL", "logging", "level", default="INFO")).upper(),
        lock_timeout=_number(
            env.get("ETL_LOCK_TIMEOUT"), defaults.lock_timeout, float, "ETL_LOCK_TIMEOUT"
        ),
    )
