"""
Runtime settings for the persistence layer.

Settings come from, in increasing priority:
    1. Defaults below
    2. An optional YAML settings file
    3. Environment variables (a .env file is loaded first if present)

    TSR_SUPABASE_URL     Supabase project URL
    TSR_SUPABASE_KEY     Supabase anon/service key
    TSR_SAVE_TIMEOUT     Seconds to wait for a save, empty or 0 for no limit
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "TSR_"


class ConfigError(Exception):
    """Raised when settings are malformed or incomplete."""
    pass


@dataclass
class Settings:
    supabase_url: str = ""
    supabase_key: str = ""
    clients_table: str = "clients"
    transformers_table: str = "transformers"
    oltc_table: str = "oltc_info"
    save_timeout: Optional[float] = None


def _coerce_timeout(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"save_timeout must be a number, got {value!r}") from e
    return timeout if timeout > 0 else None


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return data


def load_settings(path: Optional[str | Path] = None, env_file: Optional[str | Path] = None) -> Settings:
    """
    Build Settings from an optional YAML file and the environment.

    Args:
        path: YAML settings file (optional)
        env_file: .env file to load before reading the environment;
                  defaults to python-dotenv's lookup from the working directory

    Raises:
        ConfigError: unknown keys, unreadable YAML or bad values
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    known = {f.name for f in fields(Settings)}
    values: Dict[str, Any] = {}

    if path is not None:
        data = _read_yaml(Path(path))
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
        values.update(data)
        logger.debug("Loaded settings file %s", path)

    for name in known:
        env_value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            values[name] = env_value

    values["save_timeout"] = _coerce_timeout(values.get("save_timeout"))
    return Settings(**values)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Console logging for scripts. The library itself installs no handlers."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
