"""Runtime settings for the violations dashboard, read from the environment / a local .env file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigError


ROOT = Path(__file__).resolve().parents[2]
DEFAULT_VIOLATIONS_URL = "https://data.cityofchicago.org/resource/kc9i-wq85.geojson"
DEFAULT_NEIGHBORHOODS_PATH = ROOT / "data" / "Boundaries - Neighborhoods.geojson"
DEFAULT_LIMIT = 999999
DEFAULT_TIMEOUT = 30.0


def _as_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


def _as_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class DashboardConfig:
    """Where the data comes from and how to fetch it.

    The app token is kept out of ``repr`` so the config can be logged safely.
    """

    app_token: str = field(repr=False)
    violations_url: str = DEFAULT_VIOLATIONS_URL
    neighborhoods_path: Path = DEFAULT_NEIGHBORHOODS_PATH
    neighborhood_name_field: str = "pri_neigh"
    limit: int = DEFAULT_LIMIT
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> "DashboardConfig":
        if env is None:
            load_dotenv(dotenv_path)
            env = os.environ
        token = (env.get("CHICAGO_APP_TOKEN") or "").strip()
        if not token:
            raise ConfigError("CHICAGO_APP_TOKEN is not set. Add it to your local .env file.")
        return cls(
            app_token=token,
            violations_url=env.get("VIOLATIONS_URL") or DEFAULT_VIOLATIONS_URL,
            neighborhoods_path=Path(env.get("NEIGHBORHOODS_PATH") or DEFAULT_NEIGHBORHOODS_PATH),
            neighborhood_name_field=env.get("NEIGHBORHOOD_NAME_FIELD") or "pri_neigh",
            limit=_as_int(env, "VIOLATIONS_LIMIT", DEFAULT_LIMIT),
            timeout=_as_float(env, "REQUEST_TIMEOUT", DEFAULT_TIMEOUT),
        )
