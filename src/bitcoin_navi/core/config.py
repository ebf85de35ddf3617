"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from bitcoin_navi.core.exceptions import ConfigurationError
from bitcoin_navi.core.models import StorageBackend

# Conventional variable names read when the prefixed form is absent.
_FALLBACK_ENV_VARS: dict[str, tuple[str, str]] = {
    "COINGECKO_API_KEY": ("coingecko", "api_key"),
    "ALPHA_VANTAGE_API_KEY": ("alpha_vantage", "api_key"),
}

# Env leaves kept verbatim: credentials may be all digits with leading zeros.
_RAW_ENV_KEYS = frozenset({"api_key"})


def _coerce_key(v: object) -> str | None:
    """YAML can load an all-digit key as an int."""
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class CoinGeckoConfig(BaseModel):
    """CoinGecko (crypto quotes) access configuration."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    base_url: str = "https://api.coingecko.com/api/v3"
    request_timeout: float = 10.0
    history_fx_rate: Decimal = Decimal("150")

    @field_validator("api_key", mode="before")
    @classmethod
    def api_key_as_str(cls, v: object) -> str | None:
        return _coerce_key(v)

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("history_fx_rate")
    @classmethod
    def rate_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("history_fx_rate must be > 0")
        return v


class AlphaVantageConfig(BaseModel):
    """Alpha Vantage (equity quotes) access configuration.

    The free tier allows 5 requests per minute; ``max_requests`` and
    ``window_ms`` configure the local sliding-window gate accordingly.
    """

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    base_url: str = "https://www.alphavantage.co/query"
    request_timeout: float = 10.0
    max_requests: int = 5
    window_ms: int = 60_000

    @field_validator("api_key", mode="before")
    @classmethod
    def api_key_as_str(cls, v: object) -> str | None:
        return _coerce_key(v)

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("max_requests", "window_ms")
    @classmethod
    def limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate limit settings must be >= 1")
        return v


class FXConfig(BaseModel):
    """Exchange-rate source configuration.

    Only a fixed USD/JPY rate is supported; the aggregator takes the rate
    through an injectable source so a live feed can replace it.
    """

    model_config = ConfigDict(frozen=True)

    usd_jpy_rate: Decimal = Decimal("150")

    @field_validator("usd_jpy_rate")
    @classmethod
    def rate_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("usd_jpy_rate must be > 0")
        return v


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    backend: StorageBackend = StorageBackend.SQLITE
    sqlite_path: str = "./data/bitcoin_navi.db"


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None

    @field_validator("api_key", mode="before")
    @classmethod
    def api_key_as_str(cls, v: object) -> str | None:
        return _coerce_key(v)


class NaviConfig(BaseModel):
    """Root configuration for the entire bitcoin-navi system."""

    model_config = ConfigDict(frozen=True)

    coingecko: CoinGeckoConfig = CoinGeckoConfig()
    alpha_vantage: AlphaVantageConfig = AlphaVantageConfig()
    fx: FXConfig = FXConfig()
    storage: StorageConfig = StorageConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "BITCOIN_NAVI_",
) -> NaviConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (BITCOIN_NAVI_ALPHA_VANTAGE__API_KEY, etc.)
    2. Conventional provider variables (COINGECKO_API_KEY, ALPHA_VANTAGE_API_KEY)
    3. YAML file at config_path
    4. Built-in defaults

    Nested keys use double-underscore in env vars:
        BITCOIN_NAVI_ALPHA_VANTAGE__MAX_REQUESTS=5  ->  alpha_vantage.max_requests = 5
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_fallback_env_vars(base)
        merged = _merge_env_vars(merged, env_prefix)
        return NaviConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigurationError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("BITCOIN_NAVI_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigurationError(
                f"Config file from BITCOIN_NAVI_CONFIG not found: {env_path}",
                context={"field": "BITCOIN_NAVI_CONFIG", "value": env_path},
            )
        return p

    default = Path("bitcoin-navi.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_fallback_env_vars(base: dict) -> dict:
    """Overlay the conventional provider key variables, kept as raw strings."""
    result = dict(base)
    for env_name, (section, key) in _FALLBACK_ENV_VARS.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        target = dict(result.get(section) or {})
        target[key] = value
        result[section] = target
    return result


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int,
    except credential leaves such as api_key, which stay strings.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        # Strip prefix, split by double-underscore for nesting
        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        cast_value = value if parts[-1] in _RAW_ENV_KEYS else _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            else:
                target[part] = dict(target[part])
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
