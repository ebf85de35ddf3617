"""bitcoin_navi.core — Foundation types, config, and exceptions."""

from bitcoin_navi.core.config import (
    AlphaVantageConfig,
    APIConfig,
    CoinGeckoConfig,
    FXConfig,
    NaviConfig,
    StorageConfig,
    load_config,
)
from bitcoin_navi.core.exceptions import (
    ConfigurationError,
    DataNotFoundError,
    NaviError,
    PriceError,
    ProviderError,
    RateLimitExceeded,
    RecordNotFoundError,
    StorageError,
)
from bitcoin_navi.core.models import (
    Alert,
    AlertCreate,
    AlertId,
    AlertType,
    AlertUpdate,
    Asset,
    AssetCreate,
    AssetId,
    AssetType,
    Currency,
    PriceHistory,
    PriceHistoryCreate,
    StorageBackend,
    Symbol,
)

__all__ = [
    # Type aliases
    "AssetId",
    "AlertId",
    "Symbol",
    # Enums
    "AssetType",
    "AlertType",
    "Currency",
    "StorageBackend",
    # Asset models
    "AssetCreate",
    "Asset",
    # Alert models
    "AlertCreate",
    "AlertUpdate",
    "Alert",
    # Price history models
    "PriceHistoryCreate",
    "PriceHistory",
    # Config
    "NaviConfig",
    "CoinGeckoConfig",
    "AlphaVantageConfig",
    "FXConfig",
    "StorageConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "NaviError",
    "ConfigurationError",
    "PriceError",
    "ProviderError",
    "DataNotFoundError",
    "RateLimitExceeded",
    "StorageError",
    "RecordNotFoundError",
]
