"""Custom exception hierarchy for bitcoin-navi."""

from typing import Any


class NaviError(Exception):
    """Base exception for all bitcoin-navi errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(NaviError):
    """Invalid or missing configuration, including absent provider credentials.

    Raised by load_config() during startup and by the Alpha Vantage client
    when no API key is configured. Not retried.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class PriceError(NaviError):
    """Failed to obtain a price from an upstream quote provider.

    Policy: never retried inside the price layer. Single fetches propagate to
    the HTTP boundary; batch fetches log it and yield None for the item.

    Context keys:
        provider: str — "coingecko" or "alpha_vantage"
        symbol: str — the requested symbol
    """


class ProviderError(PriceError):
    """Upstream returned a non-success HTTP status or the request failed.

    Context keys:
        status_code: int | None — HTTP status, None for transport failures
        response_body: str | None — truncated response for debugging
        url: str — the URL that was being fetched
    """


class DataNotFoundError(PriceError):
    """Upstream answered successfully but the expected quote data is missing.

    For Alpha Vantage this is ambiguous by nature: the provider answers an
    unknown symbol and a silently throttled request with the same status.

    Context keys:
        reason: str — "throttled", "invalid_symbol", "unmapped_symbol", "malformed"
            or "unknown"
        coin_id: str — resolved CoinGecko identifier (crypto path only)
    """


class RateLimitExceeded(PriceError):
    """The local sliding-window quota for a provider is exhausted.

    Raised before any network call is made.

    Context keys:
        wait_ms: int — milliseconds until the oldest counted request leaves the window
        retry_after: int — wait_ms rounded up to whole seconds
    """


class StorageError(NaviError):
    """Database operation failed.

    Policy: raise immediately, except for fire-and-forget history writes
    which are logged by the recorder.

    Context keys:
        operation: str — "insert", "query", "migrate", etc.
        table: str — the table involved
    """


class RecordNotFoundError(StorageError):
    """An asset or alert id does not exist.

    Context keys:
        table: str — "assets" or "alerts"
        id: str — the id that was looked up
    """
