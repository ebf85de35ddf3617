"""Shared async HTTP plumbing for the quote provider clients."""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Self, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from bitcoin_navi.core.exceptions import DataNotFoundError, ProviderError

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; bitcoin-navi/0.1)"
_MAX_BODY_IN_ERROR = 500

_RecordT = TypeVar("_RecordT", bound=BaseModel)


class QuoteHttpClient:
    """Base for provider clients: one pooled httpx client, bounded timeouts.

    Every outbound call carries an explicit timeout; a hung upstream surfaces
    as ``ProviderError`` instead of an indefinitely pending request. Nothing
    is retried.

    Use via ``async with Client(...) as client:`` or call ``close()``. An
    injected ``httpx.AsyncClient`` is borrowed, not closed.
    """

    provider: str = "unknown"

    def __init__(
        self,
        timeout: float,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._headers = {"User-Agent": _USER_AGENT, **(headers or {})}
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        self._timeout = timeout

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(
        self,
        url: str,
        params: dict[str, str],
        symbol: str,
    ) -> Any:
        """GET ``url`` and decode the JSON body with floats as ``Decimal``.

        Raises:
            ProviderError: Non-2xx status, transport failure, timeout, or a
                body that is not JSON.
        """
        context = {"provider": self.provider, "symbol": symbol, "url": url}
        try:
            response = await self._client.get(
                url,
                params=params,
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"{self.provider} request timed out after {self._timeout}s",
                context={**context, "status_code": None, "error": str(e)},
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"{self.provider} request failed: {e}",
                context={**context, "status_code": None, "error": str(e)},
            ) from e

        if not response.is_success:
            body = response.text[:_MAX_BODY_IN_ERROR]
            logger.warning(
                "%s returned HTTP %d for %s", self.provider, response.status_code, symbol
            )
            raise ProviderError(
                f"{self.provider} API error ({response.status_code}): {body}",
                context={
                    **context,
                    "status_code": response.status_code,
                    "response_body": body,
                },
            )

        try:
            return json.loads(response.text, parse_float=Decimal)
        except ValueError as e:
            raise ProviderError(
                f"{self.provider} returned a non-JSON body",
                context={
                    **context,
                    "status_code": response.status_code,
                    "response_body": response.text[:_MAX_BODY_IN_ERROR],
                },
            ) from e

    def _record(self, model: type[_RecordT], symbol: str, **fields: Any) -> _RecordT:
        """Build a provider record, treating unusable field values as missing data.

        Raises:
            DataNotFoundError: A field is null, non-numeric or out of range
                (``reason="malformed"``).
        """
        try:
            return model(**fields)
        except ValidationError as e:
            logger.info("%s returned a malformed %s for %s", self.provider, model.__name__, symbol)
            raise DataNotFoundError(
                f"{self.provider} returned malformed data for {symbol}: "
                f"{e.error_count()} invalid field(s)",
                context={
                    "provider": self.provider,
                    "symbol": symbol,
                    "reason": "malformed",
                    "errors": [
                        {"field": ".".join(map(str, err["loc"])), "message": err["msg"]}
                        for err in e.errors()
                    ],
                },
            ) from e
