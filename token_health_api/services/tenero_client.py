"""Async client for the Tenero Stacks analytics API."""

from typing import Any, List, Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from token_health_api.errors import UpstreamProviderError
from token_health_api.schemas.models import (
    Candlestick,
    HolderPercentages,
    HolderStats,
    TokenInfo,
)
from token_health_api.utils.metrics import metrics

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.tenero.io/v1/stacks"

ModelT = TypeVar("ModelT", bound=BaseModel)

_CANDLES = TypeAdapter(List[Candlestick])


class TeneroClient:
    """
    Read-only client for token metadata, holder breakdowns and candles.

    Every response is an envelope ``{statusCode, message, data}``. Any
    transport failure, non-2xx status, non-200 envelope or unparsable payload
    raises UpstreamProviderError.
    """

    def __init__(self,
                 http_client: httpx.AsyncClient,
                 base_url: str = DEFAULT_BASE_URL,
                 timeout: float = 30.0):
        self.http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.logger = logger.bind(component="tenero_client")

    async def _fetch(self, endpoint: str, params: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{endpoint}"

        try:
            response = await self.http_client.get(url, params=params, timeout=self.timeout)
        except httpx.HTTPError as e:
            metrics.upstream_failures.labels(endpoint=_metric_label(endpoint)).inc()
            self.logger.error("Tenero request failed", url=url, error=str(e))
            raise UpstreamProviderError(f"Tenero request failed: {e}") from e

        if not response.is_success:
            metrics.upstream_failures.labels(endpoint=_metric_label(endpoint)).inc()
            self.logger.warning("Tenero API error", url=url, status_code=response.status_code)
            raise UpstreamProviderError(f"Tenero API error: {response.status_code}")

        try:
            envelope = response.json()
        except ValueError as e:
            raise UpstreamProviderError(f"Tenero returned invalid JSON: {e}") from e

        if not isinstance(envelope, dict) or envelope.get("statusCode") != 200:
            message = envelope.get("message") if isinstance(envelope, dict) else None
            metrics.upstream_failures.labels(endpoint=_metric_label(endpoint)).inc()
            self.logger.warning("Tenero error envelope", url=url, message=message)
            raise UpstreamProviderError(f"Tenero error: {message}")

        return envelope.get("data")

    async def _fetch_model(self, endpoint: str, model: Type[ModelT]) -> ModelT:
        data = await self._fetch(endpoint)
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise UpstreamProviderError(f"Unexpected Tenero payload for {endpoint}: {e}") from e

    async def get_token_info(self, address: str) -> TokenInfo:
        return await self._fetch_model(f"/tokens/{address}", TokenInfo)

    async def get_holder_percentages(self, address: str) -> HolderPercentages:
        return await self._fetch_model(f"/tokens/{address}/holder_percentages", HolderPercentages)

    async def get_holder_stats(self, address: str) -> HolderStats:
        return await self._fetch_model(f"/tokens/{address}/holder_stats", HolderStats)

    async def get_ohlc(self, address: str, period: str = "1h", limit: int = 168) -> List[Candlestick]:
        """Hourly candles, oldest first."""
        data = await self._fetch(
            f"/tokens/{address}/ohlc",
            params={"period": period, "limit": limit}
        )
        try:
            return _CANDLES.validate_python(data)
        except PydanticValidationError as e:
            raise UpstreamProviderError(f"Unexpected Tenero candle payload: {e}") from e


def _metric_label(endpoint: str) -> str:
    # /tokens/<address>/holder_stats -> holder_stats
    parts = endpoint.strip('/').split('/')
    return parts[2] if len(parts) > 2 else "token_info"
