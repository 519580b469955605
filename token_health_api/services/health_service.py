"""Health report service: address validation, caching and report computation."""

import json
import re
from typing import Any, Dict, Optional

import structlog

from token_health_api.errors import TokenHealthError, UpstreamProviderError, ValidationError
from token_health_api.services.cache import ResponseCache, health_cache_key
from token_health_api.services.scoring import TokenHealthEngine

logger = structlog.get_logger(__name__)

TOKEN_ADDRESS_PATTERN = re.compile(r"SP[A-Z0-9]+\.[a-z0-9-]+", re.IGNORECASE)
EXAMPLE_TOKEN = "SP1AY6K3PQV5MRT6R4S671NWW2FRVPKM0BR162CT6.leo-token"


def validate_token_address(token_address: str) -> str:
    """Return ``token_address`` if it looks like a mainnet contract principal."""
    if not token_address or not TOKEN_ADDRESS_PATTERN.fullmatch(token_address):
        raise ValidationError("Invalid token address format")
    return token_address


def _decode_cached(raw: str) -> Optional[Dict[str, Any]]:
    """Cached report as a dict, or None when the entry is not a JSON object."""
    try:
        report = json.loads(raw)
    except ValueError:
        return None
    return report if isinstance(report, dict) else None


class TokenHealthService:
    """Serves health reports, from cache when possible."""

    def __init__(self,
                 engine: TokenHealthEngine,
                 cache: Optional[ResponseCache] = None,
                 ttl_seconds: int = 300):
        self.engine = engine
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.logger = logger.bind(service="token_health")

    async def get_report(self, token_address: str) -> Dict[str, Any]:
        """
        Health report for ``token_address`` as a JSON-ready dict.

        Cached reports come back unchanged apart from a ``cached: true`` marker.

        Raises:
            ValidationError: malformed address
            UpstreamProviderError: the report could not be computed
        """
        validate_token_address(token_address)
        cache_key = health_cache_key(token_address)

        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached:
                cached_report = _decode_cached(cached)
                if cached_report is not None:
                    self.logger.info("Serving cached report", token=token_address)
                    return {**cached_report, "cached": True}
                self.logger.warning("Discarding unreadable cache entry", token=token_address)

        try:
            report = await self.engine.calculate(token_address)
        except TokenHealthError:
            raise
        except Exception as e:
            self.logger.error("Report computation failed", token=token_address, error=str(e), exc_info=True)
            raise UpstreamProviderError(str(e) or "Unknown error") from e

        payload = report.to_response()

        if self.cache is not None:
            await self.cache.set(cache_key, json.dumps(payload), self.ttl_seconds)

        return payload
