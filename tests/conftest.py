"""Pytest configuration and fixtures for Token Health tests."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest

from token_health_api.config.settings import APISettings
from token_health_api.schemas.models import (
    Candlestick,
    HolderPercentages,
    HolderStats,
    TokenInfo,
)


TOKEN = "SP1AY6K3PQV5MRT6R4S671NWW2FRVPKM0BR162CT6.leo-token"
PAY_TO = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
TENERO_URL = "https://api.tenero.io/v1/stacks"
SIGNED_TX_HEX = "0000000001040015c31b8c1c11c515e244b75806bac48d1399c775"


def make_candles(older_volume: float, recent_volume: float,
                 older_count: int = 144, recent_count: int = 24) -> List[Dict[str, Any]]:
    """Hourly candles, oldest first, with flat volume per window."""
    candles = []
    start = 1705320000
    for i in range(older_count + recent_count):
        volume = older_volume if i < older_count else recent_volume
        candles.append({
            "time": start + i * 3600,
            "open": 0.5,
            "high": 0.55,
            "low": 0.45,
            "close": 0.52,
            "volume": volume,
        })
    return candles


# ============================================================================
# SETTINGS FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    """Settings isolated from the environment's .env file."""
    return APISettings(
        _env_file=None,
        payment_address=PAY_TO,
        log_format="text",
        log_level="WARNING",
    )


@pytest.fixture
def fixed_now():
    """Fixed clock for challenge expiry."""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# PROVIDER PAYLOAD FIXTURES
# ============================================================================

@pytest.fixture
def token_info_payload():
    """Token metadata as returned by the provider."""
    return {
        "contract_address": TOKEN,
        "name": "Leo",
        "symbol": "LEO",
        "decimals": 6,
        "total_supply": "1000000000000000",
        "price_usd": 0.00021,
        "market_cap_usd": 210000.0,
        "volume_24h_usd": 1520.5,
        "image_url": "https://example.invalid/leo.png",
    }


@pytest.fixture
def holder_percentages_payload():
    """Moderate concentration: only the top-10 > 40% penalty applies."""
    return {
        "top_10_percent": 45.5,
        "top_25_percent": 70.0,
        "top_50_percent": 85.0,
    }


@pytest.fixture
def holder_stats_payload():
    """Cohort counters for a 1000-holder token."""
    return {
        "holder_count": "1000",
        "fresh_1w": "100",
        "fresh_1m": "200",
        "old_1y": "300",
        "old_2y": "150",
        "whale_wallets": "12",
        "active_1w": "40",
        "active_1m": "120",
        "inactive_6m": "600",
        "trader_wallets": "80",
        "high_volume_traders": "5",
        "updated_at": 1705320000,
    }


@pytest.fixture
def candles_payload():
    """Seven days of hourly candles, last day 50% above the daily average."""
    return make_candles(older_volume=10.0, recent_volume=15.0)


@pytest.fixture
def token_info(token_info_payload):
    return TokenInfo.model_validate(token_info_payload)


@pytest.fixture
def holder_percentages(holder_percentages_payload):
    return HolderPercentages.model_validate(holder_percentages_payload)


@pytest.fixture
def holder_stats(holder_stats_payload):
    return HolderStats.model_validate(holder_stats_payload)


@pytest.fixture
def candles(candles_payload):
    return [Candlestick.model_validate(c) for c in candles_payload]


# ============================================================================
# UPSTREAM MOCK FIXTURES
# ============================================================================

class FakeUpstream:
    """httpx mock handler serving both the provider API and the broadcast node."""

    def __init__(self, payloads: Dict[str, Any]):
        self.payloads = payloads
        self.broadcast_status = 200
        self.broadcast_body = '"0x5d3c6a0c2d4e"'
        self.broadcasts: List[httpx.Request] = []
        self.provider_requests: List[httpx.Request] = []
        self.failing_endpoint: Optional[str] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/v2/transactions"):
            self.broadcasts.append(request)
            return httpx.Response(self.broadcast_status, text=self.broadcast_body)

        self.provider_requests.append(request)
        last_segment = request.url.path.rstrip('/').split('/')[-1]
        endpoint = last_segment if last_segment in self.payloads else "token_info"

        if endpoint == self.failing_endpoint:
            return httpx.Response(500, text="Internal Server Error")

        return httpx.Response(200, json={
            "statusCode": 200,
            "message": "OK",
            "data": self.payloads[endpoint],
        })


@pytest.fixture
def upstream(token_info_payload, holder_percentages_payload, holder_stats_payload, candles_payload):
    """Mocked provider and broadcast node."""
    return FakeUpstream({
        "token_info": token_info_payload,
        "holder_percentages": holder_percentages_payload,
        "holder_stats": holder_stats_payload,
        "ohlc": candles_payload,
    })


@pytest.fixture
def http_client(upstream):
    """Async httpx client routed to the mocked upstreams."""
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
