"""Unit tests for the Tenero provider client."""

import httpx
import pytest

from token_health_api.errors import UpstreamProviderError
from token_health_api.services.tenero_client import TeneroClient
from tests.conftest import TENERO_URL, TOKEN


def _client(handler) -> TeneroClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TeneroClient(http_client, base_url=TENERO_URL)


class TestTeneroClient:
    """Test suite for TeneroClient."""

    async def test_token_info(self, http_client, upstream):
        """Test token metadata is fetched and parsed."""
        client = TeneroClient(http_client, base_url=TENERO_URL)

        info = await client.get_token_info(TOKEN)

        assert info.symbol == "LEO"
        assert info.price_usd == pytest.approx(0.00021)
        assert upstream.provider_requests[0].url.path == f"/v1/stacks/tokens/{TOKEN}"

    async def test_holder_records(self, http_client):
        """Test holder percentages and stats are fetched and parsed."""
        client = TeneroClient(http_client, base_url=TENERO_URL)

        percentages = await client.get_holder_percentages(TOKEN)
        stats = await client.get_holder_stats(TOKEN)

        assert percentages.top_10_percent == 45.5
        assert stats.holder_count == "1000"
        assert stats.inactive_6m == "600"

    async def test_ohlc_request(self, http_client, upstream):
        """Test the OHLC request carries period and limit."""
        client = TeneroClient(http_client, base_url=TENERO_URL)

        candles = await client.get_ohlc(TOKEN)

        assert len(candles) == 168
        assert candles[-1].volume == 15.0
        request = upstream.provider_requests[-1]
        assert request.url.path.endswith("/ohlc")
        assert request.url.params["period"] == "1h"
        assert request.url.params["limit"] == "168"

    async def test_http_error_status(self):
        """Test an error status raises UpstreamProviderError."""
        client = _client(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(UpstreamProviderError, match="Tenero API error: 503"):
            await client.get_token_info(TOKEN)

    async def test_error_envelope(self):
        """Test an error envelope raises with the provider message."""
        client = _client(lambda request: httpx.Response(200, json={
            "statusCode": 404,
            "message": "Token not found",
            "data": None,
        }))

        with pytest.raises(UpstreamProviderError, match="Tenero error: Token not found"):
            await client.get_holder_stats(TOKEN)

    async def test_transport_error(self):
        """Test transport failures raise UpstreamProviderError."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamProviderError, match="Tenero request failed"):
            await _client(handler).get_holder_percentages(TOKEN)

    async def test_invalid_json(self):
        """Test a non-JSON body raises UpstreamProviderError."""
        client = _client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(UpstreamProviderError, match="invalid JSON"):
            await client.get_token_info(TOKEN)

    async def test_unexpected_payload_shape(self):
        """Test a payload that fails validation raises UpstreamProviderError."""
        client = _client(lambda request: httpx.Response(200, json={
            "statusCode": 200,
            "message": "OK",
            "data": {"top_10_percent": "lots"},
        }))

        with pytest.raises(UpstreamProviderError):
            await client.get_holder_percentages(TOKEN)
