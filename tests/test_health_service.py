"""Unit tests for the health report service."""

import json
from unittest.mock import AsyncMock

import pytest

from token_health_api.errors import UpstreamProviderError, ValidationError
from token_health_api.services.cache import InMemoryResponseCache
from token_health_api.services.health_service import TokenHealthService, validate_token_address
from token_health_api.services.scoring import build_health_report
from tests.conftest import TOKEN


class TestTokenAddressValidation:
    """Test suite for contract principal validation."""

    @pytest.mark.parametrize("address", [
        TOKEN,
        "SP3NE50GEXFG9SZGTT51P40X2CKYSZ5CC4ZTZ7A2G.welshcorgicoin-token",
        "sp1ay6k3pqv5mrt6r4s671nww2frvpkm0br162ct6.LEO-TOKEN",
    ])
    def test_valid_addresses(self, address):
        """Test mainnet contract principals pass in either case."""
        assert validate_token_address(address) == address

    @pytest.mark.parametrize("address", [
        "not-a-token",
        "",
        "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM.token",
        "SP1AY6K3PQV5MRT6R4S671NWW2FRVPKM0BR162CT6",
        "SP1AY6K3PQV5MRT6R4S671NWW2FRVPKM0BR162CT6.leo_token",
    ])
    def test_invalid_addresses(self, address):
        """Test testnet, bare and malformed principals are rejected."""
        with pytest.raises(ValidationError, match="Invalid token address format"):
            validate_token_address(address)


class TestTokenHealthService:
    """Test suite for TokenHealthService."""

    @pytest.fixture
    def report(self, token_info, holder_percentages, holder_stats, candles):
        return build_health_report(TOKEN, token_info, holder_percentages, holder_stats, candles,
                                   timestamp_ms=1705320000000)

    @pytest.fixture
    def engine(self, report):
        engine = AsyncMock()
        engine.calculate.return_value = report
        return engine

    async def test_computes_without_cache(self, engine, report):
        """Test the report is computed directly when no cache is configured."""
        service = TokenHealthService(engine)

        payload = await service.get_report(TOKEN)

        assert payload == report.to_response()
        assert "cached" not in payload
        engine.calculate.assert_awaited_once_with(TOKEN)

    async def test_second_request_served_from_cache(self, engine):
        """Test a cached report is returned with the cached marker."""
        cache = InMemoryResponseCache()
        service = TokenHealthService(engine, cache=cache, ttl_seconds=300)

        first = await service.get_report(TOKEN)
        second = await service.get_report(TOKEN)

        assert second == {**first, "cached": True}
        assert engine.calculate.await_count == 1
        assert json.loads(await cache.get(f"health:{TOKEN}")) == first

    async def test_invalid_address_skips_engine(self, engine):
        """Test a malformed address never reaches the engine."""
        service = TokenHealthService(engine)

        with pytest.raises(ValidationError):
            await service.get_report("not-a-token")

        engine.calculate.assert_not_awaited()

    async def test_provider_error_passes_through(self, engine):
        """Test provider errors propagate unchanged."""
        engine.calculate.side_effect = UpstreamProviderError("Tenero error: Token not found")
        service = TokenHealthService(engine, cache=InMemoryResponseCache())

        with pytest.raises(UpstreamProviderError, match="Tenero error: Token not found"):
            await service.get_report(TOKEN)

    async def test_unexpected_error_becomes_provider_error(self, engine):
        """Test unexpected engine errors are wrapped as provider errors."""
        engine.calculate.side_effect = KeyError("data")
        service = TokenHealthService(engine)

        with pytest.raises(UpstreamProviderError):
            await service.get_report(TOKEN)

    async def test_failures_are_not_cached(self, engine, report):
        """Test a failed computation leaves nothing in the cache."""
        cache = InMemoryResponseCache()
        engine.calculate.side_effect = [UpstreamProviderError("Tenero API error: 500"), report]
        service = TokenHealthService(engine, cache=cache)

        with pytest.raises(UpstreamProviderError):
            await service.get_report(TOKEN)

        payload = await service.get_report(TOKEN)
        assert "cached" not in payload

    @pytest.mark.parametrize("entry", ["not json", "{\"score\": 8", "[85]"])
    async def test_unreadable_cache_entry_is_a_miss(self, engine, report, entry):
        """Test a corrupt cache entry is recomputed and overwritten."""
        cache = InMemoryResponseCache()
        await cache.set(f"health:{TOKEN}", entry, 300)
        service = TokenHealthService(engine, cache=cache)

        payload = await service.get_report(TOKEN)

        assert payload == report.to_response()
        assert "cached" not in payload
        engine.calculate.assert_awaited_once_with(TOKEN)
        assert json.loads(await cache.get(f"health:{TOKEN}")) == payload
