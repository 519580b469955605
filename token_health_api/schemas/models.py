"""Core data models for the Token Health API."""

from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AssetType(str, Enum):
    """Supported settlement assets."""
    STX = "STX"
    SBTC = "sBTC"


class NetworkType(str, Enum):
    """Supported Stacks deployment networks."""
    MAINNET = "mainnet"
    TESTNET = "testnet"


class Grade(str, Enum):
    """Letter grade derived from the composite score."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


# ============================================================================
# Upstream provider records
# ============================================================================

class UpstreamModel(BaseModel):
    """Provider payloads carry more fields than the scorer reads."""

    model_config = ConfigDict(extra="ignore")


class TokenInfo(UpstreamModel):
    """Token metadata record. Only the identity fields reach the report."""

    contract_address: Optional[str] = Field(default=None, description="Contract principal")
    name: Optional[str] = Field(default=None, description="Token name")
    symbol: Optional[str] = Field(default=None, description="Token symbol")
    decimals: Optional[Any] = Field(default=None, description="Token decimals")
    total_supply: Optional[Any] = Field(default=None, description="Total supply in base units")
    price_usd: Optional[float] = Field(default=None, description="Spot price in USD")
    market_cap_usd: Optional[float] = Field(default=None, description="Market capitalisation in USD")
    volume_24h_usd: Optional[Any] = Field(default=None, description="24h traded volume in USD")


class HolderPercentages(UpstreamModel):
    """Share of supply held by the largest holders, in percent."""

    top_10_percent: float = Field(default=0.0, description="Top 10 holders' share")
    top_25_percent: float = Field(default=0.0, description="Top 25 holders' share")
    top_50_percent: float = Field(default=0.0, description="Top 50 holders' share")


Counter = Optional[Union[str, int]]


class HolderStats(UpstreamModel):
    """Holder cohort counters, usually string-encoded; ``parse_count`` reads either form."""

    holder_count: Counter = Field(default="0")
    fresh_1w: Counter = Field(default="0")
    fresh_1m: Counter = Field(default="0")
    old_1y: Counter = Field(default="0")
    old_2y: Counter = Field(default="0")
    whale_wallets: Counter = Field(default="0")
    active_1w: Counter = Field(default="0")
    active_1m: Counter = Field(default="0")
    inactive_6m: Counter = Field(default="0")
    trader_wallets: Counter = Field(default="0")
    high_volume_traders: Counter = Field(default="0")
    updated_at: Optional[Any] = Field(default=None)


class Candlestick(UpstreamModel):
    """One hourly OHLC candle."""

    time: int = Field(default=0, description="Candle open time")
    open: float = Field(default=0.0)
    high: float = Field(default=0.0)
    low: float = Field(default=0.0)
    close: float = Field(default=0.0)
    volume: float = Field(default=0.0, description="Traded volume in the candle")


# ============================================================================
# Health report
# ============================================================================

class TokenIdentity(BaseModel):
    """Identity block of a health report."""

    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    price_usd: Optional[float] = None
    market_cap_usd: Optional[float] = None


class FactorWeight(BaseModel):
    """Sub-score and the weight it carries in the composite."""

    score: int = Field(..., ge=0, le=100)
    weight: float = Field(..., ge=0, le=1)


class ScoreBreakdown(BaseModel):
    """Per-factor breakdown of the composite score."""

    model_config = ConfigDict(populate_by_name=True)

    concentration: FactorWeight
    fresh_wallets: FactorWeight = Field(..., alias="freshWallets")
    holder_activity: FactorWeight = Field(..., alias="holderActivity")
    volume_trend: FactorWeight = Field(..., alias="volumeTrend")


class HealthMetrics(BaseModel):
    """Raw ratios and volumes that drove the sub-scores."""

    model_config = ConfigDict(populate_by_name=True)

    top10_ownership: float = Field(..., alias="top10Ownership")
    top25_ownership: float = Field(..., alias="top25Ownership")
    top50_ownership: float = Field(..., alias="top50Ownership")
    fresh_wallet_ratio: float = Field(..., alias="freshWalletRatio")
    holder_count: int = Field(..., alias="holderCount")
    active_ratio: float = Field(..., alias="activeRatio")
    volume_24h: float = Field(..., alias="volume24h")
    volume_7d_avg: float = Field(..., alias="volume7dAvg")
    volume_trend_percent: float = Field(..., alias="volumeTrendPercent")


class HealthReport(BaseModel):
    """Composite token health report."""

    token: TokenIdentity = Field(..., description="Token identity block")
    score: int = Field(..., ge=0, le=100, description="Composite health score (0-100)")
    grade: Grade = Field(..., description="Letter grade for the score")
    breakdown: ScoreBreakdown = Field(..., description="Per-factor score and weight")
    metrics: HealthMetrics = Field(..., description="Measurements behind the scores")
    flags: List[str] = Field(default_factory=list, description="Human-readable risk warnings")
    timestamp: int = Field(..., description="Creation instant, epoch milliseconds")

    def to_response(self) -> dict:
        """Wire representation (camelCase keys, enum values)."""
        return self.model_dump(mode="json", by_alias=True)
