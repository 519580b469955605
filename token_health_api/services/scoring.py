"""Deterministic token health scoring.

Four independent sub-scorers each start from 100 and subtract penalties
(clamped at 0). The composite is their weighted sum, rounded half-up.
"""

import asyncio
import re
import time
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional

import structlog

from token_health_api.schemas.models import (
    Candlestick,
    FactorWeight,
    Grade,
    HealthMetrics,
    HealthReport,
    HolderPercentages,
    HolderStats,
    ScoreBreakdown,
    TokenIdentity,
    TokenInfo,
)
from token_health_api.utils.metrics import metrics

logger = structlog.get_logger(__name__)

WEIGHTS: Dict[str, float] = {
    "concentration": 0.35,
    "fresh_wallets": 0.25,
    "holder_activity": 0.20,
    "volume_trend": 0.20,
}

HOURS_PER_DAY = 24
NEUTRAL_VOLUME_SCORE = 50

# (lower bound exclusive, score), checked top-down; anything else scores 30
VOLUME_TREND_BREAKPOINTS = [
    (100.0, 95),
    (30.0, 85),
    (0.0, 75),
    (-30.0, 65),
    (-50.0, 50),
]
VOLUME_TREND_FLOOR_SCORE = 30

GRADE_BREAKPOINTS = [
    (80, Grade.A),
    (65, Grade.B),
    (50, Grade.C),
    (35, Grade.D),
]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class FactorResult:
    """Score of one sub-scorer plus the warnings it raised."""
    score: int
    flags: List[str] = field(default_factory=list)


@dataclass
class VolumeTrendResult(FactorResult):
    volume_24h: float = 0.0
    volume_7d_avg: float = 0.0
    trend_percent: float = 0.0


def parse_count(value: Any, default: int = 0) -> int:
    """Leading integer of a provider counter; ``default`` when missing or zero."""
    if value is None:
        return default
    match = _LEADING_INT.match(str(value))
    parsed = int(match.group(1)) if match else 0
    return parsed or default


def score_concentration(percentages: HolderPercentages) -> FactorResult:
    flags: List[str] = []
    top_10 = percentages.top_10_percent
    top_25 = percentages.top_25_percent

    score = 100

    if top_10 > 80:
        score -= 60
        flags.append(f"Extreme concentration: top 10 holders own {top_10:.1f}%")
    elif top_10 > 60:
        score -= 40
        flags.append(f"High concentration: top 10 holders own {top_10:.1f}%")
    elif top_10 > 40:
        score -= 20

    if top_25 > 90:
        score -= 20
        flags.append(f"Top 25 holders control {top_25:.1f}% of supply")

    return FactorResult(score=max(0, score), flags=flags)


def score_fresh_wallets(stats: HolderStats) -> FactorResult:
    """Penalise holder bases dominated by brand-new wallets, or with none at all."""
    flags: List[str] = []
    holder_count = parse_count(stats.holder_count, default=1)
    fresh_week = parse_count(stats.fresh_1w)
    fresh_month = parse_count(stats.fresh_1m)

    fresh_week_ratio = fresh_week / holder_count
    fresh_month_ratio = fresh_month / holder_count

    score = 100

    # Coordinated buying ahead of a rug tends to show up as fresh wallets
    if fresh_week_ratio > 0.5:
        score -= 50
        flags.append(f"Warning: {fresh_week_ratio * 100:.0f}% of holders are <1 week old")
    elif fresh_week_ratio > 0.3:
        score -= 30
        flags.append(f"{fresh_week_ratio * 100:.0f}% of holders joined this week")
    elif fresh_week_ratio > 0.15:
        score -= 15

    # Dead token
    if fresh_month_ratio < 0.05 and holder_count > 100:
        score -= 10
        flags.append("Low new holder activity in past month")

    return FactorResult(score=max(0, score), flags=flags)


def score_holder_activity(stats: HolderStats) -> FactorResult:
    flags: List[str] = []
    holder_count = parse_count(stats.holder_count, default=1)
    active_week = parse_count(stats.active_1w)
    inactive_6m = parse_count(stats.inactive_6m)

    active_week_ratio = active_week / holder_count
    inactive_6m_ratio = inactive_6m / holder_count

    score = 100

    if active_week_ratio < 0.02:
        score -= 30
        flags.append("Very low trading activity")
    elif active_week_ratio < 0.05:
        score -= 15

    if inactive_6m_ratio > 0.7:
        score -= 25
        flags.append(f"{inactive_6m_ratio * 100:.0f}% of holders inactive for 6+ months")
    elif inactive_6m_ratio > 0.5:
        score -= 10

    return FactorResult(score=max(0, score), flags=flags)


def score_volume_trend(candles: List[Candlestick]) -> VolumeTrendResult:
    """
    Compare the last 24 hourly candles with the daily average of the older ones.

    Needs at least one full day of candles; otherwise returns the neutral
    score with zeroed metrics.
    """
    if len(candles) < HOURS_PER_DAY:
        return VolumeTrendResult(score=NEUTRAL_VOLUME_SCORE, flags=["Insufficient volume data"])

    flags: List[str] = []

    recent = candles[-HOURS_PER_DAY:]
    older = candles[:-HOURS_PER_DAY]

    volume_24h = sum(c.volume for c in recent)
    if older:
        volume_7d_avg = sum(c.volume for c in older) / (len(older) / HOURS_PER_DAY)
    else:
        volume_7d_avg = volume_24h

    if volume_7d_avg > 0:
        trend_percent = (volume_24h - volume_7d_avg) / volume_7d_avg * 100
    else:
        trend_percent = 0.0

    score = VOLUME_TREND_FLOOR_SCORE
    for lower_bound, breakpoint_score in VOLUME_TREND_BREAKPOINTS:
        if trend_percent > lower_bound:
            score = breakpoint_score
            break

    if trend_percent > 100:
        flags.append(f"Volume surge: +{trend_percent:.0f}% vs 7d avg")
    elif -50 < trend_percent <= -30:
        flags.append("Volume declining")
    elif trend_percent <= -50:
        flags.append(f"Volume down {abs(trend_percent):.0f}% from 7d avg")

    return VolumeTrendResult(
        score=score,
        flags=flags,
        volume_24h=volume_24h,
        volume_7d_avg=volume_7d_avg,
        trend_percent=trend_percent
    )


def composite_score(sub_scores: Dict[str, int], weights: Dict[str, float] = WEIGHTS) -> int:
    """Weighted sum of sub-scores, rounded half-up."""
    total = sum(
        Decimal(str(sub_scores[name])) * Decimal(str(weight))
        for name, weight in weights.items()
    )
    return int(total.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def calculate_grade(score: int) -> Grade:
    for threshold, grade in GRADE_BREAKPOINTS:
        if score >= threshold:
            return grade
    return Grade.F


def build_health_report(token_address: str,
                        token_info: TokenInfo,
                        percentages: HolderPercentages,
                        stats: HolderStats,
                        candles: List[Candlestick],
                        timestamp_ms: int) -> HealthReport:
    """Fold the four provider data sets into a HealthReport."""
    concentration = score_concentration(percentages)
    fresh_wallets = score_fresh_wallets(stats)
    holder_activity = score_holder_activity(stats)
    volume_trend = score_volume_trend(candles)

    score = composite_score({
        "concentration": concentration.score,
        "fresh_wallets": fresh_wallets.score,
        "holder_activity": holder_activity.score,
        "volume_trend": volume_trend.score,
    })

    holder_count = parse_count(stats.holder_count)
    fresh_week = parse_count(stats.fresh_1w)
    active_week = parse_count(stats.active_1w)

    return HealthReport(
        token=TokenIdentity(
            address=token_address,
            name=token_info.name,
            symbol=token_info.symbol,
            price_usd=token_info.price_usd,
            market_cap_usd=token_info.market_cap_usd
        ),
        score=score,
        grade=calculate_grade(score),
        breakdown=ScoreBreakdown(
            concentration=FactorWeight(score=concentration.score, weight=WEIGHTS["concentration"]),
            fresh_wallets=FactorWeight(score=fresh_wallets.score, weight=WEIGHTS["fresh_wallets"]),
            holder_activity=FactorWeight(score=holder_activity.score, weight=WEIGHTS["holder_activity"]),
            volume_trend=FactorWeight(score=volume_trend.score, weight=WEIGHTS["volume_trend"])
        ),
        metrics=HealthMetrics(
            top10_ownership=percentages.top_10_percent,
            top25_ownership=percentages.top_25_percent,
            top50_ownership=percentages.top_50_percent,
            fresh_wallet_ratio=fresh_week / holder_count if holder_count > 0 else 0.0,
            holder_count=holder_count,
            active_ratio=active_week / holder_count if holder_count > 0 else 0.0,
            volume_24h=volume_trend.volume_24h,
            volume_7d_avg=volume_trend.volume_7d_avg,
            volume_trend_percent=volume_trend.trend_percent
        ),
        flags=[
            *concentration.flags,
            *fresh_wallets.flags,
            *holder_activity.flags,
            *volume_trend.flags,
        ],
        timestamp=timestamp_ms
    )


class TokenHealthEngine:
    """Fetches provider data concurrently and scores it."""

    def __init__(self,
                 client,
                 ohlc_period: str = "1h",
                 ohlc_limit: int = 168,
                 clock: Optional[Callable[[], float]] = None):
        self.client = client
        self.ohlc_period = ohlc_period
        self.ohlc_limit = ohlc_limit
        self.clock = clock or time.time
        self.logger = logger.bind(component="health_engine")

    async def calculate(self, token_address: str) -> HealthReport:
        """
        Compute a fresh HealthReport for ``token_address``.

        Raises:
            UpstreamProviderError: if any of the four fetches fails
        """
        start_time = time.time()

        token_info, percentages, stats, candles = await self._fetch_inputs(token_address)

        report = build_health_report(
            token_address,
            token_info,
            percentages,
            stats,
            candles,
            timestamp_ms=int(self.clock() * 1000)
        )

        metrics.health_reports.labels(grade=report.grade.value).inc()
        self.logger.info("Health report computed",
                         token=token_address,
                         score=report.score,
                         grade=report.grade.value,
                         flags=len(report.flags),
                         calculation_time_ms=int((time.time() - start_time) * 1000))

        return report

    async def _fetch_inputs(self, token_address: str):
        # First failure cancels the remaining fetches
        try:
            async with asyncio.TaskGroup() as group:
                info_task = group.create_task(self.client.get_token_info(token_address))
                percentages_task = group.create_task(self.client.get_holder_percentages(token_address))
                stats_task = group.create_task(self.client.get_holder_stats(token_address))
                candles_task = group.create_task(
                    self.client.get_ohlc(token_address, self.ohlc_period, self.ohlc_limit)
                )
        except ExceptionGroup as eg:
            self.logger.warning("Provider fetch failed", token=token_address, error=str(eg.exceptions[0]))
            raise eg.exceptions[0] from None

        return (
            info_task.result(),
            percentages_task.result(),
            stats_task.result(),
            candles_task.result(),
        )
