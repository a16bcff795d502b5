"""Live-or-stale-or-default resolution for derived metrics.

Resolution order on every refresh:
1. Live derivation through the pricing pipeline.
2. The most recent cached value, however old.
3. A fixed last-resort constant for the metric.

A metric that has been computed once is never replaced by an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from ..logger import get_logger
from .cache import MetricCache
from .pricing import PipelineError, PriceDerivationPipeline, TokenMetrics

logger = get_logger(__name__)

BASE_USD = "base-usd"
TARGET_IN_BASE = "target-base"
TARGET_USD = "target-usd"
TARGET_MARKET_CAP = "target-marketcap"
TARGET_PER_BASE = "target-per-base"

# Last values published by the live dashboard before launch.
LAST_RESORT_VALUES: dict[str, float] = {
    BASE_USD: 0.4217,
    TARGET_IN_BASE: 0.0000336,
    TARGET_USD: 0.00007971,
    TARGET_MARKET_CAP: 79_710.0,
    TARGET_PER_BASE: 52.9172,
}

METRIC_KEYS = (TARGET_USD, TARGET_MARKET_CAP, TARGET_PER_BASE)


class MetricSource(str, Enum):
    LIVE = "live"
    STALE = "stale"
    DEFAULT = "default"


@dataclass
class MetricsOutcome:
    metrics: TokenMetrics
    source: MetricSource
    error: str | None = None

    @property
    def is_live(self) -> bool:
        return self.source is MetricSource.LIVE


class ResilientPricing:
    """Wraps the pricing pipeline with the metric cache and fallbacks."""

    def __init__(self, pipeline: PriceDerivationPipeline, cache: MetricCache):
        self.pipeline = pipeline
        self.cache = cache

    def _metrics_from_cache(self) -> TokenMetrics:
        return TokenMetrics(
            price_usd=self.cache.get_stale_or_default(
                TARGET_USD, LAST_RESORT_VALUES[TARGET_USD]
            ),
            market_cap_usd=self.cache.get_stale_or_default(
                TARGET_MARKET_CAP, LAST_RESORT_VALUES[TARGET_MARKET_CAP]
            ),
            target_per_base=self.cache.get_stale_or_default(
                TARGET_PER_BASE, LAST_RESORT_VALUES[TARGET_PER_BASE]
            ),
        )

    def _newest_metrics(self, fallback: TokenMetrics) -> TokenMetrics:
        values: list[float] = []
        for key in METRIC_KEYS:
            entry = self.cache.peek(key)
            if entry is None:
                return fallback
            values.append(entry.value)
        return TokenMetrics(*values)

    async def resolve_metrics(self) -> MetricsOutcome:
        """Derive metrics, falling back to cached or default values on failure.

        Never raises for pipeline failures. The returned source tells the
        caller whether the pass was live.
        """
        observed_ms = self.cache.clock()
        try:
            metrics = await self.pipeline.derive_metrics()
        except PipelineError as e:
            logger.error("Error calculating token metrics: %s", e)
            has_cached = self.cache.peek(TARGET_USD) is not None
            return MetricsOutcome(
                metrics=self._metrics_from_cache(),
                source=MetricSource.STALE if has_cached else MetricSource.DEFAULT,
                error=str(e),
            )

        self.cache.set(TARGET_USD, metrics.price_usd, observed_ms)
        self.cache.set(TARGET_MARKET_CAP, metrics.market_cap_usd, observed_ms)
        self.cache.set(TARGET_PER_BASE, metrics.target_per_base, observed_ms)

        # An overlapping pass may have stored newer numbers; report those.
        return MetricsOutcome(
            metrics=self._newest_metrics(metrics), source=MetricSource.LIVE
        )

    async def _cached_quote(
        self, key: str, fetch: Callable[[], Awaitable[float]]
    ) -> float:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        observed_ms = self.cache.clock()
        try:
            value = await fetch()
        except PipelineError as e:
            logger.error("Error getting %s: %s", key, e)
            return self.cache.get_stale_or_default(key, LAST_RESORT_VALUES[key])

        self.cache.set(key, value, observed_ms)
        return value

    async def base_price_usd(self) -> float:
        """Base asset price in the stable asset, served from cache while fresh."""
        return await self._cached_quote(BASE_USD, self.pipeline.base_price_in_stable)

    async def target_price_in_base(self) -> float:
        """Target price in base asset, served from cache while fresh."""
        return await self._cached_quote(
            TARGET_IN_BASE, self.pipeline.target_price_in_base
        )
