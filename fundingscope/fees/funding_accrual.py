from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from fundingscope.core.types import FundingBreakdown, FundingImpactResult
from fundingscope.core.validation import (
    require_finite,
    require_leverage,
    require_periods,
    require_positive,
)
from fundingscope.risk.liquidation import compute_liquidation

log = logging.getLogger(__name__)

# (position_size, funding_rate, leverage, initial_margin, current_price, is_long)
CacheKey = tuple[float, float, float, float, float, bool]


class LiquidationCache:
    """
    Remembers the period at which a given position is stopped out by funding.

    The liquidation period does not depend on how many periods are simulated,
    so a hit lets the engine skip the loop whenever the requested horizon runs
    past it. Clearing the cache never changes results.
    """

    def __init__(self, max_entries: int = 4096) -> None:
        self._max_entries = int(max_entries)
        self._data: OrderedDict[CacheKey, int] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: CacheKey) -> int | None:
        with self._lock:
            period = self._data.get(key)
            if period is None:
                self.misses += 1
            else:
                self.hits += 1
            return period

    def put(self, key: CacheKey, period: int) -> None:
        with self._lock:
            self._data[key] = int(period)
            self._data.move_to_end(key)
            while len(self._data) > self._max_entries:
                self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


def _clamp_pct(v: float) -> float:
    return max(0.0, min(100.0, v))


class FundingAccrualEngine:
    def __init__(self, cache: LiquidationCache | None = None) -> None:
        self._cache = cache if cache is not None else LiquidationCache()

    @property
    def cache(self) -> LiquidationCache:
        return self._cache

    def simulate(
        self,
        position_size: float,
        funding_rate: float,
        periods: int,
        leverage: float,
        initial_margin: float,
        current_price: float,
        is_long: bool = True,
    ) -> FundingImpactResult:
        """
        Accrue funding over `periods` 8h intervals.

        Each period charges size * rate% on the current size, then shrinks the
        size in proportion to the margin left (constant leverage). The position
        is stopped out the first period its effective margin is at or below the
        maintenance requirement; the whole margin is then reported as lost.
        """
        size = require_finite("position_size", position_size)
        rate = require_finite("funding_rate", funding_rate)
        n = require_periods(periods)
        lev = require_leverage(leverage)
        margin = require_positive("initial_margin", initial_margin)
        price = require_finite("current_price", current_price)

        liq = compute_liquidation(price, lev, size, is_long)
        maintenance = liq.maintenance_margin_required

        key: CacheKey = (size, rate, lev, margin, price, bool(is_long))
        cached_period = self._cache.get(key)
        if cached_period is not None and n > cached_period:
            log.debug("liquidation cache hit key=%s period=%d", key, cached_period)
            total_fees, liquidation_period, checked_margin = margin, cached_period, 0.0
        else:
            total_fees, liquidation_period, checked_margin = self._accrue(size, rate, n, margin, maintenance)
            if liquidation_period is not None:
                self._cache.put(key, liquidation_period)
                log.debug(
                    "position liquidated by funding at period %d (size=%.4f rate=%s margin=%.4f)",
                    liquidation_period,
                    size,
                    rate,
                    margin,
                )

        is_liquidated = liquidation_period is not None
        if is_liquidated:
            total_fees = margin
            effective_margin = 0.0
        else:
            # margin as of the last stop-out check; the final fee is settled but not yet checked
            effective_margin = checked_margin

        margin_buffer = effective_margin - maintenance
        if is_liquidated:
            risk = 100.0
        elif lev == 1:
            risk = _clamp_pct((margin - effective_margin) / margin * 100.0)
        else:
            risk = _clamp_pct((1.0 - margin_buffer / margin) * 100.0)

        return FundingImpactResult(
            total_funding_fees=total_fees,
            effective_margin=max(0.0, effective_margin),
            liquidation_risk=risk,
            is_liquidated=is_liquidated,
            liquidation_period=liquidation_period,
            liquidation=liq,
            breakdown=FundingBreakdown(
                funding_per_period=size * (rate / 100.0),
                total_funding_fees=total_fees,
                maintenance_margin=maintenance,
                margin_buffer=margin_buffer,
            ),
        )

    @staticmethod
    def _accrue(
        size: float,
        rate: float,
        periods: int,
        margin: float,
        maintenance: float,
    ) -> tuple[float, int | None, float]:
        total = 0.0
        current_size = size
        effective = margin
        for i in range(periods):
            fee = current_size * (rate / 100.0)
            effective = margin - total
            if effective <= maintenance:
                return total, i, effective
            total += fee
            current_size = size * (effective / margin)
        return total, None, effective
