from __future__ import annotations

import logging

from fundingscope.core.types import MarginTier, PositionParameters, ProjectionPoint
from fundingscope.fees.breakeven import raw_pnl
from fundingscope.fees.funding_accrual import FundingAccrualEngine
from fundingscope.fees.funding_model import FUNDING_PERIODS_PER_DAY
from fundingscope.scenarios.catalog import get_modifier

log = logging.getLogger(__name__)

DANGER_RISK = 80.0
WARNING_RISK = 60.0


def margin_tier(liquidation_risk: float) -> MarginTier:
    if liquidation_risk > DANGER_RISK:
        return MarginTier.DANGER
    if liquidation_risk > WARNING_RISK:
        return MarginTier.WARNING
    return MarginTier.SAFE


def base_daily_return(params: PositionParameters) -> float:
    expected = (float(params.target_price) - float(params.current_price)) / float(params.current_price)
    return expected / int(params.time_horizon)


class ProjectionPipeline:
    """
    Day-by-day projection of a leveraged position under one scenario.

    Every day re-runs funding accrual from entry with that day's modified rate
    and elapsed periods. Once a day comes back liquidated the position is
    closed for good and later days repeat the terminal row.
    """

    def __init__(
        self,
        engine: FundingAccrualEngine | None = None,
        *,
        periods_per_day: int = FUNDING_PERIODS_PER_DAY,
    ) -> None:
        self._engine = engine if engine is not None else FundingAccrualEngine()
        self._periods_per_day = int(periods_per_day)

    @property
    def engine(self) -> FundingAccrualEngine:
        return self._engine

    def project(self, params: PositionParameters) -> list[ProjectionPoint]:
        modifier = get_modifier(params.scenario)
        investment = float(params.initial_investment)
        entry = float(params.current_price)
        size = params.position_size
        r = base_daily_return(params)

        points: list[ProjectionPoint] = []
        liquidated = False
        for day in range(int(params.time_horizon) + 1):
            price = entry * (1 + modifier.price_modifier(day, r))
            price_change = (price - entry) / entry

            if not liquidated:
                rate = modifier.funding_modifier(day, float(params.funding_rate), price_change)
                impact = self._engine.simulate(
                    size,
                    rate,
                    day * self._periods_per_day,
                    params.leverage,
                    investment,
                    price,
                    params.is_long,
                )
                if impact.is_liquidated and impact.liquidation_period is not None:
                    liquidated = day >= impact.liquidation_period // self._periods_per_day
                    if liquidated:
                        log.debug(
                            "projection: %s liquidated on day %d (period %d)",
                            params.scenario.value,
                            day,
                            impact.liquidation_period,
                        )

            if liquidated:
                points.append(_terminal_point(day, price, investment))
                continue

            pnl = raw_pnl(
                position_size=size,
                entry_price=entry,
                current_price=price,
                is_long=params.is_long,
            )
            fees = impact.total_funding_fees
            total = pnl - abs(fees)
            points.append(
                ProjectionPoint(
                    day=day,
                    price=price,
                    raw_pnl=pnl,
                    funding_fees=fees,
                    total_pnl=total,
                    pnl_percent=total / investment * 100.0,
                    liquidation_risk=impact.liquidation_risk,
                    effective_margin=impact.effective_margin,
                    is_liquidated=False,
                    margin_tier=margin_tier(impact.liquidation_risk),
                )
            )
        return points


def _terminal_point(day: int, price: float, investment: float) -> ProjectionPoint:
    return ProjectionPoint(
        day=day,
        price=price,
        raw_pnl=-investment,
        funding_fees=investment,
        total_pnl=-investment,
        pnl_percent=-100.0,
        liquidation_risk=100.0,
        effective_margin=0.0,
        is_liquidated=True,
        margin_tier=MarginTier.DANGER,
    )


def project(
    params: PositionParameters,
    *,
    engine: FundingAccrualEngine | None = None,
) -> list[ProjectionPoint]:
    return ProjectionPipeline(engine).project(params)


def downsample(points: list[ProjectionPoint], max_points: int = 10) -> list[ProjectionPoint]:
    """
    Evenly spaced subset for charts: at most `max_points` rows plus the final day.
    """
    if max_points <= 0 or len(points) <= max_points + 1:
        return list(points)
    step = -(-len(points) // max_points)  # ceil
    out = points[::step][:max_points]
    if out[-1].day != points[-1].day:
        out.append(points[-1])
    return out


def first_liquidation_day(points: list[ProjectionPoint]) -> int | None:
    for p in points:
        if p.is_liquidated:
            return p.day
    return None
