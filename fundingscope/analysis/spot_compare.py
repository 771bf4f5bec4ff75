from __future__ import annotations

import math

from fundingscope.core.types import (
    FundingImpactResult,
    PositionParameters,
    Recommendation,
    RecommendationCategory,
    Scenario,
    Severity,
    SpotComparisonResult,
)
from fundingscope.fees.funding_accrual import FundingAccrualEngine
from fundingscope.fees.funding_model import FUNDING_PERIODS_PER_DAY
from fundingscope.projection.pipeline import base_daily_return
from fundingscope.scenarios.catalog import get_modifier, get_profile

# funding is "significant" only when it is both large against the stake and
# large against the leveraged result
FUNDING_DRAG_THRESHOLD = 0.02
FUNDING_TO_PNL_THRESHOLD = 0.5

WORTH_IT_RETURN_RATIO = 1.5
HIGH_FUNDING_RETURN_RATIO = 3.0
MIN_MARGIN_BUFFER_PCT = 20.0


def safe_ratio(numerator: float, denominator: float) -> float | None:
    """num / den, or None when the ratio is undefined."""
    if denominator == 0:
        return None
    r = float(numerator) / float(denominator)
    return r if math.isfinite(r) else None


def horizon_funding(
    params: PositionParameters,
    *,
    engine: FundingAccrualEngine | None = None,
) -> FundingImpactResult:
    """Funding accrued at the unmodified rate over the whole horizon."""
    engine = engine if engine is not None else FundingAccrualEngine()
    return engine.simulate(
        params.position_size,
        params.funding_rate,
        int(params.time_horizon) * FUNDING_PERIODS_PER_DAY,
        params.leverage,
        params.initial_investment,
        params.current_price,
        params.is_long,
    )


def compare(
    params: PositionParameters,
    *,
    funding: FundingImpactResult | None = None,
    engine: FundingAccrualEngine | None = None,
) -> SpotComparisonResult:
    """
    End-of-horizon comparison of holding spot vs. the leveraged position.

    Leverage is judged worth it only when all of these hold:
    - leveraged return beats 1.5x the spot return,
    - margin buffer stays above 20% of the stake,
    - funding is not significant, or the leveraged return beats 3x spot anyway.
    """
    if funding is None:
        funding = horizon_funding(params, engine=engine)

    investment = float(params.initial_investment)
    lev = float(params.leverage)
    entry = float(params.current_price)
    profile = get_profile(params.scenario)
    modifier = get_modifier(params.scenario)

    final_move = modifier.price_modifier(int(params.time_horizon), base_daily_return(params))
    final_price = entry * (1 + final_move)
    spot_pnl = investment * ((final_price - entry) / entry)

    fees = float(funding.total_funding_fees)
    leveraged_pnl = spot_pnl * lev - fees

    risk = abs(final_move) * 100.0 * profile.risk_multiplier
    spot_sharpe = safe_ratio(spot_pnl, risk * investment)
    leverage_sharpe = safe_ratio(leveraged_pnl, risk * lev * investment)

    spot_return = spot_pnl / investment * 100.0
    leveraged_return = leveraged_pnl / investment * 100.0

    funding_to_pnl = safe_ratio(fees, abs(leveraged_pnl))
    if funding_to_pnl is None:
        # zero leveraged PnL: any positive funding cost is the whole story
        funding_vs_pnl_large = fees > 0
    else:
        funding_vs_pnl_large = funding_to_pnl > FUNDING_TO_PNL_THRESHOLD
    is_funding_significant = (fees / investment > FUNDING_DRAG_THRESHOLD) and funding_vs_pnl_large

    margin_buffer_pct = funding.breakdown.margin_buffer / investment * 100.0
    is_leverage_worth_it = (
        leveraged_return > WORTH_IT_RETURN_RATIO * spot_return
        and margin_buffer_pct > MIN_MARGIN_BUFFER_PCT
        and (not is_funding_significant or leveraged_return > HIGH_FUNDING_RETURN_RATIO * spot_return)
    )

    return SpotComparisonResult(
        spot_pnl=spot_pnl,
        leveraged_pnl=leveraged_pnl,
        spot_return=spot_return,
        leveraged_return=leveraged_return,
        spot_sharpe=spot_sharpe,
        leverage_sharpe=leverage_sharpe,
        is_funding_significant=is_funding_significant,
        is_leverage_worth_it=is_leverage_worth_it,
        leverage_multiplier=safe_ratio(leveraged_pnl, spot_pnl),
        funding_drag_percent=fees / investment * 100.0,
        scenario_adjusted_risk=risk,
        liquidation_risk=funding.liquidation_risk,
        margin_buffer_percent=margin_buffer_pct,
        funding_fees=fees,
    )


def _fmt(v: float | None, digits: int = 2) -> str:
    return "n/a" if v is None else f"{v:.{digits}f}"


def spot_comparison_recommendations(
    comparison: SpotComparisonResult,
    params: PositionParameters,
) -> list[Recommendation]:
    c = comparison
    lev = params.leverage
    recs: list[Recommendation] = []

    verdict = "outperforms" if c.is_leverage_worth_it else "underperforms"
    if c.is_funding_significant:
        funding_note = f"Funding fees of ${c.funding_fees:.2f} significantly reduce leverage advantage."
    else:
        funding_note = f"Funding fees of ${c.funding_fees:.2f} are justified by increased returns."
    if c.spot_sharpe is None or c.leverage_sharpe is None:
        sharpe_note = "Risk-adjusted returns are undefined for a flat price path."
    elif c.leverage_sharpe > c.spot_sharpe:
        sharpe_note = f"Risk-adjusted returns favor leverage ({c.leverage_sharpe:.2f} vs {c.spot_sharpe:.2f} Sharpe)."
    else:
        sharpe_note = f"Risk-adjusted returns favor spot ({c.spot_sharpe:.2f} vs {c.leverage_sharpe:.2f} Sharpe)."

    recs.append(
        Recommendation(
            category=RecommendationCategory.POSITION,
            title="Leverage vs Spot Comparison",
            description=(
                f"{lev:g}x leveraged position {verdict} spot with "
                f"{c.leveraged_return:.1f}% vs {c.spot_return:.1f}% return. {funding_note} {sharpe_note}"
            ),
            severity=Severity.LOW if c.is_leverage_worth_it else Severity.MEDIUM,
            action=(
                "Current leverage setup appears optimal vs spot"
                if c.is_leverage_worth_it
                else "Consider spot position instead - similar returns with lower risk and no funding costs"
            ),
        )
    )

    scenario = params.scenario
    if scenario == Scenario.SIDEWAYS:
        if not c.is_leverage_worth_it:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.OPPORTUNITY,
                    title="Spot Advantage in Sideways Market",
                    description=(
                        f"In sideways market, spot position avoids {c.funding_drag_percent:.1f}% funding cost drag. "
                        "Expected price movement may not justify leverage costs."
                    ),
                    severity=Severity.LOW,
                    action="Consider spot position to avoid funding costs in ranging market",
                )
            )
    elif scenario in (Scenario.EXPONENTIAL_PUMP, Scenario.PARABOLIC):
        if c.is_leverage_worth_it and params.time_horizon > 30:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.OPPORTUNITY,
                    title="Leverage Advantage in Strong Trend",
                    description=(
                        f"In {scenario.value.lower()} scenario, {lev:g}x leverage amplifies returns by "
                        f"{_fmt(c.leverage_multiplier, 1)}x after funding costs. Strong trend justifies higher costs."
                    ),
                    severity=Severity.LOW,
                    action="Current leverage appears optimal for capturing strong trend",
                )
            )
    elif scenario == Scenario.VOLATILE_GROWTH:
        if c.is_leverage_worth_it:
            split = f"{round(100 / lev)}% leveraged, remainder in spot to optimize risk/reward."
        else:
            split = "Majority in spot, small portion in leverage for upside exposure."
        recs.append(
            Recommendation(
                category=RecommendationCategory.POSITION,
                title="Position Sizing in Volatile Market",
                description=(
                    f"Consider split position: {split} "
                    "Volatile market may present both spot accumulation and leverage opportunities."
                ),
                severity=Severity.LOW,
                action="Consider hybrid spot/leverage approach for volatile conditions",
            )
        )

    return recs
