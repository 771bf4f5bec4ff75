from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from fundingscope.analysis.spot_compare import (
    compare,
    horizon_funding,
    safe_ratio,
    spot_comparison_recommendations,
)
from fundingscope.core.types import (
    FundingImpactResult,
    LiquidationDetails,
    PositionParameters,
    ProjectionPoint,
    Recommendation,
    RecommendationCategory,
    Scenario,
    Severity,
    SpotComparisonResult,
)
from fundingscope.fees.breakeven import funding_breakeven_move_pct, needs_margin_top_up, raw_pnl
from fundingscope.fees.funding_accrual import FundingAccrualEngine
from fundingscope.fees.funding_model import FUNDING_PERIODS_PER_DAY, FundingModel
from fundingscope.risk.liquidation import compute_liquidation, liquidation_distance_pct
from fundingscope.scenarios.catalog import ScenarioProfile, get_profile

log = logging.getLogger(__name__)

MARKET_CYCLE_DAYS = 100
CASCADE_WAVE_DAYS = 20
BULL_SCENARIOS = (Scenario.EXPONENTIAL_PUMP, Scenario.PARABOLIC)


@dataclass(frozen=True)
class _Metrics:
    """Figures shared by several rules, derived once per evaluation."""

    params: PositionParameters
    profile: ScenarioProfile
    liquidation: LiquidationDetails
    funding: FundingImpactResult
    position_size: float
    price_move_pct: float
    daily_funding_cost: float
    effective_margin: float
    current_pnl: float

    @property
    def margin_base(self) -> float:
        # a stopped-out projection has no margin left to express costs against
        return self.effective_margin if self.effective_margin > 0 else float(self.params.initial_investment)

    @property
    def daily_cost_pct_of_margin(self) -> float:
        return self.daily_funding_cost / self.margin_base * 100.0

    @property
    def margin_to_liquidation(self) -> float:
        return self.effective_margin - self.liquidation.maintenance_margin_required

    @property
    def days_to_liquidation(self) -> float:
        if self.daily_funding_cost <= 0:
            return math.inf
        return self.margin_to_liquidation / self.daily_funding_cost


def _days(v: float) -> str:
    return "unlimited" if not math.isfinite(v) else str(math.floor(v))


def recommend(
    params: PositionParameters,
    projection: list[ProjectionPoint],
    comparison: SpotComparisonResult | None = None,
    *,
    engine: FundingAccrualEngine | None = None,
) -> list[Recommendation]:
    """
    Evaluate the advisory rules for a position.

    Each rule looks at the derived metrics on its own and may add one item.
    Critical funding warnings go to the front; everything else keeps
    evaluation order.
    """
    engine = engine if engine is not None else FundingAccrualEngine()
    size = params.position_size
    last = projection[-1] if projection else None
    m = _Metrics(
        params=params,
        profile=get_profile(params.scenario),
        liquidation=compute_liquidation(params.current_price, params.leverage, size, params.is_long),
        funding=horizon_funding(params, engine=engine),
        position_size=size,
        price_move_pct=(params.target_price - params.current_price) / params.current_price * 100.0,
        daily_funding_cost=FundingModel(funding_rate=params.funding_rate).daily_cost(size),
        effective_margin=last.effective_margin if last else float(params.initial_investment),
        current_pnl=last.total_pnl if last else 0.0,
    )

    recs: list[Recommendation] = []
    _funding_liquidation_rules(m, recs)
    _scenario_funding_rules(m, recs)
    if params.time_horizon > 7:
        _margin_depletion_rules(m, recs)
    _expected_gain_rule(m, recs)
    _scenario_timing_rules(m, recs)
    _leverage_cost_rule(m, recs)
    _liquidation_distance_rule(m, recs)
    _margin_top_up_rule(m, recs)

    if not m.funding.is_liquidated:
        if comparison is None:
            comparison = compare(params, funding=m.funding)
        recs.extend(spot_comparison_recommendations(comparison, params))

    log.debug("%d recommendations for %s %sx", len(recs), params.scenario.value, params.leverage)
    return recs


def _funding_liquidation_rules(m: _Metrics, recs: list[Recommendation]) -> None:
    p = m.params
    f = m.funding
    if f.is_liquidated and f.liquidation_period is not None:
        days_until = f.liquidation_period // FUNDING_PERIODS_PER_DAY
        fees = f.breakdown.total_funding_fees
        half_margin_day = math.floor(days_until * p.initial_investment / (2 * fees)) if fees > 0 else days_until
        recs.insert(
            0,
            Recommendation(
                category=RecommendationCategory.CRITICAL,
                title="Warning: Funding Fees Will Cause Liquidation",
                description=(
                    f"Position will be liquidated on day {days_until} due to funding fees depleting margin. "
                    f"Initial margin of ${p.initial_investment:.2f} will be reduced to maintenance requirement of "
                    f"${f.breakdown.maintenance_margin:.2f} through daily funding costs of "
                    f"{m.daily_cost_pct_of_margin:.2f}% of margin. "
                    f"Half of margin will be depleted by day {half_margin_day}."
                ),
                severity=Severity.HIGH,
                action=(
                    "Urgently reduce position timeframe or increase margin to prevent funding-induced liquidation"
                    if days_until < p.time_horizon / 2
                    else "Consider reducing timeframe or increasing initial margin to maintain position"
                ),
            ),
        )
        return

    if f.liquidation_risk > 50:
        buffer = f.breakdown.margin_buffer
        buffer_days = buffer / m.daily_funding_cost if m.daily_funding_cost > 0 else math.inf
        buffer_pct = buffer / p.initial_investment * 100.0
        recs.append(
            Recommendation(
                category=RecommendationCategory.RISK,
                title="High Funding Impact on Margin",
                description=(
                    "Funding fees will significantly impact position profitability. "
                    f"Current margin buffer of ${buffer:.2f} ({buffer_pct:.1f}% of initial margin) "
                    f"provides approximately {_days(buffer_days)} days of funding cost coverage. "
                    f"Liquidation risk is {f.liquidation_risk:.1f}%."
                ),
                severity=Severity.HIGH if f.liquidation_risk > 75 else Severity.MEDIUM,
                action=(
                    "Increase margin buffer or reduce position duration to maintain safe distance from liquidation"
                    if buffer_days < p.time_horizon / 2
                    else "Monitor funding rates closely and consider taking profit if rates increase"
                ),
            )
        )


def _scenario_funding_rules(m: _Metrics, recs: list[Recommendation]) -> None:
    p = m.params
    total_fees = m.funding.breakdown.total_funding_fees
    per_period_ratio = m.funding.breakdown.funding_per_period / p.initial_investment

    if p.scenario == Scenario.SIDEWAYS and per_period_ratio > 0.01:
        recs.append(
            Recommendation(
                category=RecommendationCategory.RISK,
                title="High Funding Cost in Sideways Market",
                description=(
                    f"Funding cost of {per_period_ratio * 100:.2f}% per 8h period is significant in sideways market. "
                    f"Total projected funding of ${total_fees:.2f} may exceed potential gains from "
                    f"{abs(m.price_move_pct):.1f}% price movement."
                ),
                severity=Severity.HIGH if per_period_ratio > 0.02 else Severity.MEDIUM,
                action="Consider shorter timeframe or lower leverage in sideways market",
            )
        )
    elif p.scenario in BULL_SCENARIOS:
        breakeven = funding_breakeven_move_pct(total_funding_fees=total_fees, position_size=m.position_size)
        if breakeven > 5:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.POSITION,
                    title="High Funding Cost in Bull Scenario",
                    description=(
                        f"Need {breakeven:.1f}% price movement to break even on funding costs of ${total_fees:.2f}. "
                        f"{p.scenario.value} scenario typically sees strong moves that could justify these costs "
                        "if momentum continues."
                    ),
                    severity=Severity.MEDIUM if breakeven > 10 else Severity.LOW,
                    action="Monitor funding rates closely and consider taking profit if momentum weakens",
                )
            )


def _margin_depletion_rules(m: _Metrics, recs: list[Recommendation]) -> None:
    p = m.params
    scenario_name = p.scenario.value.lower()
    total_cost = m.daily_funding_cost * p.time_horizon
    adjusted_cost = min(total_cost * m.profile.funding_multiplier, m.margin_to_liquidation)
    depletion = adjusted_cost / m.margin_base * 100.0
    days_to_liq = m.days_to_liquidation
    liquidates = days_to_liq < p.time_horizon

    if depletion > 15:
        if liquidates:
            detail = f"WARNING: Position would be liquidated after {_days(days_to_liq)} days due to funding fees alone."
            severity = Severity.HIGH
        else:
            detail = f"Daily funding cost is {m.daily_cost_pct_of_margin:.2f}% of your margin."
            severity = Severity.MEDIUM if depletion > 30 else Severity.LOW
        recs.append(
            Recommendation(
                category=RecommendationCategory.TIMING,
                title="Significant Funding Impact on Margin",
                description=(
                    f"In {scenario_name} scenario, funding fees would consume {depletion:.1f}% of your available "
                    f"margin over {p.time_horizon} days. {detail}"
                ),
                severity=severity,
                action=(
                    "Reduce position timeframe to prevent funding-induced liquidation"
                    if liquidates
                    else "Consider reducing timeframe or increasing margin to account for funding costs"
                ),
            )
        )

    if p.scenario == Scenario.SIDEWAYS:
        consumed = (p.initial_investment - m.effective_margin) / p.initial_investment * 100.0
        if consumed > 10:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.RISK,
                    title="Funding Erosion in Sideways Market",
                    description=(
                        f"With limited price movement in sideways market, funding fees ({consumed:.1f}% of margin) "
                        f"could exceed potential gains. Break-even requires {consumed / 2:.1f}% price movement."
                    ),
                    severity=Severity.HIGH if consumed > 20 else Severity.MEDIUM,
                    action="Consider shorter timeframe or lower leverage in sideways market",
                )
            )
    elif p.scenario in BULL_SCENARIOS:
        breakeven = funding_breakeven_move_pct(total_funding_fees=adjusted_cost, position_size=m.position_size)
        if breakeven > 5:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.POSITION,
                    title="Scenario-Adjusted Funding Break-even",
                    description=(
                        f"Need {breakeven:.1f}% price movement just to break even on scenario-adjusted funding costs. "
                        f"However, {scenario_name} scenario could justify these costs if momentum continues."
                    ),
                    severity=Severity.MEDIUM if breakeven > 10 else Severity.LOW,
                    action="Monitor funding rates closely and consider taking profit if momentum weakens",
                )
            )
    elif p.scenario == Scenario.VOLATILE_GROWTH:
        worst_case = adjusted_cost * 1.5  # funding spikes
        if worst_case / m.margin_base > 0.25:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.RISK,
                    title="Funding Risk in Volatile Market",
                    description=(
                        "Volatile markets often see funding rate spikes. Worst-case funding could reach "
                        f"{worst_case / m.margin_base * 100:.1f}% of margin over {p.time_horizon} days."
                    ),
                    severity=Severity.MEDIUM,
                    action="Build larger margin buffer or reduce position size to account for funding spikes",
                )
            )
    elif p.scenario == Scenario.MARKET_CYCLE:
        cycles = p.time_horizon / MARKET_CYCLE_DAYS
        if cycles > 0.5:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.TIMING,
                    title="Funding Across Market Cycles",
                    description=(
                        f"Position spans {cycles:.1f} market cycles. Funding rates typically peak during euphoric "
                        f"phases, adding {depletion * 1.5:.1f}% potential margin erosion."
                    ),
                    severity=Severity.MEDIUM if cycles > 1 else Severity.LOW,
                    action="Consider breaking position into smaller timeframes aligned with cycle phases",
                )
            )


def _expected_gain_rule(m: _Metrics, recs: list[Recommendation]) -> None:
    p = m.params
    profile = m.profile
    total_cost = m.daily_funding_cost * p.time_horizon
    expected = raw_pnl(
        position_size=m.position_size,
        entry_price=p.current_price,
        current_price=p.target_price,
        is_long=p.is_long,
    )

    days_before_peak = max(0, profile.peak_day - p.time_horizon)
    exit_early_mult = 0.7 if days_before_peak > 0 else 1.0
    adjusted_expected = expected * profile.pnl_multiplier * exit_early_mult

    ratio = safe_ratio(total_cost, abs(adjusted_expected))
    if ratio is None:
        ratio = math.inf if total_cost > 0 else 0.0
    significant = ratio > 0.5 and profile.funding_risk != "low" and m.current_pnl < 0
    if not significant:
        return

    peak_note = f" before reaching the typical peak around day {profile.peak_day}" if days_before_peak > 0 else ""
    days_to_liq = m.days_to_liquidation
    if days_to_liq < p.time_horizon:
        tail = f"Position risks liquidation around day {_days(days_to_liq)} due to funding fees alone."
    else:
        tail = (
            f"Consider if the {m.daily_cost_pct_of_margin:.2f}% daily funding cost is justified by the expected "
            "price movement."
        )
    share = "all" if not math.isfinite(ratio) else f"{ratio * 100:.1f}%"
    # a funding liquidation warning, when present, keeps the lead
    recs.insert(
        1 if m.funding.is_liquidated else 0,
        Recommendation(
            category=RecommendationCategory.CRITICAL,
            title="Warning: High Funding Cost Impact",
            description=(
                f"In the {p.scenario.value.lower()} scenario, funding fees ({total_cost:.2f} USDT) would consume "
                f"{share} of your expected gains{peak_note}. {tail}"
            ),
            severity=Severity.HIGH if ratio > 0.8 else Severity.MEDIUM,
            action=(
                f"Consider extending timeframe to day {profile.peak_day} to capture full movement potential"
                if days_before_peak > 0
                else "Consider reducing leverage to improve funding efficiency"
            ),
        ),
    )


def _scenario_timing_rules(m: _Metrics, recs: list[Recommendation]) -> None:
    p = m.params
    sc = p.scenario
    horizon = p.time_horizon

    if sc == Scenario.EXPONENTIAL_PUMP:
        if horizon < 30 and p.is_long:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.TIMING,
                    title="Short Timeframe in Pump Scenario",
                    description=(
                        f"Exponential growth typically needs time to develop. {horizon} days might be too short "
                        "to capture the full momentum."
                    ),
                    severity=Severity.MEDIUM,
                    action="Consider extending timeframe to capture potential exponential growth",
                )
            )
        if p.leverage < 2 and p.is_long:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.OPPORTUNITY,
                    title="Conservative Leverage in Bullish Scenario",
                    description=(
                        f"Current {p.leverage:g}x leverage is conservative for an exponential growth scenario. "
                        "Room for optimization if confident in direction."
                    ),
                    severity=Severity.LOW,
                    action="Explore higher leverage scenarios while maintaining risk management",
                )
            )
    elif sc == Scenario.VOLATILE_GROWTH:
        if p.leverage > 5:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.RISK,
                    title="High Leverage in Volatile Market",
                    description=(
                        f"{p.leverage:g}x leverage is risky in a volatile scenario. "
                        "Periodic corrections of 30% could trigger liquidation."
                    ),
                    severity=Severity.HIGH,
                    action="Consider reducing leverage to account for expected volatility",
                )
            )
    elif sc == Scenario.SIDEWAYS:
        move = m.price_move_pct
        if abs(move) > 20:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.TARGET,
                    title="Ambitious Target in Sideways Market",
                    description=(
                        f"Target of {'+' if move > 0 else '-'}{abs(move):.1f}% might be optimistic in a sideways "
                        "scenario with expected +/-10% oscillations."
                    ),
                    severity=Severity.MEDIUM,
                    action="Consider setting more conservative targets around +/-5-15%",
                )
            )
        if horizon > 14 and p.leverage > 3:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.TIMING,
                    title="Extended Sideways Exposure",
                    description=(
                        f"Long timeframe ({horizon} days) with {p.leverage:g}x leverage in sideways market could "
                        "lead to significant funding costs eating into potential gains."
                    ),
                    severity=Severity.MEDIUM,
                    action="Consider shorter timeframes or lower leverage for sideways scenarios",
                )
            )
    elif sc == Scenario.PARABOLIC:
        if p.is_long and horizon < 60:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.TIMING,
                    title="Short Timeframe for Parabolic Growth",
                    description=(
                        f"Parabolic moves typically need 60+ days to develop. Current {horizon}-day timeframe "
                        "might be too short."
                    ),
                    severity=Severity.MEDIUM,
                    action="Consider extending timeframe to capture full parabolic movement",
                )
            )
    elif sc == Scenario.ACCUMULATION:
        if horizon < 50 and p.is_long:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.TIMING,
                    title="Early Exit in Accumulation Phase",
                    description=(
                        f"Breakout expected after day 50, but current timeframe is {horizon} days. "
                        "Might miss the main move."
                    ),
                    severity=Severity.MEDIUM,
                    action="Consider extending timeframe beyond day 50 to capture breakout",
                )
            )
    elif sc == Scenario.CASCADING_PUMP:
        if horizon % CASCADE_WAVE_DAYS < CASCADE_WAVE_DAYS / 2:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.TIMING,
                    title="Wave Cycle Timing",
                    description=(
                        f"Timeframe of {horizon} days might end during a corrective wave. "
                        "Consider adjusting to align with pump cycles."
                    ),
                    severity=Severity.LOW,
                    action=f"Align timeframe with wave cycles (multiples of {CASCADE_WAVE_DAYS} days)",
                )
            )
    elif sc == Scenario.MARKET_CYCLE:
        if horizon > MARKET_CYCLE_DAYS:
            recs.append(
                Recommendation(
                    category=RecommendationCategory.TIMING,
                    title="Multiple Cycle Exposure",
                    description=(
                        "Timeframe spans multiple market cycles. Consider that each cycle has different "
                        "optimal strategies."
                    ),
                    severity=Severity.MEDIUM,
                    action="Consider breaking position into multiple trades aligned with cycle phases",
                )
            )


def _leverage_cost_rule(m: _Metrics, recs: list[Recommendation]) -> None:
    p = m.params
    if p.leverage <= 1:
        return
    cost_pct = m.daily_funding_cost / p.initial_investment * 100.0
    mult = m.profile.leverage_cost_multiplier
    if cost_pct > 0.5 / mult:
        recs.append(
            Recommendation(
                category=RecommendationCategory.POSITION,
                title="Projected Funding Cost Analysis",
                description=(
                    f"With {p.leverage:g}x leverage in {p.scenario.value.lower()} scenario, projected daily funding "
                    f"would be ${m.daily_funding_cost:.2f} ({cost_pct:.2f}% of equity)."
                ),
                severity=Severity.HIGH if cost_pct > 1 / mult else Severity.MEDIUM,
                action="Consider adjusting leverage based on scenario characteristics",
            )
        )


def _liquidation_distance_rule(m: _Metrics, recs: list[Recommendation]) -> None:
    p = m.params
    distance = abs(liquidation_distance_pct(p.current_price, m.liquidation.liquidation_price))
    vol = m.profile.volatility
    if distance < 15 * vol:
        recs.append(
            Recommendation(
                category=RecommendationCategory.RISK,
                title="Scenario-Based Liquidation Risk",
                description=(
                    f"In {p.scenario.value.lower()} scenario, a {distance:.2f}% move "
                    f"{'down' if p.is_long else 'up'} would trigger liquidation. "
                    f"This scenario typically sees {vol * 10:.0f}% moves."
                ),
                severity=Severity.HIGH if distance < 10 * vol else Severity.MEDIUM,
                action="Adjust position size or leverage based on scenario volatility",
            )
        )


def _margin_top_up_rule(m: _Metrics, recs: list[Recommendation]) -> None:
    maintenance = m.liquidation.maintenance_margin_required
    if m.funding.is_liquidated or maintenance <= 0 or m.effective_margin <= 0:
        return
    if needs_margin_top_up(m.effective_margin, maintenance):
        recs.append(
            Recommendation(
                category=RecommendationCategory.SAFETY,
                title="Margin Top-up Advised",
                description=(
                    f"Projected margin of ${m.effective_margin:.2f} ends within 20% of the "
                    f"${maintenance:.2f} maintenance requirement."
                ),
                severity=Severity.MEDIUM,
                action="Add margin before the end of the horizon to keep a 20% buffer above maintenance",
            )
        )
