from __future__ import annotations

import math
from dataclasses import replace

import pytest

from fundingscope.core.errors import InvalidInputError
from fundingscope.core.types import MarginTier, PositionParameters, PositionSide, Scenario
from fundingscope.fees.funding_accrual import FundingAccrualEngine
from fundingscope.projection.pipeline import (
    ProjectionPipeline,
    downsample,
    first_liquidation_day,
    margin_tier,
    project,
)


def _params(**kw) -> PositionParameters:
    base = dict(
        initial_investment=1000.0,
        leverage=10,
        current_price=100.0,
        target_price=110.0,
        time_horizon=30,
        funding_rate=0.01,
        direction=PositionSide.LONG,
        scenario=Scenario.LINEAR,
    )
    base.update(kw)
    return PositionParameters(**base)


def _reference_fees(size, rate, periods, margin, maintenance):
    total = 0.0
    current = size
    for i in range(periods):
        fee = current * rate / 100
        effective = margin - total
        if effective <= maintenance:
            return total, i
        total += fee
        current = size * effective / margin
    return total, None


def test_one_point_per_day_in_order():
    points = project(_params())
    assert [p.day for p in points] == list(range(31))
    assert points[0].price == pytest.approx(100.0)
    assert points[0].funding_fees == 0.0
    assert points[0].raw_pnl == pytest.approx(0.0)


def test_10x_linear_day_30():
    p = _params()
    assert p.position_size == 10_000.0
    last = project(p)[-1]

    fees, liq = _reference_fees(10_000.0, 0.01, 90, 1000.0, 500.0)
    assert liq is None
    assert last.day == 30
    assert last.price == pytest.approx(110.0)
    assert last.raw_pnl == pytest.approx(1000.0)
    assert last.funding_fees == pytest.approx(fees, rel=1e-12)
    assert last.total_pnl == pytest.approx(1000.0 - fees)
    assert last.pnl_percent == pytest.approx((1000.0 - fees) / 10)
    assert last.is_liquidated is False


def test_every_day_follows_the_iterative_fee_sequence():
    for pt in project(_params()):
        fees, _ = _reference_fees(10_000.0, 0.01, pt.day * 3, 1000.0, 500.0)
        assert pt.funding_fees == pytest.approx(fees, rel=1e-12, abs=1e-12)


def test_linear_matches_closed_form_at_horizon():
    p = _params(leverage=3, target_price=137.5, time_horizon=45, funding_rate=0.03)
    last = project(p)[-1]
    funding = FundingAccrualEngine().simulate(
        p.position_size, p.funding_rate, 45 * 3, p.leverage, p.initial_investment, last.price, True
    )
    closed = p.position_size * (p.target_price - p.current_price) / p.current_price - funding.total_funding_fees
    assert last.total_pnl == pytest.approx(closed, rel=1e-6)


def test_flat_target_is_pure_funding_cost():
    for pt in project(_params(target_price=100.0)):
        assert pt.raw_pnl == pytest.approx(0.0, abs=1e-9)
        assert pt.total_pnl == pytest.approx(-pt.funding_fees)


def test_100x_liquidates_deterministically():
    p = _params(leverage=100)
    points = project(p)

    _, period = _reference_fees(100_000.0, 0.01, 90, 1000.0, 500.0)
    day = first_liquidation_day(points)
    assert day is not None and day < 30
    assert day == period // 3 + 1
    assert first_liquidation_day(project(p)) == day

    for pt in points[day:]:
        assert pt.is_liquidated is True
        assert pt.raw_pnl == -1000.0
        assert pt.funding_fees == 1000.0
        assert pt.total_pnl == -1000.0
        assert pt.pnl_percent == -100.0
        assert pt.liquidation_risk == 100.0
        assert pt.effective_margin == 0.0
        assert pt.margin_tier is MarginTier.DANGER
    assert not any(pt.is_liquidated for pt in points[:day])


def test_1x_never_liquidates():
    points = project(_params(leverage=1, time_horizon=365, funding_rate=0.05))
    assert first_liquidation_day(points) is None
    assert all(0.0 <= pt.liquidation_risk <= 100.0 for pt in points)


def test_short_gains_when_price_falls():
    last = project(_params(direction=PositionSide.SHORT, target_price=90.0))[-1]
    assert last.raw_pnl == pytest.approx(1000.0)


@pytest.mark.parametrize("scenario", list(Scenario))
def test_every_scenario_projects_cleanly(scenario):
    points = project(_params(scenario=scenario, time_horizon=120))
    assert len(points) == 121
    for pt in points:
        assert 0.0 <= pt.liquidation_risk <= 100.0
        assert pt.margin_tier is margin_tier(pt.liquidation_risk)


def test_shared_engine_gives_same_series():
    engine = FundingAccrualEngine()
    p = _params(leverage=100)
    first = ProjectionPipeline(engine).project(p)
    second = ProjectionPipeline(engine).project(p)
    assert first == second == project(p)


def test_margin_tier_boundaries():
    assert margin_tier(60.0) is MarginTier.SAFE
    assert margin_tier(60.5) is MarginTier.WARNING
    assert margin_tier(80.0) is MarginTier.WARNING
    assert margin_tier(80.5) is MarginTier.DANGER


def test_downsample_keeps_final_day():
    points = project(_params())
    shown = downsample(points, 10)
    assert len(shown) <= 11
    assert shown[0].day == 0
    assert shown[-1].day == 30
    assert [p.day for p in shown] == sorted(p.day for p in shown)

    few = project(_params(time_horizon=5))
    assert downsample(few, 10) == few


def test_invalid_params_rejected():
    with pytest.raises(InvalidInputError):
        _params(leverage=0)
    with pytest.raises(InvalidInputError):
        _params(current_price=float("nan"))
    with pytest.raises(InvalidInputError):
        _params(initial_investment=-5)
    with pytest.raises(InvalidInputError):
        _params(time_horizon=0)
    with pytest.raises(InvalidInputError):
        replace(_params(), time_horizon=2.5)


def test_scenario_rate_and_day_price_reach_the_engine():
    p = _params(scenario=Scenario.ACCUMULATION, leverage=5)
    points = project(p)
    engine = FundingAccrualEngine()
    r = (110.0 - 100.0) / 100.0 / 30
    for day in (10, 20, 30):
        pt = points[day]
        assert pt.price == pytest.approx(100.0 * (1 + r * day * 0.2))
        # accumulation halves funding before the day-50 breakout
        expected = engine.simulate(5000.0, 0.5 * 0.01, day * 3, 5, 1000.0, pt.price, True)
        assert pt.funding_fees == pytest.approx(expected.total_funding_fees, rel=1e-12)
        assert pt.effective_margin == pytest.approx(expected.effective_margin, rel=1e-12)
        assert pt.liquidation_risk == pytest.approx(expected.liquidation_risk)


def test_volatile_growth_uses_day_modified_rate():
    p = _params(scenario=Scenario.VOLATILE_GROWTH, leverage=5)
    pt = project(p)[12]
    rate = 0.01 * (1 + 0.5 * math.sin(12 / 5))
    expected = FundingAccrualEngine().simulate(5000.0, rate, 36, 5, 1000.0, pt.price, True)
    assert pt.funding_fees == pytest.approx(expected.total_funding_fees, rel=1e-12)
