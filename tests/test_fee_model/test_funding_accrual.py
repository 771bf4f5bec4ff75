from __future__ import annotations

import threading

import pytest

from fundingscope.core.errors import InvalidInputError
from fundingscope.fees.funding_accrual import FundingAccrualEngine, LiquidationCache


def _reference_fees(size, rate, periods, margin, maintenance):
    total = 0.0
    current = size
    effective = margin
    for i in range(periods):
        fee = current * rate / 100
        effective = margin - total
        if effective <= maintenance:
            return total, i, effective
        total += fee
        current = size * effective / margin
    return total, None, effective


def test_10x_thirty_days_matches_iterative_sequence():
    engine = FundingAccrualEngine()
    res = engine.simulate(10_000.0, 0.01, 90, 10, 1000.0, 110.0, True)

    expected, liq, checked = _reference_fees(10_000.0, 0.01, 90, 1000.0, 500.0)
    assert liq is None
    assert res.is_liquidated is False
    assert res.total_funding_fees == pytest.approx(expected, rel=1e-12)
    # shrinking size keeps fees under the naive 10000 * 0.0001 * 90
    assert 85.0 < res.total_funding_fees < 90.0
    # margin is reported as of the last stop-out check, one fee behind the total
    assert res.effective_margin == pytest.approx(checked, rel=1e-12)
    assert res.effective_margin > 1000.0 - expected
    assert res.breakdown.maintenance_margin == pytest.approx(500.0)
    assert res.breakdown.margin_buffer == pytest.approx(checked - 500.0)
    assert res.breakdown.funding_per_period == pytest.approx(1.0)
    assert res.liquidation_risk == pytest.approx((1 - (checked - 500.0) / 1000.0) * 100)


def test_100x_liquidates_at_a_fixed_period():
    engine = FundingAccrualEngine()
    res = engine.simulate(100_000.0, 0.01, 90, 100, 1000.0, 100.0, True)

    _, period, _ = _reference_fees(100_000.0, 0.01, 90, 1000.0, 500.0)
    assert period is not None
    assert res.is_liquidated is True
    assert res.liquidation_period == period
    assert res.total_funding_fees == 1000.0
    assert res.effective_margin == 0.0
    assert res.liquidation_risk == 100.0

    again = FundingAccrualEngine().simulate(100_000.0, 0.01, 90, 100, 1000.0, 100.0, True)
    assert again.liquidation_period == period


def test_fees_non_decreasing_until_liquidation():
    engine = FundingAccrualEngine()
    prev = 0.0
    seen_liquidation = False
    for n in range(0, 240, 3):
        res = engine.simulate(50_000.0, 0.02, n, 50, 1000.0, 100.0, True)
        if res.is_liquidated:
            seen_liquidation = True
            assert res.total_funding_fees == 1000.0
        else:
            assert not seen_liquidation
            assert res.total_funding_fees >= prev
            prev = res.total_funding_fees
    assert seen_liquidation


def test_zero_periods_costs_nothing():
    res = FundingAccrualEngine().simulate(10_000.0, 0.05, 0, 10, 1000.0, 100.0)
    assert res.total_funding_fees == 0.0
    assert res.effective_margin == 1000.0
    assert res.is_liquidated is False


@pytest.mark.parametrize("lev", [1, 2, 5, 10, 25, 50])
@pytest.mark.parametrize("rate", [-1.0, -0.5, -0.01, 0.0, 0.01, 0.5, 1.0])
def test_risk_is_clamped(lev, rate):
    res = FundingAccrualEngine().simulate(1000.0 * lev, rate, 90, lev, 1000.0, 100.0, True)
    assert 0.0 <= res.liquidation_risk <= 100.0


def test_1x_is_never_stopped_out_by_funding():
    engine = FundingAccrualEngine()
    res = engine.simulate(1000.0, 1.0, 1000, 1, 1000.0, 100.0, True)
    assert res.is_liquidated is False
    assert res.breakdown.maintenance_margin == 0.0
    # margin-consumed branch
    assert res.liquidation_risk == pytest.approx((1000.0 - res.effective_margin) / 1000.0 * 100)
    assert res.liquidation_risk <= 100.0


def test_negative_funding_grows_margin():
    res = FundingAccrualEngine().simulate(10_000.0, -0.01, 90, 10, 1000.0, 100.0, True)
    assert res.total_funding_fees < 0
    assert res.effective_margin > 1000.0
    assert res.liquidation_risk < 50.0


def test_cache_is_not_observable():
    cached = FundingAccrualEngine()
    first = cached.simulate(100_000.0, 0.01, 90, 100, 1000.0, 100.0, True)
    assert len(cached.cache) == 1

    hit = cached.simulate(100_000.0, 0.01, 120, 100, 1000.0, 100.0, True)
    assert cached.cache.hits >= 1
    fresh = FundingAccrualEngine().simulate(100_000.0, 0.01, 120, 100, 1000.0, 100.0, True)
    assert hit == fresh

    # fewer periods than the cached liquidation period must run the loop again
    short = cached.simulate(100_000.0, 0.01, 10, 100, 1000.0, 100.0, True)
    assert short.is_liquidated is False

    cached.cache.clear()
    assert len(cached.cache) == 0
    assert cached.simulate(100_000.0, 0.01, 90, 100, 1000.0, 100.0, True) == first


def test_cache_is_bounded():
    cache = LiquidationCache(max_entries=2)
    cache.put((1.0, 0.1, 2.0, 1.0, 1.0, True), 5)
    cache.put((2.0, 0.1, 2.0, 1.0, 1.0, True), 6)
    cache.put((3.0, 0.1, 2.0, 1.0, 1.0, True), 7)
    assert len(cache) == 2
    assert cache.get((1.0, 0.1, 2.0, 1.0, 1.0, True)) is None
    assert cache.get((3.0, 0.1, 2.0, 1.0, 1.0, True)) == 7


def test_shared_engine_across_threads():
    engine = FundingAccrualEngine()
    expected = FundingAccrualEngine().simulate(100_000.0, 0.01, 90, 100, 1000.0, 100.0, True)
    results = []

    def _work():
        for _ in range(20):
            results.append(engine.simulate(100_000.0, 0.01, 90, 100, 1000.0, 100.0, True))

    threads = [threading.Thread(target=_work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(results) == 80
    assert all(r == expected for r in results)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"leverage": 0},
        {"leverage": -1},
        {"periods": -1},
        {"periods": 2.5},
        {"periods": True},
        {"funding_rate": float("nan")},
        {"initial_margin": 0},
        {"position_size": float("inf")},
    ],
)
def test_invalid_inputs_rejected(kwargs):
    args = {
        "position_size": 10_000.0,
        "funding_rate": 0.01,
        "periods": 90,
        "leverage": 10,
        "initial_margin": 1000.0,
        "current_price": 100.0,
    }
    args.update(kwargs)
    with pytest.raises(InvalidInputError):
        FundingAccrualEngine().simulate(**args)


def test_open_position_never_reports_margin_at_or_below_maintenance():
    engine = FundingAccrualEngine()
    _, period, _ = _reference_fees(100_000.0, 0.01, 200, 1000.0, 500.0)
    # the run that settles its last fee right before the stop-out period
    res = engine.simulate(100_000.0, 0.01, period, 100, 1000.0, 100.0, True)
    assert res.is_liquidated is False
    assert res.effective_margin > res.breakdown.maintenance_margin
    assert res.breakdown.margin_buffer > 0
    assert res.liquidation_risk < 100.0

    for lev in (2, 5, 10, 25, 50, 100):
        for n in range(0, 300, 7):
            r = engine.simulate(1000.0 * lev, 0.05, n, lev, 1000.0, 100.0, True)
            if not r.is_liquidated:
                assert r.effective_margin > r.breakdown.maintenance_margin
