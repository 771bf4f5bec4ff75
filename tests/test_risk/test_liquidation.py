from __future__ import annotations

import pytest

from fundingscope.core.errors import InvalidInputError
from fundingscope.risk.liquidation import compute_liquidation, liquidation_distance_pct, would_be_liquidated


@pytest.mark.parametrize("lev", [2, 3, 5, 10, 25, 50, 100])
def test_maintenance_is_half_initial_margin(lev):
    d = compute_liquidation(100.0, lev, 10_000.0, True)
    assert d.initial_margin_required == pytest.approx(10_000.0 / lev)
    assert d.maintenance_margin_required == pytest.approx(0.5 * 10_000.0 / lev)


def test_no_maintenance_at_1x():
    d = compute_liquidation(100.0, 1, 1000.0, True)
    assert d.maintenance_margin_required == 0.0
    assert d.initial_margin_required == 1000.0


@pytest.mark.parametrize("lev", [1, 2, 10, 125])
def test_liquidation_price_sits_against_the_position(lev):
    long = compute_liquidation(250.0, lev, 1000.0, True)
    short = compute_liquidation(250.0, lev, 1000.0, False)
    assert long.liquidation_price < 250.0
    assert short.liquidation_price > 250.0
    assert long.liquidation_distance_percent == pytest.approx(100.0 / lev)


def test_10x_distances():
    d = compute_liquidation(100.0, 10, 10_000.0, True)
    assert d.liquidation_distance == pytest.approx(10.0)
    assert d.liquidation_price == pytest.approx(90.0)


def test_zero_or_negative_leverage_rejected():
    with pytest.raises(InvalidInputError):
        compute_liquidation(100.0, 0, 1000.0)
    with pytest.raises(InvalidInputError):
        compute_liquidation(100.0, -2, 1000.0)
    with pytest.raises(InvalidInputError):
        compute_liquidation(float("nan"), 2, 1000.0)


def test_would_be_liquidated_is_inclusive():
    # 10x long from 100 liquidates at 90
    assert would_be_liquidated(90.0, 100.0, 10, True) is True
    assert would_be_liquidated(89.0, 100.0, 10, True) is True
    assert would_be_liquidated(90.5, 100.0, 10, True) is False
    # 10x short from 100 liquidates at 110
    assert would_be_liquidated(110.0, 100.0, 10, False) is True
    assert would_be_liquidated(109.0, 100.0, 10, False) is False


def test_liquidation_distance_pct_signed():
    assert liquidation_distance_pct(100.0, 90.0) == pytest.approx(-10.0)
    assert liquidation_distance_pct(100.0, 110.0) == pytest.approx(10.0)
