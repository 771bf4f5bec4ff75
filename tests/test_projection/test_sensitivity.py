from __future__ import annotations

import pytest

from fundingscope.core.types import PositionParameters, Scenario
from fundingscope.projection.pipeline import project
from fundingscope.projection.sensitivity import sensitivity_table


def _params(leverage: float = 5) -> PositionParameters:
    return PositionParameters(
        initial_investment=1000.0,
        leverage=leverage,
        current_price=100.0,
        target_price=120.0,
        time_horizon=30,
        funding_rate=0.02,
        scenario=Scenario.LINEAR,
    )


def test_rows_and_bumps():
    rows = sensitivity_table(_params())
    assert [r.label for r in rows] == [
        "Baseline",
        "Higher Leverage",
        "Lower Leverage",
        "Higher Funding Rate",
        "Lower Funding Rate",
    ]
    assert [r.leverage for r in rows] == [5.0, 7.0, 3.0, 5.0, 5.0]
    assert rows[3].funding_rate == pytest.approx(0.03)
    assert rows[4].funding_rate == pytest.approx(0.01)


def test_baseline_matches_projection():
    p = _params()
    baseline = sensitivity_table(p)[0]
    assert baseline.total_pnl == pytest.approx(project(p)[-1].total_pnl)


def test_lower_leverage_floors_at_1x():
    rows = sensitivity_table(_params(leverage=2))
    assert rows[2].leverage == 1.0


def test_funding_bumps_move_pnl_the_right_way():
    rows = {r.label: r for r in sensitivity_table(_params())}
    assert rows["Higher Funding Rate"].total_pnl < rows["Baseline"].total_pnl
    assert rows["Lower Funding Rate"].total_pnl > rows["Baseline"].total_pnl
