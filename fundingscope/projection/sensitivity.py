from __future__ import annotations

from dataclasses import replace

from fundingscope.core.types import PositionParameters, SensitivityRow
from fundingscope.fees.funding_accrual import FundingAccrualEngine
from fundingscope.projection.pipeline import ProjectionPipeline

LEVERAGE_STEP = 2.0
FUNDING_STEP = 0.01


def sensitivity_table(
    params: PositionParameters,
    *,
    engine: FundingAccrualEngine | None = None,
) -> list[SensitivityRow]:
    """
    End-of-horizon total PnL for the baseline and for +/- leverage and funding bumps.
    """
    lev = float(params.leverage)
    rate = float(params.funding_rate)
    variants = [
        ("Baseline", params),
        ("Higher Leverage", replace(params, leverage=lev + LEVERAGE_STEP)),
        ("Lower Leverage", replace(params, leverage=max(1.0, lev - LEVERAGE_STEP))),
        ("Higher Funding Rate", replace(params, funding_rate=rate + FUNDING_STEP)),
        ("Lower Funding Rate", replace(params, funding_rate=rate - FUNDING_STEP)),
    ]

    pipeline = ProjectionPipeline(engine)
    rows: list[SensitivityRow] = []
    for label, p in variants:
        last = pipeline.project(p)[-1]
        rows.append(
            SensitivityRow(
                label=label,
                leverage=float(p.leverage),
                funding_rate=float(p.funding_rate),
                total_pnl=last.total_pnl,
                is_liquidated=last.is_liquidated,
            )
        )
    return rows
