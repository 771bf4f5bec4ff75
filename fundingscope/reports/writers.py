from __future__ import annotations

import csv
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fundingscope.core.types import (
    PositionParameters,
    ProjectionPoint,
    Recommendation,
    SensitivityRow,
    SpotComparisonResult,
)
from fundingscope.fees.funding_model import FundingModel

PROJECTION_FIELDS = [
    "day",
    "price",
    "raw_pnl",
    "funding_fees",
    "total_pnl",
    "pnl_percent",
    "liquidation_risk",
    "effective_margin",
    "is_liquidated",
    "margin_tier",
]


def write_projection_csv(points: list[ProjectionPoint], path: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=PROJECTION_FIELDS)
        w.writeheader()
        for pt in points:
            row = asdict(pt)
            row["margin_tier"] = pt.margin_tier.value
            w.writerow(row)


def build_summary(
    params: PositionParameters,
    points: list[ProjectionPoint],
    comparison: SpotComparisonResult,
    recommendations: list[Recommendation],
    sensitivity: list[SensitivityRow] | None = None,
) -> dict[str, Any]:
    last = points[-1]
    return {
        "params": {
            **asdict(params),
            "direction": params.direction.value,
            "scenario": params.scenario.value,
            "position_size": params.position_size,
            "funding_rate_annualized_pct": FundingModel(funding_rate=params.funding_rate).annualized_rate_pct(),
        },
        "final": asdict(last) | {"margin_tier": last.margin_tier.value},
        "comparison": asdict(comparison),
        "recommendations": [
            asdict(r) | {"category": r.category.value, "severity": r.severity.value} for r in recommendations
        ],
        "sensitivity": [asdict(s) for s in (sensitivity or [])],
    }


def write_summary_json(summary: dict[str, Any], path: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(summary, indent=2, sort_keys=True))
