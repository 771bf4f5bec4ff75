from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, Query

from fundingscope.analysis.recommendations import recommend
from fundingscope.analysis.spot_compare import compare
from fundingscope.core.config import PositionConfig, ProjectionConfig
from fundingscope.core.errors import FundingScopeError
from fundingscope.core.types import PositionParameters
from fundingscope.fees.funding_accrual import FundingAccrualEngine
from fundingscope.monitoring.logger import get_logger
from fundingscope.projection.pipeline import ProjectionPipeline, downsample, first_liquidation_day
from fundingscope.projection.sensitivity import sensitivity_table
from fundingscope.scenarios.registry import ScenarioRegistry

app = FastAPI()
log = get_logger("api")

# requests run on the threadpool; the engine's liquidation cache is lock-protected
engine = FundingAccrualEngine()
projection_cfg = ProjectionConfig()
scenario_registry = ScenarioRegistry()


def _params(payload: PositionConfig) -> PositionParameters:
    try:
        return payload.to_params()
    except FundingScopeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@app.get("/registry/scenarios")
def registry_scenarios() -> dict[str, Any]:
    items = scenario_registry.list_available()
    return {"items": [asdict(i) for i in items]}


@app.post("/projection")
def projection(payload: PositionConfig, full: bool = Query(default=False)) -> dict[str, Any]:
    params = _params(payload)
    try:
        points = ProjectionPipeline(engine, periods_per_day=projection_cfg.periods_per_day).project(params)
    except FundingScopeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    shown = points if full else downsample(points, projection_cfg.display_points)
    return {
        "position_size": params.position_size,
        "liquidation_day": first_liquidation_day(points),
        "points": [asdict(p) for p in shown],
    }


@app.post("/comparison")
def comparison(payload: PositionConfig) -> dict[str, Any]:
    params = _params(payload)
    try:
        result = compare(params, engine=engine)
    except FundingScopeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return asdict(result)


@app.post("/recommendations")
def recommendations(payload: PositionConfig) -> dict[str, Any]:
    params = _params(payload)
    try:
        points = ProjectionPipeline(engine, periods_per_day=projection_cfg.periods_per_day).project(params)
        recs = recommend(params, points, compare(params, engine=engine), engine=engine)
    except FundingScopeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    log.info("recommendations scenario=%s count=%d", params.scenario.value, len(recs))
    return {"items": [asdict(r) for r in recs]}


@app.post("/sensitivity")
def sensitivity(payload: PositionConfig) -> dict[str, Any]:
    params = _params(payload)
    try:
        rows = sensitivity_table(params, engine=engine)
    except FundingScopeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"items": [asdict(r) for r in rows]}
