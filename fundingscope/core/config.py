from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from fundingscope.core.types import PositionParameters, PositionSide, Scenario
from fundingscope.fees.funding_model import DEFAULT_FUNDING_RATE_PCT, FUNDING_PERIODS_PER_DAY


class LoggingConfig(BaseModel):
    level: str = "INFO"
    # chatty third-party loggers held at WARNING (httpx logs every feed request at INFO)
    quiet_loggers: list[str] = Field(default_factory=lambda: ["httpx", "httpcore"])


class FeedConfig(BaseModel):
    spot_base_url: str = "https://api.binance.com"
    futures_base_url: str = "https://fapi.binance.com"
    timeout_sec: float = 10.0
    quote_asset: str = "USDT"
    default_funding_rate: float = DEFAULT_FUNDING_RATE_PCT  # percent per 8h, used when the fetch fails


class ProjectionConfig(BaseModel):
    periods_per_day: int = FUNDING_PERIODS_PER_DAY
    display_points: int = 10


class PositionConfig(BaseModel):
    initial_investment: float = Field(default=1000.0, gt=0)
    leverage: float = Field(default=2.0, ge=1)
    current_price: float = Field(default=100.0, gt=0)
    target_price: float = Field(default=100.0, ge=0)
    time_horizon: int = Field(default=30, ge=1, le=365)  # days
    funding_rate: float = Field(default=DEFAULT_FUNDING_RATE_PCT, ge=-1, le=1)  # percent per 8h
    direction: Literal["LONG", "SHORT"] = "LONG"
    scenario: Scenario = Scenario.LINEAR
    symbol: str | None = None  # if set, price/funding may be refreshed from the feed

    def to_params(self) -> PositionParameters:
        return PositionParameters(
            initial_investment=self.initial_investment,
            leverage=self.leverage,
            current_price=self.current_price,
            target_price=self.target_price,
            time_horizon=self.time_horizon,
            funding_rate=self.funding_rate,
            direction=PositionSide(self.direction),
            scenario=self.scenario,
        )


class AppConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    projection: ProjectionConfig = Field(default_factory=ProjectionConfig)
    position: PositionConfig = Field(default_factory=PositionConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str, overrides: dict[str, Any] | None = None) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    data = yaml.safe_load(p.read_text()) or {}

    # a sibling feed.yaml (endpoints, fallback rate) sits under the main config
    if (p.parent / "feed.yaml").exists() and p.name != "feed.yaml":
        feed_overlay = yaml.safe_load((p.parent / "feed.yaml").read_text()) or {}
        data = _deep_merge({"feed": feed_overlay}, data)

    if overrides:
        data = _deep_merge(data, overrides)
    return AppConfig.model_validate(data)
