from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fundingscope.core.errors import InvalidInputError
from fundingscope.core.validation import (
    require_finite,
    require_non_negative,
    require_positive,
)


class PositionSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class Scenario(str, Enum):
    LINEAR = "Linear"
    EXPONENTIAL_PUMP = "Exponential Pump"
    VOLATILE_GROWTH = "Volatile Growth"
    SIDEWAYS = "Sideways"
    PARABOLIC = "Parabolic"
    ACCUMULATION = "Accumulation"
    CASCADING_PUMP = "Cascading Pump"
    MARKET_CYCLE = "Market Cycle"


class MarginTier(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendationCategory(str, Enum):
    RISK = "risk"
    OPPORTUNITY = "opportunity"
    SAFETY = "safety"
    TIMING = "timing"
    POSITION = "position"
    TARGET = "target"
    CRITICAL = "critical"


@dataclass(frozen=True)
class PositionParameters:
    """
    Snapshot of everything a calculation needs. Validated on construction so the
    formulas downstream can divide by price, investment and leverage freely.

    funding_rate is a percentage per 8h funding interval (0.01 means 0.01%).
    """

    initial_investment: float
    leverage: float
    current_price: float
    target_price: float
    time_horizon: int  # days
    funding_rate: float
    direction: PositionSide = PositionSide.LONG
    scenario: Scenario = Scenario.LINEAR

    def __post_init__(self) -> None:
        require_positive("initial_investment", self.initial_investment)
        require_positive("current_price", self.current_price)
        require_non_negative("target_price", self.target_price)
        require_finite("funding_rate", self.funding_rate)
        lev = require_finite("leverage", self.leverage)
        if lev < 1:
            raise InvalidInputError(f"leverage must be >= 1, got {self.leverage!r}")
        horizon = require_finite("time_horizon", self.time_horizon)
        if isinstance(self.time_horizon, bool) or int(horizon) != horizon or horizon < 1:
            raise InvalidInputError(f"time_horizon must be a whole number >= 1, got {self.time_horizon!r}")
        if not isinstance(self.direction, PositionSide):
            raise InvalidInputError(f"direction must be a PositionSide, got {self.direction!r}")
        if not isinstance(self.scenario, Scenario):
            raise InvalidInputError(f"scenario must be a Scenario, got {self.scenario!r}")

    @property
    def is_long(self) -> bool:
        return self.direction == PositionSide.LONG

    @property
    def position_size(self) -> float:
        return float(self.initial_investment) * float(self.leverage)


@dataclass(frozen=True)
class LiquidationDetails:
    liquidation_price: float
    liquidation_distance: float
    liquidation_distance_percent: float
    initial_margin_required: float
    maintenance_margin_required: float


@dataclass(frozen=True)
class FundingBreakdown:
    funding_per_period: float  # at the initial position size
    total_funding_fees: float
    maintenance_margin: float
    margin_buffer: float


@dataclass(frozen=True)
class FundingImpactResult:
    total_funding_fees: float
    effective_margin: float
    liquidation_risk: float  # 0..100
    is_liquidated: bool
    breakdown: FundingBreakdown
    liquidation_period: int | None = None
    liquidation: LiquidationDetails | None = None


@dataclass(frozen=True)
class ProjectionPoint:
    day: int
    price: float
    raw_pnl: float
    funding_fees: float
    total_pnl: float
    pnl_percent: float
    liquidation_risk: float
    effective_margin: float
    is_liquidated: bool
    margin_tier: MarginTier


@dataclass(frozen=True)
class SpotComparisonResult:
    """
    Ratio fields are None when their denominator is zero (undefined ratio),
    never NaN or infinity.
    """

    spot_pnl: float
    leveraged_pnl: float
    spot_return: float
    leveraged_return: float
    spot_sharpe: float | None
    leverage_sharpe: float | None
    is_funding_significant: bool
    is_leverage_worth_it: bool
    leverage_multiplier: float | None
    funding_drag_percent: float
    scenario_adjusted_risk: float
    liquidation_risk: float
    margin_buffer_percent: float
    funding_fees: float


@dataclass(frozen=True)
class Recommendation:
    category: RecommendationCategory
    title: str
    description: str
    severity: Severity
    action: str | None = None


@dataclass(frozen=True)
class SensitivityRow:
    label: str
    leverage: float
    funding_rate: float
    total_pnl: float
    is_liquidated: bool


@dataclass(frozen=True)
class MarketSnapshot:
    symbol: str
    price: float
    funding_rate: float
    funding_rate_is_default: bool = False


@dataclass(frozen=True)
class Instrument:
    symbol: str
    base_asset: str
    quote_asset: str
