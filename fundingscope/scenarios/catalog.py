from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Literal, Mapping

from fundingscope.core.errors import UnknownScenarioError
from fundingscope.core.types import Scenario

log = logging.getLogger(__name__)

# price_modifier(day, base_daily_return) -> cumulative return at `day`
PriceModifier = Callable[[int, float], float]
# funding_modifier(day, base_funding_rate, price_change_fraction) -> funding rate
FundingModifier = Callable[[int, float, float], float]

FundingRisk = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class ScenarioModifier:
    name: str
    price_modifier: PriceModifier
    funding_modifier: FundingModifier


@dataclass(frozen=True)
class ScenarioProfile:
    """Static heuristics the comparator and advisory rules read per scenario."""

    risk_multiplier: float
    pnl_multiplier: float
    funding_risk: FundingRisk
    peak_day: int
    funding_multiplier: float
    volatility: float
    leverage_cost_multiplier: float
    description: str


# --- price / funding shapes -------------------------------------------------


def _linear_price(day: int, r: float) -> float:
    return r * day


def _flat_funding(day: int, f: float, price_change: float) -> float:
    return f


def _exponential_pump_price(day: int, r: float) -> float:
    # d^1.5 / d^0.5 is 0/0 at day 0; its limit is 0
    if day == 0:
        return 0.0
    return r * math.pow(day, 1.5) / math.pow(day, 0.5)


def _exponential_pump_funding(day: int, f: float, price_change: float) -> float:
    return f * (1 + max(0.0, price_change) * 2)


def _volatile_growth_price(day: int, r: float) -> float:
    return r * day * (1 + 0.3 * math.sin(day / 10))


def _volatile_growth_funding(day: int, f: float, price_change: float) -> float:
    return f * (1 + 0.5 * math.sin(day / 5))


def _sideways_price(day: int, r: float) -> float:
    oscillation = math.sin(day / 15) * 0.1
    return r * day * 0.1 + oscillation


def _sideways_funding(day: int, f: float, price_change: float) -> float:
    return f * (1 + 0.1 * math.sin(day / 10))


def _parabolic_price(day: int, r: float) -> float:
    return r * math.pow(day / 100, 2)


def _parabolic_funding(day: int, f: float, price_change: float) -> float:
    return f * (1 + math.pow(day / 100, 1.5))


def _accumulation_price(day: int, r: float) -> float:
    breakout = math.pow((day - 50) / 30, 2) if day > 50 else 0.0
    return r * day * (0.2 + breakout)


def _accumulation_funding(day: int, f: float, price_change: float) -> float:
    return f * ((1 + math.pow((day - 50) / 30, 1.5)) if day > 50 else 0.5)


def _cascading_pump_price(day: int, r: float) -> float:
    wave1 = math.sin(day / 20) * min(1.0, day / 30)
    wave2 = math.sin(day / 40) * min(1.0, day / 60) * 2
    wave3 = math.sin(day / 80) * min(1.0, day / 90) * 4
    return r * day * (1 + wave1 + wave2 + wave3)


def _cascading_pump_funding(day: int, f: float, price_change: float) -> float:
    return f * (1 + abs(math.sin(day / 20)) + abs(price_change))


def _cycle_phase(day: int) -> float:
    return (day % 100) / 100


def _market_cycle_price(day: int, r: float) -> float:
    phase = _cycle_phase(day)
    if phase < 0.3:
        return r * day * 0.5
    if phase < 0.6:
        return r * day * (1 + math.pow(phase, 2))
    if phase < 0.8:
        return r * day * (1.5 - math.pow(phase - 0.6, 2))
    return r * day * (1 - math.pow(phase - 0.8, 2))


def _market_cycle_funding(day: int, f: float, price_change: float) -> float:
    phase = _cycle_phase(day)
    return f * (1 + abs(price_change) * (2 if phase < 0.6 else 0.5))


SCENARIOS: Mapping[Scenario, ScenarioModifier] = MappingProxyType(
    {
        Scenario.LINEAR: ScenarioModifier(Scenario.LINEAR.value, _linear_price, _flat_funding),
        Scenario.EXPONENTIAL_PUMP: ScenarioModifier(
            Scenario.EXPONENTIAL_PUMP.value, _exponential_pump_price, _exponential_pump_funding
        ),
        Scenario.VOLATILE_GROWTH: ScenarioModifier(
            Scenario.VOLATILE_GROWTH.value, _volatile_growth_price, _volatile_growth_funding
        ),
        Scenario.SIDEWAYS: ScenarioModifier(Scenario.SIDEWAYS.value, _sideways_price, _sideways_funding),
        Scenario.PARABOLIC: ScenarioModifier(Scenario.PARABOLIC.value, _parabolic_price, _parabolic_funding),
        Scenario.ACCUMULATION: ScenarioModifier(
            Scenario.ACCUMULATION.value, _accumulation_price, _accumulation_funding
        ),
        Scenario.CASCADING_PUMP: ScenarioModifier(
            Scenario.CASCADING_PUMP.value, _cascading_pump_price, _cascading_pump_funding
        ),
        Scenario.MARKET_CYCLE: ScenarioModifier(
            Scenario.MARKET_CYCLE.value, _market_cycle_price, _market_cycle_funding
        ),
    }
)

PROFILES: Mapping[Scenario, ScenarioProfile] = MappingProxyType(
    {
        Scenario.LINEAR: ScenarioProfile(1.0, 1.0, "low", 0, 1.0, 1.0, 1.0, "Steady move from current to target price"),
        Scenario.EXPONENTIAL_PUMP: ScenarioProfile(
            1.8, 1.5, "high", 45, 2.0, 2.0, 2.0, "Accelerating rally; funding rises with price"
        ),
        Scenario.VOLATILE_GROWTH: ScenarioProfile(
            1.5, 1.2, "medium", 30, 1.5, 2.5, 0.5, "Uptrend with periodic 30% swings"
        ),
        Scenario.SIDEWAYS: ScenarioProfile(0.8, 0.5, "low", 0, 1.0, 1.0, 1.0, "Range-bound, +/-10% oscillation"),
        Scenario.PARABOLIC: ScenarioProfile(
            2.0, 2.0, "high", 60, 2.5, 3.0, 2.0, "Quadratic blow-off; slow start, violent finish"
        ),
        Scenario.ACCUMULATION: ScenarioProfile(
            1.2, 0.8, "low", 50, 0.8, 1.5, 1.0, "Quiet base until day 50, then breakout"
        ),
        Scenario.CASCADING_PUMP: ScenarioProfile(
            1.6, 1.3, "medium", 45, 1.8, 2.0, 1.0, "Successive pump waves with corrections"
        ),
        Scenario.MARKET_CYCLE: ScenarioProfile(
            1.4, 1.0, "medium", 40, 1.3, 2.0, 0.5, "100-day accumulation/markup/distribution/decline cycle"
        ),
    }
)


def parse_scenario(name: Scenario | str) -> Scenario:
    """
    Resolve a scenario from its display name ("Market Cycle") or enum name
    ("MARKET_CYCLE"). Unknown names are a caller bug and raise.
    """
    if isinstance(name, Scenario):
        return name
    if isinstance(name, str):
        s = name.strip()
        for sc in Scenario:
            if s.lower() == sc.value.lower() or s.upper() == sc.name:
                return sc
    log.error("unknown scenario requested: %r", name)
    raise UnknownScenarioError(name)


def get_modifier(scenario: Scenario | str) -> ScenarioModifier:
    return SCENARIOS[parse_scenario(scenario)]


def get_profile(scenario: Scenario | str) -> ScenarioProfile:
    return PROFILES[parse_scenario(scenario)]
