from __future__ import annotations

from dataclasses import dataclass

from fundingscope.core.types import Scenario
from fundingscope.scenarios.catalog import PROFILES


@dataclass(frozen=True)
class ScenarioSpec:
    name: str
    label: str
    description: str
    risk_multiplier: float
    funding_risk: str
    peak_day: int


class ScenarioRegistry:
    def list_available(self) -> list[ScenarioSpec]:
        out: list[ScenarioSpec] = []
        for sc in Scenario:
            p = PROFILES[sc]
            out.append(
                ScenarioSpec(
                    name=sc.name,
                    label=sc.value,
                    description=p.description,
                    risk_multiplier=p.risk_multiplier,
                    funding_risk=p.funding_risk,
                    peak_day=p.peak_day,
                )
            )
        return out
