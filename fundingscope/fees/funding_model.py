from __future__ import annotations

from dataclasses import dataclass

# Perpetual funding settles every 8h.
FUNDING_PERIODS_PER_DAY = 3
FUNDING_PERIODS_PER_YEAR = 365 * FUNDING_PERIODS_PER_DAY

# Used when the live feed cannot supply a rate. Percent per 8h.
DEFAULT_FUNDING_RATE_PCT = 0.01


@dataclass(frozen=True)
class FundingModel:
    """
    Flat funding estimator.

    Payment magnitude is notional * rate for every period, with no decay of the
    position as margin is consumed. FundingAccrualEngine models the decay; this
    is the quick estimate the advisory rules quote as "daily funding cost".
    """

    funding_rate: float  # percent per 8h period, e.g. 0.01

    def estimate_payment(self, notional_usdt: float, *, periods: int = 1) -> float:
        return float(notional_usdt) * (float(self.funding_rate) / 100.0) * int(periods)

    def daily_cost(self, notional_usdt: float) -> float:
        return self.estimate_payment(notional_usdt, periods=FUNDING_PERIODS_PER_DAY)

    def annualized_rate_pct(self) -> float:
        return float(self.funding_rate) * FUNDING_PERIODS_PER_YEAR
