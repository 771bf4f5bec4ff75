from __future__ import annotations

import logging

from fundingscope.core.types import LiquidationDetails
from fundingscope.core.validation import require_finite, require_leverage, require_positive

log = logging.getLogger(__name__)

MAINTENANCE_MARGIN_RATIO = 0.5


def compute_liquidation(
    current_price: float,
    leverage: float,
    position_size: float,
    is_long: bool = True,
) -> LiquidationDetails:
    """
    Liquidation threshold for a position opened at current_price.

    The price may move 100/leverage percent against the position before the
    posted margin is gone. Maintenance margin is half the initial margin, and
    zero at 1x where price alone cannot liquidate.
    """
    price = require_finite("current_price", current_price)
    lev = require_leverage(leverage)
    size = require_finite("position_size", position_size)

    distance_pct = 100.0 / lev
    distance = price * (distance_pct / 100.0)
    liq_price = price - distance if is_long else price + distance

    initial_margin = size / lev
    maintenance = 0.0 if lev == 1 else initial_margin * MAINTENANCE_MARGIN_RATIO

    log.debug(
        "liquidation price=%.4f lev=%s size=%.4f long=%s -> liq=%.4f maint=%.4f",
        price,
        lev,
        size,
        is_long,
        liq_price,
        maintenance,
    )
    return LiquidationDetails(
        liquidation_price=liq_price,
        liquidation_distance=distance,
        liquidation_distance_percent=distance_pct,
        initial_margin_required=initial_margin,
        maintenance_margin_required=maintenance,
    )


def would_be_liquidated(
    current_price: float,
    entry_price: float,
    leverage: float,
    is_long: bool = True,
) -> bool:
    entry = require_positive("entry_price", entry_price)
    details = compute_liquidation(entry, leverage, entry * float(leverage), is_long)
    price = require_finite("current_price", current_price)
    if is_long:
        return price <= details.liquidation_price
    return price >= details.liquidation_price


def liquidation_distance_pct(current_price: float, liquidation_price: float) -> float:
    """Signed distance from current price to the liquidation price, in percent of price."""
    price = require_positive("current_price", current_price)
    return (float(liquidation_price) - price) / price * 100.0
