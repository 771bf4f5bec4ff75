from __future__ import annotations

from fundingscope.core.validation import require_positive


def raw_pnl(
    *,
    position_size: float,
    entry_price: float,
    current_price: float,
    is_long: bool = True,
) -> float:
    """Price PnL of a position before funding."""
    entry = require_positive("entry_price", entry_price)
    move = (float(current_price) - entry) / entry
    pnl = float(position_size) * move
    return pnl if is_long else -pnl


def funding_breakeven_move_pct(*, total_funding_fees: float, position_size: float) -> float:
    """
    Favorable price move (percent) needed for the position to earn back its funding.
    """
    size = float(position_size)
    if size <= 0:
        return 0.0
    return float(total_funding_fees) / size * 100.0


def needs_margin_top_up(
    current_margin: float,
    maintenance_margin: float,
    buffer: float = 1.2,
) -> bool:
    # default buffer keeps margin 20% above maintenance
    return float(current_margin) < float(maintenance_margin) * float(buffer)
