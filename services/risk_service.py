"""Position sizing and risk:reward arithmetic."""

import math


def position_size(balance: float, risk_pct: float, entry: float, stop: float) -> float:
    """
    Units to buy so that hitting the stop loses `risk_pct` % of the balance.

    Returns nan when entry equals stop; the trade cannot be sized.
    """
    price_risk = abs(entry - stop)
    if price_risk == 0:
        return math.nan
    risk_amount = balance * risk_pct / 100
    return risk_amount / price_risk


def risk_amount(balance: float, risk_pct: float) -> float:
    return balance * risk_pct / 100


def risk_reward(entry: float, stop: float, target: float) -> float:
    """Reward over risk. Returns nan when entry equals stop."""
    risk = abs(entry - stop)
    if risk == 0:
        return math.nan
    return abs(target - entry) / risk


def is_sizable(value: float) -> bool:
    return math.isfinite(value) and value > 0


def format_quantity(quantity: float, decimals: int = 8) -> str:
    return f"{quantity:.{decimals}f}"
