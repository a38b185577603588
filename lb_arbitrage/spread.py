"""
Spread evaluation between the two venues.

Direction is decided here, once, from the sign of the spread. Everything
downstream receives the buy/sell venues as data and never re-derives them.
"""

from decimal import Decimal

from .types import Direction, SpreadDecision


def spread_pct(price_a: Decimal, price_b: Decimal) -> Decimal:
    """Signed percentage difference of venue A over venue B."""
    if price_a <= 0 or price_b <= 0:
        raise ValueError(f"Prices must be positive: a={price_a}, b={price_b}")
    return (price_a - price_b) / price_b * Decimal("100")


def evaluate(
    price_a: Decimal, price_b: Decimal, threshold_pct: Decimal
) -> SpreadDecision:
    """
    Classify the spread against the threshold.

    A positive spread at or above the threshold means B is cheaper: buy base
    on B and sell it on A. A negative spread at or below -threshold is the
    mirror case.

    Args:
        price_a: Venue A price (quote per base)
        price_b: Venue B price (quote per base)
        threshold_pct: Minimum spread in percent (e.g., Decimal("0.3"))

    Returns:
        SpreadDecision with the signed spread and the direction
    """
    spread = spread_pct(price_a, price_b)

    if spread >= threshold_pct:
        direction = Direction.BUY_B_SELL_A
    elif spread <= -threshold_pct:
        direction = Direction.BUY_A_SELL_B
    else:
        direction = Direction.NO_OPPORTUNITY

    return SpreadDecision(spread_pct=spread, direction=direction)
