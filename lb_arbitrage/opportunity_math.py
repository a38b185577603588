"""
Profitability math for simulated round trips.

All amounts are base-token Decimals. This module is the only place where
net profit is computed; the coordinator and the trade-size analysis both
call decide().
"""

from decimal import Decimal, getcontext

from .types import ProfitDecision
from .utils import calculate_percentage

# Set high precision for all decimal operations
getcontext().prec = 50

# Two settlement transactions on Avalanche, in base tokens
DEFAULT_FIXED_COST = Decimal("0.006")


def net_profit(amount_in: Decimal, amount_out: Decimal, fixed_cost: Decimal) -> Decimal:
    """netProfit = amountOut - amountIn - fixedCost"""
    return amount_out - amount_in - fixed_cost


def decide(
    amount_in: Decimal,
    amount_out: Decimal,
    fixed_cost: Decimal = DEFAULT_FIXED_COST,
) -> ProfitDecision:
    """
    Gate a simulated round trip.

    Break-even is not profitable: the trade must clear the fixed cost by a
    strictly positive margin.

    Example:
        >>> decide(Decimal("1"), Decimal("1.006"), Decimal("0.006")).profitable
        False
    """
    net = net_profit(amount_in, amount_out, fixed_cost)
    return ProfitDecision(profitable=net > 0, net_profit=net)


def profit_pct(amount_in: Decimal, net: Decimal) -> Decimal:
    """Net profit as a percent of the capital put in."""
    if amount_in <= 0:
        return Decimal("0")
    return net / amount_in * Decimal("100")


def pool_impact_pct(notional_quote: Decimal, depth_quote: Decimal) -> Decimal:
    """Share of a pool's quote depth a notional represents, in percent."""
    if depth_quote <= 0:
        return Decimal("0")
    return calculate_percentage(notional_quote, depth_quote)
