"""
Round-trip simulation against two venue adapters.

Capital is held in the base token. For a quote-token notional N:

1. On the sell venue (base is dearer there) ask how much base must be paid
   to receive exactly N quote tokens. That is amountIn.
2. On the buy venue (base is cheaper there) ask how much base N quote
   tokens buy. That is amountOut.

Both amounts are base-token Decimals, so amountOut - amountIn is the gross
result of the round trip net of both venues' fees and price impact.
"""

from decimal import Decimal
from typing import Optional

from .adapters.base import VenueAdapter
from .exceptions import ArbitrageError, SimulationFailed
from .types import Direction, RoundTripResult, Token
from .utils import get_logger

logger = get_logger(__name__)


class RoundTripSimulator:
    """Runs the two quoting legs of a round trip, written once for any venue pair."""

    def __init__(self, base: Token, quote: Token):
        self.base = base
        self.quote = quote

    async def simulate(
        self,
        notional_quote: Decimal,
        buy_venue: VenueAdapter,
        sell_venue: VenueAdapter,
        direction: Optional[Direction] = None,
    ) -> RoundTripResult:
        """
        Simulate a round trip of `notional_quote` quote tokens.

        Args:
            notional_quote: Quote-token amount moved between the legs
            buy_venue: Venue where base is cheaper (second leg)
            sell_venue: Venue where base is dearer (first leg)
            direction: Direction tag, only used for error context

        Returns:
            RoundTripResult in base-token units

        Raises:
            SimulationFailed: If either leg cannot be quoted
        """
        if notional_quote < 0:
            raise ValueError(f"Notional must be non-negative: {notional_quote}")

        tag = direction.value if direction is not None else None
        notional_raw = self.quote.to_raw(notional_quote)
        if notional_raw == 0:
            return RoundTripResult(
                notional_quote=notional_quote,
                amount_in=Decimal("0"),
                amount_out=Decimal("0"),
                amount_in_raw=0,
                amount_out_raw=0,
            )

        try:
            leg1 = await sell_venue.quote_exact_out(self.base, self.quote, notional_raw)
        except SimulationFailed as e:
            e.direction = tag
            raise
        except ArbitrageError as e:
            raise SimulationFailed(
                f"Leg 1 on {sell_venue.name} failed: {e}",
                venue=sell_venue.name,
                direction=tag,
                amount=notional_raw,
            ) from e

        # The quote actually obtained in leg 1 funds leg 2
        try:
            leg2 = await buy_venue.quote_exact_in(self.quote, self.base, leg1.amount_out)
        except SimulationFailed as e:
            e.direction = tag
            raise
        except ArbitrageError as e:
            raise SimulationFailed(
                f"Leg 2 on {buy_venue.name} failed: {e}",
                venue=buy_venue.name,
                direction=tag,
                amount=leg1.amount_out,
            ) from e

        result = RoundTripResult(
            notional_quote=notional_quote,
            amount_in=self.base.from_raw(leg1.amount_in),
            amount_out=self.base.from_raw(leg2.amount_out),
            amount_in_raw=leg1.amount_in,
            amount_out_raw=leg2.amount_out,
            fee_in_raw=leg1.fee,
            fee_out_raw=leg2.fee,
        )
        logger.debug(
            f"Simulated {notional_quote} {self.quote.symbol}: "
            f"{sell_venue.name} in={result.amount_in} {self.base.symbol} -> "
            f"{buy_venue.name} out={result.amount_out} {self.base.symbol}"
        )
        return result
