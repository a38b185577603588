"""
Core data types for the two-venue spread arbitrage engine.
"""

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import TYPE_CHECKING, Literal, Optional

if TYPE_CHECKING:
    from .adapters.base import VenueAdapter

VenueKind = Literal["v2", "lb"]


@dataclass(frozen=True)
class Token:
    """
    ERC-20 token metadata. Immutable once fetched.

    Attributes:
        address: Checksum address of the token
        decimals: Native precision of the token
        symbol: Display symbol (e.g., "WAVAX")
    """

    address: str
    decimals: int
    symbol: str

    @property
    def scale(self) -> Decimal:
        return Decimal(10) ** self.decimals

    def to_raw(self, amount: Decimal) -> int:
        """Convert a human amount to integer token units (floored)."""
        return int((amount * self.scale).to_integral_value(rounding=ROUND_DOWN))

    def from_raw(self, amount: int) -> Decimal:
        """Convert integer token units to a human amount."""
        return Decimal(amount) / self.scale


@dataclass(frozen=True)
class VenueQuote:
    """
    Normalized snapshot of one venue.

    Attributes:
        venue: Venue name (e.g., "pangolin")
        price: Quote tokens per one base token, in human units
        depth_quote: Liquidity depth expressed in quote-token human units
        block_number: Block the snapshot was read at, if known
    """

    venue: str
    price: Decimal
    depth_quote: Decimal
    block_number: Optional[int] = None


@dataclass(frozen=True)
class SwapQuote:
    """
    Result of a venue quoting call, in raw token units.

    `leftover` is the part of the request the venue could not fill
    (unfilled input for exact-in, unfilled output for exact-out).
    """

    amount_in: int
    amount_out: int
    leftover: int = 0
    fee: int = 0


class Direction(str, Enum):
    """Trade direction. "Buy" and "sell" refer to the base token."""

    BUY_A_SELL_B = "BUY_A_SELL_B"
    BUY_B_SELL_A = "BUY_B_SELL_A"
    NO_OPPORTUNITY = "NO_OPPORTUNITY"


@dataclass(frozen=True)
class SpreadDecision:
    """
    Signed spread between venue A and venue B plus the derived direction.

    Attributes:
        spread_pct: (priceA - priceB) / priceB * 100
        direction: Direction derived from the sign of spread_pct
    """

    spread_pct: Decimal
    direction: Direction

    @property
    def is_opportunity(self) -> bool:
        return self.direction is not Direction.NO_OPPORTUNITY


@dataclass(frozen=True)
class RoundTripResult:
    """
    Simulated round trip, denominated in the base token.

    Attributes:
        notional_quote: Quote-token amount moved between the two legs
        amount_in: Base tokens spent on the first leg (human units)
        amount_out: Base tokens received from the second leg (human units)
        amount_in_raw: amount_in in base-token integer units (settlement input)
        amount_out_raw: amount_out in base-token integer units
        fee_in_raw: Fee charged on leg 1 (base-token units)
        fee_out_raw: Fee charged on leg 2 (quote-token units)
    """

    notional_quote: Decimal
    amount_in: Decimal
    amount_out: Decimal
    amount_in_raw: int
    amount_out_raw: int
    fee_in_raw: int = 0
    fee_out_raw: int = 0

    @property
    def gross_profit(self) -> Decimal:
        return self.amount_out - self.amount_in


@dataclass(frozen=True)
class ProfitDecision:
    """Output of the profitability gate."""

    profitable: bool
    net_profit: Decimal


@dataclass
class TradePlan:
    """
    Ephemeral plan produced by sizing + simulation, consumed by execution.

    Attributes:
        direction: Direction the plan was built for
        buy_venue: Venue where base is bought (the cheaper one)
        sell_venue: Venue where base is sold (the dearer one, first leg)
        notional_quote: Sized quote-token notional
        simulation: Simulated round trip
        decision: Profitability gate verdict
    """

    direction: Direction
    buy_venue: "VenueAdapter"
    sell_venue: "VenueAdapter"
    notional_quote: Decimal
    simulation: RoundTripResult
    decision: ProfitDecision

    @property
    def amount_in_raw(self) -> int:
        return self.simulation.amount_in_raw

    @property
    def expected_output(self) -> Decimal:
        return self.simulation.amount_out

    @property
    def net_profit(self) -> Decimal:
        return self.decision.net_profit


@dataclass(frozen=True)
class VenueSignal:
    """A "swap occurred" notification from one of the monitored venues."""

    venue: str
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None


@dataclass
class ExecutionResult:
    """
    Result of a settlement attempt.

    Attributes:
        success: Whether the transaction was mined successfully (or dry-run)
        dry_run: True when no transaction was sent
        tx_hash: Transaction hash (if submitted)
        gas_used: Gas consumed
        base_delta: Base-token balance change of the trading account (human)
        native_spent: Native token spent on gas (human)
        error: Error message (if failed)
    """

    success: bool
    dry_run: bool = False
    tx_hash: Optional[str] = None
    gas_used: Optional[int] = None
    base_delta: Optional[Decimal] = None
    native_spent: Optional[Decimal] = None
    error: Optional[str] = None
