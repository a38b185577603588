"""
Trader Joe Liquidity Book adapter for discretized-bin pools.

A Liquidity Book pair holds liquidity in bins of constant price. The active
bin id identifies the current price through

    price(id) = (1 + binStep / 10_000) ** (id - 2**23)

which the pair returns as an unsigned 128.128 fixed point number denominated
in raw tokenY per raw tokenX. Bins below the active id hold only tokenY, bins
above it hold only tokenX, the active bin may hold both.

Swaps walk bins away from the active id until filled, so quotes are not a
closed-form expression. On-chain quotes go through the LB router; the local
walk below reproduces the same traversal over a snapshot of bins and is used
when no router is configured.
"""

import asyncio
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import Dict, List, Mapping, Optional

from web3 import Web3

from ..abi import LB_PAIR_ABI, LB_ROUTER_ABI
from ..exceptions import QuoteUnavailable, SimulationFailed
from ..types import SwapQuote, Token, VenueQuote
from ..utils import get_logger
from .base import VenueAdapter, call_with_retry

logger = get_logger(__name__)

SCALE_OFFSET = 128
Q128 = Decimal(1 << SCALE_OFFSET)
REAL_ID_SHIFT = 1 << 23
BASIS_POINT_MAX = 10_000


def price_from_bin_id(bin_id: int, bin_step: int) -> Decimal:
    """
    Raw price (tokenY units per tokenX unit) of a bin.

    Args:
        bin_id: Bin identifier (2**23 is price 1)
        bin_step: Bin step in basis points

    Returns:
        Raw price as Decimal
    """
    base = Decimal(1) + Decimal(bin_step) / Decimal(BASIS_POINT_MAX)
    return base ** (bin_id - REAL_ID_SHIFT)


def q128_to_decimal(price_x128: int) -> Decimal:
    """Convert a 128.128 fixed point price to a Decimal ratio."""
    return Decimal(price_x128) / Q128


def decimal_to_q128(price: Decimal) -> int:
    """Convert a Decimal ratio to 128.128 fixed point (floored)."""
    return int((price * Q128).to_integral_value(rounding=ROUND_FLOOR))


def human_price(
    raw_price: Decimal, base: Token, quote: Token, base_is_x: bool
) -> Decimal:
    """
    Rescale a raw Y-per-X price to quote tokens per base token, human units.

    Args:
        raw_price: tokenY raw units per tokenX raw unit
        base: Base token
        quote: Quote token
        base_is_x: True when the pair's tokenX is the base token

    Returns:
        Quote per base in the same unit a constant-product venue reports
    """
    if raw_price <= 0:
        raise ValueError(f"Bin price must be positive: {raw_price}")
    if base_is_x:
        # Y per X == quote per base
        return raw_price * (Decimal(10) ** (base.decimals - quote.decimals))
    # Y per X == base per quote
    per_quote = raw_price * (Decimal(10) ** (quote.decimals - base.decimals))
    return Decimal(1) / per_quote


@dataclass(frozen=True)
class Bin:
    """Reserves of one Liquidity Book bin (raw units)."""

    bin_id: int
    reserve_x: int
    reserve_y: int


def _ceil(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _fee_on_top(amount: int, fee_bps: int) -> int:
    """Fee charged on top of a net input amount."""
    if fee_bps == 0:
        return 0
    return _ceil(Decimal(amount) * fee_bps / (BASIS_POINT_MAX - fee_bps))


def _fee_included(amount_with_fee: int, fee_bps: int) -> int:
    """Fee contained in a gross input amount."""
    return _ceil(Decimal(amount_with_fee) * fee_bps / BASIS_POINT_MAX)


def _walk_order(bins: Mapping[int, Bin], active_id: int, swap_for_y: bool) -> List[Bin]:
    if swap_for_y:
        # X in, Y out: consume tokenY from the active bin downwards
        ids = sorted((i for i in bins if i <= active_id), reverse=True)
    else:
        ids = sorted(i for i in bins if i >= active_id)
    return [bins[i] for i in ids]


def walk_bins_exact_in(
    bins: Mapping[int, Bin],
    active_id: int,
    bin_step: int,
    amount_in: int,
    swap_for_y: bool,
    fee_bps: int,
) -> SwapQuote:
    """
    Simulate an exact-input swap across bins.

    Args:
        bins: Snapshot of bins keyed by id
        active_id: Active bin id
        bin_step: Pair bin step (bps)
        amount_in: Input amount including fees (raw)
        swap_for_y: True for X -> Y, False for Y -> X
        fee_bps: Swap fee in basis points

    Returns:
        SwapQuote with `leftover` = unspent input when liquidity runs out
    """
    remaining = amount_in
    amount_out = 0
    fee_total = 0

    for b in _walk_order(bins, active_id, swap_for_y):
        if remaining <= 0:
            break
        price = price_from_bin_id(b.bin_id, bin_step)
        reserve_out = b.reserve_y if swap_for_y else b.reserve_x
        if reserve_out <= 0:
            continue

        # Net input that would empty this bin's output side
        if swap_for_y:
            max_in = _ceil(Decimal(reserve_out) / price)
        else:
            max_in = _ceil(Decimal(reserve_out) * price)
        max_fee = _fee_on_top(max_in, fee_bps)

        if remaining >= max_in + max_fee:
            amount_out += reserve_out
            remaining -= max_in + max_fee
            fee_total += max_fee
            continue

        fee = _fee_included(remaining, fee_bps)
        net_in = remaining - fee
        if swap_for_y:
            out = _floor(Decimal(net_in) * price)
        else:
            out = _floor(Decimal(net_in) / price)
        amount_out += min(out, reserve_out)
        fee_total += fee
        remaining = 0

    return SwapQuote(
        amount_in=amount_in - remaining,
        amount_out=amount_out,
        leftover=remaining,
        fee=fee_total,
    )


def walk_bins_exact_out(
    bins: Mapping[int, Bin],
    active_id: int,
    bin_step: int,
    amount_out: int,
    swap_for_y: bool,
    fee_bps: int,
) -> SwapQuote:
    """
    Simulate an exact-output swap across bins.

    Returns:
        SwapQuote with `leftover` = output that could not be sourced
    """
    remaining = amount_out
    amount_in = 0
    fee_total = 0

    for b in _walk_order(bins, active_id, swap_for_y):
        if remaining <= 0:
            break
        reserve_out = b.reserve_y if swap_for_y else b.reserve_x
        if reserve_out <= 0:
            continue

        price = price_from_bin_id(b.bin_id, bin_step)
        take = min(remaining, reserve_out)
        if swap_for_y:
            net_in = _ceil(Decimal(take) / price)
        else:
            net_in = _ceil(Decimal(take) * price)
        fee = _fee_on_top(net_in, fee_bps)

        amount_in += net_in + fee
        fee_total += fee
        remaining -= take

    return SwapQuote(
        amount_in=amount_in,
        amount_out=amount_out - remaining,
        leftover=remaining,
        fee=fee_total,
    )


class LiquidityBookVenue(VenueAdapter):
    """
    Liquidity Book pair (Trader Joe V2.x).

    Price comes from the active bin only. Bin reserves around the active bin
    feed the depth figure and the local bin walk, never the price.
    """

    kind = "lb"

    def __init__(
        self,
        web3: Web3,
        name: str,
        pair_address: str,
        base: Token,
        quote: Token,
        fee_bps: int = 20,
        router_address: Optional[str] = None,
        depth_bins: int = 5,
        max_retries: int = 3,
    ):
        super().__init__(name, base, quote, Decimal(fee_bps) / Decimal(BASIS_POINT_MAX))
        if not Web3.is_checksum_address(pair_address):
            raise ValueError(f"Invalid pair address: {pair_address}")

        self.web3 = web3
        self.pair_address = pair_address
        self.fee_bps = fee_bps
        self.depth_bins = depth_bins
        self.max_retries = max_retries
        self.pair = web3.eth.contract(address=pair_address, abi=LB_PAIR_ABI)
        self.router = (
            web3.eth.contract(
                address=Web3.to_checksum_address(router_address), abi=LB_ROUTER_ABI
            )
            if router_address
            else None
        )

        self._token_x: Optional[str] = None
        self._bin_step: Optional[int] = None
        self._active_id: Optional[int] = None
        self._bins: Dict[int, Bin] = {}

    @property
    def swap_event(self):
        return self.pair.events.Swap

    async def _load_metadata(self) -> None:
        if self._token_x is not None and self._bin_step is not None:
            return
        token_x, bin_step = await asyncio.gather(
            call_with_retry(self.pair.functions.getTokenX().call, self.max_retries),
            call_with_retry(self.pair.functions.getBinStep().call, self.max_retries),
        )
        self._token_x = Web3.to_checksum_address(token_x)
        self._bin_step = int(bin_step)

    @property
    def base_is_x(self) -> bool:
        return self._token_x == self.base.address

    async def fetch_bins(self, active_id: int) -> Dict[int, Bin]:
        """Read reserves of the bins within depth_bins of the active bin."""
        ids = range(active_id - self.depth_bins, active_id + self.depth_bins + 1)
        reserves = await asyncio.gather(
            *[
                call_with_retry(self.pair.functions.getBin(i).call, self.max_retries)
                for i in ids
            ]
        )
        return {
            i: Bin(bin_id=i, reserve_x=int(rx), reserve_y=int(ry))
            for i, (rx, ry) in zip(ids, reserves)
        }

    def depth_in_quote(self, bins: Mapping[int, Bin], price: Decimal) -> Decimal:
        """Quote-token value of a bin snapshot, base reserves valued at `price`."""
        total_x = sum(b.reserve_x for b in bins.values())
        total_y = sum(b.reserve_y for b in bins.values())
        if self.base_is_x:
            base_raw, quote_raw = total_x, total_y
        else:
            base_raw, quote_raw = total_y, total_x
        return self.quote.from_raw(quote_raw) + self.base.from_raw(base_raw) * price

    async def fetch_quote(self) -> VenueQuote:
        try:
            await self._load_metadata()
            active_id = int(
                await call_with_retry(
                    self.pair.functions.getActiveId().call, self.max_retries
                )
            )
            price_x128, bins = await asyncio.gather(
                call_with_retry(
                    self.pair.functions.getPriceFromId(active_id).call,
                    self.max_retries,
                ),
                self.fetch_bins(active_id),
            )
        except Exception as e:
            raise QuoteUnavailable(
                f"Failed to read active bin for {self.name}: {e}", venue=self.name
            ) from e

        try:
            price = human_price(
                q128_to_decimal(int(price_x128)), self.base, self.quote, self.base_is_x
            )
        except ValueError as e:
            raise QuoteUnavailable(str(e), venue=self.name) from e

        self._active_id = active_id
        self._bins = bins
        logger.debug(
            f"{self.name}: active_id={active_id} bin_step={self._bin_step} price={price}"
        )
        return VenueQuote(
            venue=self.name,
            price=price,
            depth_quote=self.depth_in_quote(bins, price),
        )

    def _swap_for_y(self, token_in: Token) -> bool:
        return token_in.address == self._token_x

    async def _ensure_snapshot(self) -> None:
        if self._active_id is None or not self._bins:
            await self.fetch_quote()

    async def quote_exact_in(
        self, token_in: Token, token_out: Token, amount_in: int
    ) -> SwapQuote:
        self._check_pair(token_in, token_out)
        try:
            await self._load_metadata()
            swap_for_y = self._swap_for_y(token_in)
            if self.router is not None:
                amount_in_left, amount_out, fee = await call_with_retry(
                    self.router.functions.getSwapOut(
                        self.pair_address, amount_in, swap_for_y
                    ).call,
                    self.max_retries,
                )
                quote = SwapQuote(
                    amount_in=amount_in - int(amount_in_left),
                    amount_out=int(amount_out),
                    leftover=int(amount_in_left),
                    fee=int(fee),
                )
            else:
                await self._ensure_snapshot()
                quote = walk_bins_exact_in(
                    self._bins,
                    self._active_id,
                    self._bin_step,
                    amount_in,
                    swap_for_y,
                    self.fee_bps,
                )
        except Exception as e:
            raise SimulationFailed(
                f"{self.name} exact-in quote failed: {e}",
                venue=self.name,
                amount=amount_in,
            ) from e

        if quote.leftover > 0:
            raise SimulationFailed(
                f"{self.name} cannot fill {amount_in} {token_in.symbol} "
                f"(leftover {quote.leftover})",
                venue=self.name,
                amount=amount_in,
            )
        return quote

    async def quote_exact_out(
        self, token_in: Token, token_out: Token, amount_out: int
    ) -> SwapQuote:
        self._check_pair(token_in, token_out)
        try:
            await self._load_metadata()
            swap_for_y = self._swap_for_y(token_in)
            if self.router is not None:
                amount_in, amount_out_left, fee = await call_with_retry(
                    self.router.functions.getSwapIn(
                        self.pair_address, amount_out, swap_for_y
                    ).call,
                    self.max_retries,
                )
                quote = SwapQuote(
                    amount_in=int(amount_in),
                    amount_out=amount_out - int(amount_out_left),
                    leftover=int(amount_out_left),
                    fee=int(fee),
                )
            else:
                await self._ensure_snapshot()
                quote = walk_bins_exact_out(
                    self._bins,
                    self._active_id,
                    self._bin_step,
                    amount_out,
                    swap_for_y,
                    self.fee_bps,
                )
        except Exception as e:
            raise SimulationFailed(
                f"{self.name} exact-out quote failed: {e}",
                venue=self.name,
                amount=amount_out,
            ) from e

        if quote.leftover > 0:
            raise SimulationFailed(
                f"{self.name} cannot source {amount_out} {token_out.symbol} "
                f"(leftover {quote.leftover})",
                venue=self.name,
                amount=amount_out,
            )
        return quote
