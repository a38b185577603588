"""
Uniswap V2 style adapter for constant-product AMM pools.

Implements reserve fetching, price normalization and swap quoting using the
x*y=k formula with the fee embedded on the input side.
"""

import asyncio
from decimal import Decimal
from typing import Optional, Tuple

from web3 import Web3

from ..abi import UNISWAP_V2_PAIR_ABI, UNISWAP_V2_ROUTER_ABI
from ..exceptions import QuoteUnavailable, SimulationFailed
from ..types import SwapQuote, Token, VenueQuote
from ..utils import get_logger
from .base import VenueAdapter, call_with_retry

logger = get_logger(__name__)

BPS = 10_000


def reserve_price(
    reserve_quote: int, reserve_base: int, quote_decimals: int, base_decimals: int
) -> Decimal:
    """
    Price of one base token in quote tokens from raw reserves.

    The raw ratio is rescaled by 10^(base_decimals - quote_decimals) so that a
    6-decimal USDC reserve against an 18-decimal WAVAX reserve yields a human
    price (e.g., 25.31 USDC per WAVAX) rather than a number 1e12 too small.

    Args:
        reserve_quote: Quote token reserve (raw units)
        reserve_base: Base token reserve (raw units)
        quote_decimals: Quote token decimals
        base_decimals: Base token decimals

    Returns:
        Quote per base, human units

    Raises:
        ValueError: If either reserve is not positive
    """
    if reserve_quote <= 0 or reserve_base <= 0:
        raise ValueError(
            f"Reserves must be positive: quote={reserve_quote}, base={reserve_base}"
        )
    ratio = Decimal(reserve_quote) / Decimal(reserve_base)
    return ratio * (Decimal(10) ** (base_decimals - quote_decimals))


def get_amount_out(
    amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int = 30
) -> int:
    """
    Output amount for an exact-input V2 swap, integer math as on-chain.

    Formula (with fee embedded):
        amountInWithFee = amountIn * (10000 - feeBps)
        amountOut = amountInWithFee * reserveOut / (reserveIn * 10000 + amountInWithFee)

    Raises:
        ValueError: If inputs are invalid (negative, zero reserves, bad fee)
    """
    if amount_in < 0:
        raise ValueError(f"amount_in must be non-negative: {amount_in}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    if not 0 <= fee_bps < BPS:
        raise ValueError(f"Fee must be in [0, 10000) bps: {fee_bps}")

    amount_in_with_fee = amount_in * (BPS - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * BPS + amount_in_with_fee
    return numerator // denominator


def get_amount_in(
    amount_out: int, reserve_in: int, reserve_out: int, fee_bps: int = 30
) -> int:
    """
    Input amount required for an exact-output V2 swap.

    Rounds up by one unit like the router, so the returned input always buys
    at least `amount_out`.

    Raises:
        ValueError: If the output would drain the reserve or inputs are invalid
    """
    if amount_out < 0:
        raise ValueError(f"amount_out must be non-negative: {amount_out}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    if amount_out >= reserve_out:
        raise ValueError(
            f"Insufficient liquidity: amount_out={amount_out} >= reserve_out={reserve_out}"
        )
    if not 0 <= fee_bps < BPS:
        raise ValueError(f"Fee must be in [0, 10000) bps: {fee_bps}")
    if amount_out == 0:
        return 0

    numerator = reserve_in * amount_out * BPS
    denominator = (reserve_out - amount_out) * (BPS - fee_bps)
    return numerator // denominator + 1


class ConstantProductVenue(VenueAdapter):
    """
    Constant-product pair (Pangolin, Trader Joe V1, Uniswap V2 forks).

    Quotes through the router's getAmountsOut / getAmountsIn when a router is
    configured, otherwise computes the router formulas from fresh reserves.
    """

    kind = "v2"

    def __init__(
        self,
        web3: Web3,
        name: str,
        pair_address: str,
        base: Token,
        quote: Token,
        fee_bps: int = 30,
        router_address: Optional[str] = None,
        max_retries: int = 3,
    ):
        super().__init__(name, base, quote, Decimal(fee_bps) / Decimal(BPS))
        if not Web3.is_checksum_address(pair_address):
            raise ValueError(f"Invalid pair address: {pair_address}")

        self.web3 = web3
        self.fee_bps = fee_bps
        self.max_retries = max_retries
        self.pair = web3.eth.contract(address=pair_address, abi=UNISWAP_V2_PAIR_ABI)
        self.router = (
            web3.eth.contract(
                address=Web3.to_checksum_address(router_address),
                abi=UNISWAP_V2_ROUTER_ABI,
            )
            if router_address
            else None
        )
        self._token0: Optional[str] = None

    @property
    def swap_event(self):
        return self.pair.events.Swap

    async def _quote_is_token0(self) -> bool:
        if self._token0 is None:
            token0 = await call_with_retry(
                self.pair.functions.token0().call, self.max_retries
            )
            self._token0 = Web3.to_checksum_address(token0)
        return self._token0 == self.quote.address

    async def fetch_reserves(self) -> Tuple[int, int]:
        """
        Read the pair reserves oriented as (reserve_quote, reserve_base).

        Raises:
            QuoteUnavailable: If the RPC reads fail
        """
        try:
            quote_is_token0 = await self._quote_is_token0()
            reserves = await call_with_retry(
                self.pair.functions.getReserves().call, self.max_retries
            )
        except Exception as e:
            raise QuoteUnavailable(
                f"Failed to fetch reserves for {self.name}: {e}", venue=self.name
            ) from e

        r0, r1 = int(reserves[0]), int(reserves[1])
        return (r0, r1) if quote_is_token0 else (r1, r0)

    async def fetch_quote(self) -> VenueQuote:
        reserve_quote, reserve_base = await self.fetch_reserves()
        try:
            price = reserve_price(
                reserve_quote, reserve_base, self.quote.decimals, self.base.decimals
            )
        except ValueError as e:
            raise QuoteUnavailable(str(e), venue=self.name) from e

        return VenueQuote(
            venue=self.name,
            price=price,
            depth_quote=self.quote.from_raw(reserve_quote),
        )

    async def _reserves_in_out(self, token_in: Token) -> Tuple[int, int]:
        reserve_quote, reserve_base = await self.fetch_reserves()
        if token_in.address == self.quote.address:
            return reserve_quote, reserve_base
        return reserve_base, reserve_quote

    async def quote_exact_in(
        self, token_in: Token, token_out: Token, amount_in: int
    ) -> SwapQuote:
        self._check_pair(token_in, token_out)
        fee = amount_in * self.fee_bps // BPS
        try:
            if self.router is not None:
                path = [token_in.address, token_out.address]
                amounts = await call_with_retry(
                    self.router.functions.getAmountsOut(amount_in, path).call,
                    self.max_retries,
                )
                amount_out = int(amounts[-1])
            else:
                reserve_in, reserve_out = await self._reserves_in_out(token_in)
                amount_out = get_amount_out(
                    amount_in, reserve_in, reserve_out, self.fee_bps
                )
        except Exception as e:
            raise SimulationFailed(
                f"{self.name} exact-in quote failed: {e}",
                venue=self.name,
                amount=amount_in,
            ) from e

        return SwapQuote(amount_in=amount_in, amount_out=amount_out, fee=fee)

    async def quote_exact_out(
        self, token_in: Token, token_out: Token, amount_out: int
    ) -> SwapQuote:
        self._check_pair(token_in, token_out)
        try:
            if self.router is not None:
                path = [token_in.address, token_out.address]
                amounts = await call_with_retry(
                    self.router.functions.getAmountsIn(amount_out, path).call,
                    self.max_retries,
                )
                amount_in = int(amounts[0])
            else:
                reserve_in, reserve_out = await self._reserves_in_out(token_in)
                amount_in = get_amount_in(
                    amount_out, reserve_in, reserve_out, self.fee_bps
                )
        except Exception as e:
            raise SimulationFailed(
                f"{self.name} exact-out quote failed: {e}",
                venue=self.name,
                amount=amount_out,
            ) from e

        fee = amount_in * self.fee_bps // BPS
        return SwapQuote(amount_in=amount_in, amount_out=amount_out, fee=fee)


async def fetch_pool_async(web3: Web3, pair_addr: str, max_retries: int = 3):
    """
    Fetch token addresses and raw reserves from a V2 pair concurrently.

    Returns:
        Tuple of (token0_addr, token1_addr, reserve0, reserve1)
    """
    pair = web3.eth.contract(
        address=Web3.to_checksum_address(pair_addr), abi=UNISWAP_V2_PAIR_ABI
    )
    token0, token1, reserves = await asyncio.gather(
        call_with_retry(pair.functions.token0().call, max_retries),
        call_with_retry(pair.functions.token1().call, max_retries),
        call_with_retry(pair.functions.getReserves().call, max_retries),
    )
    return (
        Web3.to_checksum_address(token0),
        Web3.to_checksum_address(token1),
        int(reserves[0]),
        int(reserves[1]),
    )
