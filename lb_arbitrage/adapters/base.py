"""
Venue adapter interface.

Both venue shapes (constant-product pairs and Liquidity Book pairs) expose
the same three capabilities so the simulator and coordinator never branch
on venue type:

- fetch_quote(): normalized price (quote per base) and depth
- quote_exact_in(): output for a fixed input
- quote_exact_out(): input required for a fixed output
"""

import asyncio
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Callable, Optional

from ..exceptions import ArbitrageError
from ..types import SwapQuote, Token, VenueKind, VenueQuote
from ..utils import get_logger

logger = get_logger(__name__)

RATE_LIMIT_MARKERS = ("429", "too many requests", "-32005", "limit exceeded")


def is_rate_limit_error(error: Exception) -> bool:
    """Check if an RPC error looks like provider rate limiting."""
    error_msg = str(error).lower()
    return any(marker in error_msg for marker in RATE_LIMIT_MARKERS)


async def call_with_retry(fn: Callable[[], Any], max_retries: int = 3) -> Any:
    """
    Run a blocking web3 call in the default executor.

    Retries with exponential backoff (2s, 4s, 8s) on rate limit errors;
    any other error is raised immediately.

    Args:
        fn: Zero-argument callable performing the RPC call
        max_retries: Maximum number of attempts

    Returns:
        Whatever fn returns
    """
    loop = asyncio.get_running_loop()
    for attempt in range(max_retries):
        try:
            return await loop.run_in_executor(None, fn)
        except Exception as e:
            if is_rate_limit_error(e) and attempt < max_retries - 1:
                wait_time = 2 ** (attempt + 1)
                logger.debug(f"Rate limited, retrying in {wait_time}s: {e}")
                await asyncio.sleep(wait_time)
                continue
            raise


class VenueAdapter(ABC):
    """
    Abstract base class for a monitored venue.

    Amounts passed to and returned from the quoting methods are raw integer
    token units; prices and depths are human-unit Decimals.
    """

    kind: VenueKind

    def __init__(self, name: str, base: Token, quote: Token, fee: Decimal):
        """
        Args:
            name: Venue name used in logs (e.g., "pangolin")
            base: Token the round trip is denominated in
            quote: Token the spread is priced in
            fee: Per-trade fee as a fraction (e.g., 0.003)
        """
        self.name = name
        self.base = base
        self.quote = quote
        self.fee = fee

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    def _check_pair(self, token_in: Token, token_out: Token) -> None:
        pair = {self.base.address, self.quote.address}
        if {token_in.address, token_out.address} != pair:
            raise ArbitrageError(
                f"{self.name} does not trade {token_in.symbol}->{token_out.symbol}"
            )

    @abstractmethod
    async def fetch_quote(self) -> VenueQuote:
        """
        Read the venue's current price and depth.

        Raises:
            QuoteUnavailable: If the venue state cannot be read
        """

    @abstractmethod
    async def quote_exact_in(
        self, token_in: Token, token_out: Token, amount_in: int
    ) -> SwapQuote:
        """
        Quote the output of swapping exactly `amount_in`.

        Raises:
            SimulationFailed: If the venue reverts or cannot fill the input
        """

    @abstractmethod
    async def quote_exact_out(
        self, token_in: Token, token_out: Token, amount_out: int
    ) -> SwapQuote:
        """
        Quote the input needed to receive exactly `amount_out`.

        Raises:
            SimulationFailed: If the venue reverts or cannot fill the output
        """

    @property
    def swap_event(self) -> Optional[Any]:
        """web3 event object emitted on every trade, if the venue is on-chain."""
        return None
