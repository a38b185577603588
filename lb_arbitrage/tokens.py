"""
ERC-20 token metadata registry.
"""

import asyncio
from typing import Dict, Optional

from web3 import Web3

from .abi import ERC20_ABI
from .adapters.base import call_with_retry
from .exceptions import QuoteUnavailable
from .types import Token
from .utils import get_logger

logger = get_logger(__name__)


class TokenRegistry:
    """
    Fetches symbol and decimals once per address and caches them for the
    lifetime of the process.

    Decimals may be pinned from config, in which case the decimals() call
    is skipped for that token.
    """

    def __init__(self, web3: Web3, max_retries: int = 3):
        self.web3 = web3
        self.max_retries = max_retries
        self._cache: Dict[str, Token] = {}

    def __contains__(self, address: str) -> bool:
        return Web3.to_checksum_address(address) in self._cache

    async def get(
        self,
        address: str,
        decimals: Optional[int] = None,
        symbol: Optional[str] = None,
    ) -> Token:
        """
        Resolve a token, reading missing metadata from chain.

        Raises:
            QuoteUnavailable: If the token contract cannot be read
        """
        address = Web3.to_checksum_address(address)
        if address in self._cache:
            return self._cache[address]

        contract = self.web3.eth.contract(address=address, abi=ERC20_ABI)
        try:
            if symbol is None and decimals is None:
                symbol, decimals = await asyncio.gather(
                    call_with_retry(contract.functions.symbol().call, self.max_retries),
                    call_with_retry(
                        contract.functions.decimals().call, self.max_retries
                    ),
                )
            elif symbol is None:
                symbol = await call_with_retry(
                    contract.functions.symbol().call, self.max_retries
                )
            elif decimals is None:
                decimals = await call_with_retry(
                    contract.functions.decimals().call, self.max_retries
                )
        except Exception as e:
            raise QuoteUnavailable(f"Failed to read token {address}: {e}") from e

        token = Token(address=address, decimals=int(decimals), symbol=str(symbol))
        self._cache[address] = token
        logger.info(f"Token {token.symbol}: {address} ({token.decimals} decimals)")
        return token
