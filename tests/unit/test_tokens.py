"""
Unit tests for lb_arbitrage/tokens.py
"""

from unittest.mock import MagicMock

import pytest

from lb_arbitrage.exceptions import QuoteUnavailable
from lb_arbitrage.tokens import TokenRegistry

USDC = "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E"


def make_web3(symbol="USDC", decimals=6, error=None):
    erc20 = MagicMock(name="erc20")
    if error is not None:
        erc20.functions.symbol.return_value.call.side_effect = error
        erc20.functions.decimals.return_value.call.side_effect = error
    else:
        erc20.functions.symbol.return_value.call.return_value = symbol
        erc20.functions.decimals.return_value.call.return_value = decimals
    web3 = MagicMock(name="web3")
    web3.eth.contract.return_value = erc20
    return web3, erc20


class TestTokenRegistry:
    @pytest.mark.asyncio
    async def test_reads_metadata_once(self):
        web3, erc20 = make_web3()
        registry = TokenRegistry(web3)

        token = await registry.get(USDC.lower())
        again = await registry.get(USDC)

        assert token is again
        assert token.address == USDC
        assert token.symbol == "USDC" and token.decimals == 6
        assert erc20.functions.decimals.return_value.call.call_count == 1
        assert USDC.lower() in registry

    @pytest.mark.asyncio
    async def test_pinned_decimals_skip_chain_read(self):
        web3, erc20 = make_web3(symbol="WAVAX")
        registry = TokenRegistry(web3)

        token = await registry.get("0x" + "1" * 40, decimals=18)

        assert token.decimals == 18 and token.symbol == "WAVAX"
        erc20.functions.decimals.assert_not_called()

    @pytest.mark.asyncio
    async def test_fully_pinned_token(self):
        web3, erc20 = make_web3()
        token = await TokenRegistry(web3).get("0x" + "2" * 40, decimals=6, symbol="USDC")

        assert token.symbol == "USDC"
        erc20.functions.symbol.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreadable_token(self):
        web3, _ = make_web3(error=ValueError("execution reverted"))
        registry = TokenRegistry(web3)

        with pytest.raises(QuoteUnavailable, match="execution reverted"):
            await registry.get(USDC)
        assert USDC not in registry
