"""
Liquidity Book / constant-product spread arbitrage engine.

Watches a Trader Joe style Liquidity Book pair and a Uniswap V2 style pair
trading the same two tokens, detects price discrepancies, simulates the
two-leg round trip and hands profitable plans to an on-chain settlement
contract.
"""

from lb_arbitrage.version import __version__

PROJECT_NAME = "lb-arbitrage"

__all__ = ["PROJECT_NAME", "__version__"]
