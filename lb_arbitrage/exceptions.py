"""
Exception hierarchy for the arbitrage engine.

None of these is fatal to the coordinator loop: every one of them ends the
current cycle and returns the coordinator to idle.
"""

from typing import Any, Dict, Optional


class ArbitrageError(Exception):
    """Base exception for all arbitrage engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigError(ArbitrageError):
    """Raised when config is invalid or missing required fields."""

    pass


class QuoteUnavailable(ArbitrageError):
    """
    Raised when a venue's price or depth cannot be read.

    Callers treat this as "no opportunity this cycle", never as a zero price.
    """

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.venue = venue


class SimulationFailed(ArbitrageError):
    """
    Raised when a quoting call reverts or the venue cannot fill the size.

    The opportunity is discarded for the cycle; it is never scored as zero profit.
    """

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        direction: Optional[str] = None,
        amount: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.venue = venue
        self.direction = direction
        self.amount = amount


class SettlementFailed(ArbitrageError):
    """Raised when the settlement transaction reverts or cannot be sent."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash
