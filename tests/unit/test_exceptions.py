"""Tests for the exceptions module."""

import pytest

from lb_arbitrage.exceptions import (
    ArbitrageError,
    ConfigError,
    QuoteUnavailable,
    SettlementFailed,
    SimulationFailed,
)


def test_base_exception():
    """Test the base exception class."""
    error = ArbitrageError("Test error")
    assert str(error) == "Test error"
    assert error.details == {}

    error_with_details = ArbitrageError("Test error", {"key": "value"})
    assert error_with_details.details == {"key": "value"}


def test_config_error():
    error = ConfigError("Missing field", {"field": "rpc_url"})
    assert str(error) == "Missing field"
    assert error.details["field"] == "rpc_url"
    assert isinstance(error, ArbitrageError)


def test_quote_unavailable():
    error = QuoteUnavailable("RPC down", venue="pangolin")
    assert error.venue == "pangolin"
    assert isinstance(error, ArbitrageError)


def test_simulation_failed():
    error = SimulationFailed(
        "Leftover 5", venue="traderjoe_lb", direction="BUY_A_SELL_B", amount=100
    )
    assert error.venue == "traderjoe_lb"
    assert error.direction == "BUY_A_SELL_B"
    assert error.amount == 100
    assert isinstance(error, ArbitrageError)


def test_settlement_failed():
    error = SettlementFailed("Reverted", tx_hash="0xabc", details={"gas_used": 21000})
    assert error.tx_hash == "0xabc"
    assert error.details["gas_used"] == 21000


def test_exception_hierarchy():
    """Every engine error is catchable as ArbitrageError."""
    for cls in (ConfigError, QuoteUnavailable, SimulationFailed, SettlementFailed):
        with pytest.raises(ArbitrageError):
            raise cls("boom")
