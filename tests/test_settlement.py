"""
Tests for the settlement client.

web3 is a MagicMock; signing uses eth_account for real with a well-known
development key so the submitted bytes are a valid signed transaction.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from fakes import BASE, QUOTE, StubVenue
from lb_arbitrage.coordinator import CycleStatus, ExecutionCoordinator
from lb_arbitrage.exceptions import SettlementFailed
from lb_arbitrage.settlement import SettlementClient, SettlementConfig
from lb_arbitrage.simulator import RoundTripSimulator
from lb_arbitrage.sizing import TradeSizer

# Hardhat / anvil account #0, never holds real funds
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
ARB_CONTRACT = "0x" + "9" * 40
TX_HASH = b"\x12" * 32
GWEI = 10**9


def _build_transaction(params):
    tx = {k: v for k, v in params.items() if k != "from"}
    tx.update({"to": ARB_CONTRACT, "value": 0, "data": "0x"})
    return tx


@pytest.fixture
def chain():
    arb = MagicMock(name="arbitrage_contract")
    arb.functions.executeTrade.return_value.build_transaction.side_effect = (
        _build_transaction
    )
    erc20 = MagicMock(name="base_token")
    erc20.functions.balanceOf.return_value.call.side_effect = [
        10**18,
        10**18 + 2 * 10**16,
    ]

    web3 = MagicMock(name="web3")
    web3.eth.contract.side_effect = [arb, erc20]
    web3.eth.gas_price = 25 * GWEI
    web3.eth.chain_id = 43114
    web3.eth.get_transaction_count.return_value = 7
    web3.eth.get_balance.return_value = 5 * 10**18
    web3.eth.send_raw_transaction.return_value = TX_HASH
    web3.eth.get_transaction_receipt.return_value = {
        "status": 1,
        "gasUsed": 200000,
        "effectiveGasPrice": 25 * GWEI,
        "blockNumber": 123,
    }
    web3.to_hex = Web3.to_hex
    return web3, arb, erc20


def make_client(web3, **overrides):
    params = dict(
        arbitrage_address=ARB_CONTRACT,
        private_key=DEV_KEY,
        is_deployed=True,
        receipt_timeout_sec=5,
    )
    params.update(overrides)
    return SettlementClient(web3, SettlementConfig(**params), BASE)


class TestExecuteTrade:
    @pytest.mark.asyncio
    async def test_success_reports_balance_changes(self, chain):
        web3, arb, _ = chain
        client = make_client(web3)
        assert client.account.address == DEV_ADDRESS

        result = await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)

        arb.functions.executeTrade.assert_called_once_with(
            True, BASE.address, QUOTE.address, 10**18
        )
        tx_params = arb.functions.executeTrade.return_value.build_transaction.call_args[0][0]
        assert tx_params["from"] == DEV_ADDRESS
        assert tx_params["nonce"] == 7
        assert tx_params["chainId"] == 43114
        assert tx_params["gas"] == 400_000

        web3.eth.send_raw_transaction.assert_called_once()
        assert result.success and not result.dry_run
        assert result.tx_hash == Web3.to_hex(TX_HASH)
        assert result.gas_used == 200000
        assert result.base_delta == Decimal("0.02")
        assert result.native_spent == Decimal("0.005")
        assert client.get_stats() == {"submitted": 1, "succeeded": 1}

    @pytest.mark.asyncio
    async def test_gas_price_capped(self, chain):
        web3, arb, _ = chain
        web3.eth.gas_price = 500 * GWEI
        client = make_client(web3, max_gas_price_gwei=100.0)

        await client.execute_trade(False, BASE.address, QUOTE.address, 10**17)

        tx_params = arb.functions.executeTrade.return_value.build_transaction.call_args[0][0]
        assert tx_params["gasPrice"] == 100 * GWEI

    @pytest.mark.asyncio
    async def test_revert_raises_with_hash(self, chain):
        web3, _, _ = chain
        web3.eth.get_transaction_receipt.return_value = {
            "status": 0,
            "gasUsed": 90000,
            "blockNumber": 124,
        }
        client = make_client(web3)

        with pytest.raises(SettlementFailed) as exc_info:
            await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)

        assert exc_info.value.tx_hash == Web3.to_hex(TX_HASH)
        assert exc_info.value.details["gas_used"] == 90000
        assert client.succeeded == 0

    @pytest.mark.asyncio
    async def test_send_error_raises(self, chain):
        web3, _, _ = chain
        web3.eth.send_raw_transaction.side_effect = Web3Exception("nonce too low")
        client = make_client(web3)

        with pytest.raises(SettlementFailed, match="nonce too low"):
            await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)

    @pytest.mark.asyncio
    async def test_receipt_timeout(self, chain):
        web3, _, _ = chain
        web3.eth.get_transaction_receipt.side_effect = TransactionNotFound("pending")
        client = make_client(web3, receipt_timeout_sec=0)

        with pytest.raises(SettlementFailed, match="not confirmed"):
            await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)

    @pytest.mark.asyncio
    async def test_not_live_never_submits(self):
        web3 = MagicMock(name="web3")
        client = make_client(web3, arbitrage_address=None, is_deployed=False)
        assert not client.is_live

        with pytest.raises(SettlementFailed):
            await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)
        web3.eth.send_raw_transaction.assert_not_called()


class TestConstruction:
    def test_deployed_requires_key(self, chain):
        web3, _, _ = chain
        with pytest.raises(SettlementFailed):
            make_client(web3, private_key=None)

    def test_deployed_requires_contract(self):
        web3 = MagicMock(name="web3")
        with pytest.raises(SettlementFailed):
            make_client(web3, arbitrage_address=None)

    def test_bad_key_propagates(self):
        with pytest.raises(Exception):
            make_client(MagicMock(name="web3"), private_key="0x1234")


class TestTransportFailures:
    """Errors outside web3's own exception types still surface as SettlementFailed."""

    @pytest.mark.asyncio
    async def test_connection_error_on_send(self, chain):
        web3, _, _ = chain
        web3.eth.send_raw_transaction.side_effect = ConnectionError("rpc down")
        client = make_client(web3)

        with pytest.raises(SettlementFailed, match="rpc down"):
            await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)

    @pytest.mark.asyncio
    async def test_balance_read_fails_before_submit(self, chain):
        web3, _, erc20 = chain
        erc20.functions.balanceOf.return_value.call.side_effect = ConnectionError("rpc down")
        client = make_client(web3)

        with pytest.raises(SettlementFailed):
            await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)
        web3.eth.send_raw_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_receipt_read_error_keeps_hash(self, chain):
        web3, _, _ = chain
        web3.eth.get_transaction_receipt.side_effect = ConnectionError("rpc down")
        client = make_client(web3)

        with pytest.raises(SettlementFailed) as exc_info:
            await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)
        assert exc_info.value.tx_hash == Web3.to_hex(TX_HASH)

    @pytest.mark.asyncio
    async def test_mined_trade_survives_balance_read_failure(self, chain):
        web3, _, erc20 = chain
        erc20.functions.balanceOf.return_value.call.side_effect = [
            10**18,
            ConnectionError("rpc down"),
        ]
        client = make_client(web3)

        result = await client.execute_trade(True, BASE.address, QUOTE.address, 10**18)

        assert result.success
        assert result.tx_hash == Web3.to_hex(TX_HASH)
        assert result.base_delta is None
        assert result.native_spent == Decimal("0.005")
        assert client.succeeded == 1

    @pytest.mark.asyncio
    async def test_coordinator_counts_mined_trade(self, chain):
        web3, _, erc20 = chain
        erc20.functions.balanceOf.return_value.call.side_effect = [
            10**18,
            ConnectionError("rpc down"),
        ]
        coordinator = ExecutionCoordinator(
            StubVenue("a", Decimal("101.50"), Decimal("60000")),
            StubVenue("b", Decimal("100.00"), Decimal("50000")),
            TradeSizer(),
            RoundTripSimulator(BASE, QUOTE),
            settlement=make_client(web3),
            reference_venue="b",
        )

        outcome = await coordinator.run_cycle()

        assert outcome.status is CycleStatus.EXECUTED
        assert outcome.plan is not None
        assert outcome.result.tx_hash == Web3.to_hex(TX_HASH)
        assert coordinator.executed == 1
