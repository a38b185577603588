"""
Settlement through the deployed arbitrage contract.

The contract executes both legs atomically:

    executeTrade(bool _startOnVenueA, address _token0, address _token1, uint256 _flashAmount)

This client only builds, signs and submits that one call, then reports what
the trading account gained or lost.
"""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TransactionNotFound
from web3.types import TxParams, Wei

from .abi import ARBITRAGE_ABI, ERC20_ABI
from .exceptions import SettlementFailed
from .types import ExecutionResult, Token
from .utils import get_logger

logger = get_logger(__name__)


@dataclass
class SettlementConfig:
    """
    Configuration for settlement.

    Attributes:
        arbitrage_address: Deployed arbitrage contract
        private_key: Key of the trading account (WARNING: keep secure!)
        is_deployed: If False, plans are logged and never submitted
        gas_limit: Gas limit for executeTrade
        max_gas_price_gwei: Gas price ceiling
        receipt_timeout_sec: How long to wait for the receipt
    """

    arbitrage_address: Optional[str] = None
    private_key: Optional[str] = None
    is_deployed: bool = False
    gas_limit: int = 400_000
    max_gas_price_gwei: float = 100.0
    receipt_timeout_sec: int = 60


class SettlementClient:
    """Submits executeTrade and waits for it to be mined."""

    def __init__(self, web3: Web3, config: SettlementConfig, base: Token):
        self.web3 = web3
        self.config = config
        self.base = base

        self.account: Optional[LocalAccount] = None
        if config.private_key:
            try:
                self.account = Account.from_key(config.private_key)
                logger.info(f"Loaded account: {self.account.address}")
            except Exception as e:
                logger.error(f"Failed to load private key: {e}")
                raise

        self.contract = None
        if config.arbitrage_address:
            self.contract = web3.eth.contract(
                address=Web3.to_checksum_address(config.arbitrage_address),
                abi=ARBITRAGE_ABI,
            )
        self.base_contract = web3.eth.contract(address=base.address, abi=ERC20_ABI)

        self.submitted = 0
        self.succeeded = 0

        if config.is_deployed and (self.account is None or self.contract is None):
            raise SettlementFailed(
                "Live settlement needs both a private key and an arbitrage contract"
            )

    @property
    def is_live(self) -> bool:
        return self.config.is_deployed

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def _get_gas_price(self) -> Wei:
        """Get current gas price with ceiling."""
        current_gas_price = await self._run(lambda: self.web3.eth.gas_price)
        max_gas_price = Web3.to_wei(self.config.max_gas_price_gwei, "gwei")
        gas_price = min(current_gas_price, max_gas_price)

        logger.debug(
            f"Gas price: {Web3.from_wei(gas_price, 'gwei'):.2f} gwei "
            f"(current: {Web3.from_wei(current_gas_price, 'gwei'):.2f})"
        )
        return gas_price

    async def get_balances(self) -> Dict[str, int]:
        """Raw base-token and native balances of the trading account."""
        address = self.account.address
        base_balance, native_balance = await asyncio.gather(
            self._run(self.base_contract.functions.balanceOf(address).call),
            self._run(self.web3.eth.get_balance, address),
        )
        return {"base": int(base_balance), "native": int(native_balance)}

    async def _build_transaction(
        self, start_on_venue_a: bool, token_in: str, token_out: str, amount: int
    ) -> TxParams:
        gas_price = await self._get_gas_price()
        nonce = await self._run(
            self.web3.eth.get_transaction_count, self.account.address
        )
        chain_id = await self._run(lambda: self.web3.eth.chain_id)

        call = self.contract.functions.executeTrade(
            start_on_venue_a,
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            amount,
        )
        return call.build_transaction(
            {
                "from": self.account.address,
                "gas": self.config.gas_limit,
                "gasPrice": gas_price,
                "nonce": nonce,
                "chainId": chain_id,
            }
        )

    async def _wait_for_transaction(self, tx_hash: str) -> Dict:
        """
        Poll for the receipt until it appears or the timeout passes.

        Raises:
            SettlementFailed: If the transaction is not mined in time or the
                receipt cannot be read
        """
        timeout = self.config.receipt_timeout_sec
        start = time.time()

        while time.time() - start < timeout:
            try:
                receipt = await self._run(
                    self.web3.eth.get_transaction_receipt, tx_hash
                )
                if receipt:
                    return receipt
            except TransactionNotFound:
                logger.debug(f"Receipt for {tx_hash} not available yet")
            except Exception as e:
                raise SettlementFailed(
                    f"Failed to read receipt for {tx_hash}: {e}", tx_hash=tx_hash
                ) from e

            await asyncio.sleep(1)

        raise SettlementFailed(
            f"Transaction {tx_hash} not confirmed after {timeout}s", tx_hash=tx_hash
        )

    async def execute_trade(
        self, start_on_venue_a: bool, token_in: str, token_out: str, amount: int
    ) -> ExecutionResult:
        """
        Submit executeTrade once and wait for the receipt.

        Args:
            start_on_venue_a: True when the first leg runs on venue A
            token_in: Token the contract starts with (base)
            token_out: Token of the intermediate leg (quote)
            amount: First-leg input in raw base-token units

        Returns:
            ExecutionResult with the balance changes of the trading account

        Raises:
            SettlementFailed: If the transaction cannot be sent, is not
                confirmed, or reverts. Once the receipt shows success the
                trade is reported even if the balance read fails.
        """
        if not self.is_live:
            raise SettlementFailed("Settlement is not deployed (dry-run mode)")

        self.submitted += 1
        try:
            before = await self.get_balances()
            tx_params = await self._build_transaction(
                start_on_venue_a, token_in, token_out, amount
            )
            signed_tx = self.account.sign_transaction(tx_params)
            raw_hash = await self._run(
                self.web3.eth.send_raw_transaction, signed_tx.raw_transaction
            )
            tx_hash = self.web3.to_hex(raw_hash)
        except Exception as e:
            raise SettlementFailed(f"Failed to submit executeTrade: {e}") from e

        logger.info(f"Submitted executeTrade: {tx_hash}")
        receipt = await self._wait_for_transaction(tx_hash)

        if receipt["status"] != 1:
            raise SettlementFailed(
                f"executeTrade reverted in block {receipt.get('blockNumber')}",
                tx_hash=tx_hash,
                details={"gas_used": receipt.get("gasUsed")},
            )

        self.succeeded += 1
        gas_used = int(receipt["gasUsed"])
        gas_price = int(receipt.get("effectiveGasPrice", tx_params["gasPrice"]))

        # The trade is mined at this point; the balance report is best-effort
        base_delta = None
        try:
            after = await self.get_balances()
            base_delta = self.base.from_raw(after["base"] - before["base"])
        except Exception as e:
            logger.warning(f"Trade {tx_hash} mined but balance read failed: {e}")

        result = ExecutionResult(
            success=True,
            tx_hash=tx_hash,
            gas_used=gas_used,
            base_delta=base_delta,
            native_spent=Decimal(gas_used * gas_price) / Decimal(10**18),
        )
        delta = f"{base_delta:+}" if base_delta is not None else "unknown"
        logger.info(
            f"Trade mined: {delta} {self.base.symbol}, "
            f"gas {gas_used} ({result.native_spent} native)"
        )
        return result

    def get_stats(self) -> Dict:
        return {"submitted": self.submitted, "succeeded": self.succeeded}
