"""
Wires config, chain connection, venues and the coordinator together.
"""

import asyncio
from typing import List, Optional

from web3 import Web3

from .abi import LB_PAIR_ABI
from .adapters import ConstantProductVenue, LiquidityBookVenue, VenueAdapter
from .adapters.base import call_with_retry
from .adapters.v2 import fetch_pool_async
from .analysis import AnalysisReport, analyze_trade_sizes, log_report
from .config import ArbConfig, VenueConfig
from .coordinator import CycleOutcome, ExecutionCoordinator
from .events import SwapEventSource
from .exceptions import ArbitrageError, ConfigError
from .settlement import SettlementClient, SettlementConfig
from .simulator import RoundTripSimulator
from .sizing import TradeSizer
from .tokens import TokenRegistry
from .types import Token, VenueSignal
from .utils import get_logger, short_addr

logger = get_logger(__name__)

CHAIN_NAMES = {
    43114: "Avalanche C-Chain",
    43113: "Avalanche Fuji",
    31337: "Hardhat",
}


class ArbRunner:
    """
    Owns the process-lifetime objects.

    Call connect(), then await build(), then one of run(), run_once() or
    analyze().
    """

    def __init__(self, config: ArbConfig, private_key: Optional[str] = None):
        self.config = config
        self.private_key = private_key

        self.web3: Optional[Web3] = None
        self.base: Optional[Token] = None
        self.quote: Optional[Token] = None
        self.venue_a: Optional[VenueAdapter] = None
        self.venue_b: Optional[VenueAdapter] = None
        self.simulator: Optional[RoundTripSimulator] = None
        self.settlement: Optional[SettlementClient] = None
        self.coordinator: Optional[ExecutionCoordinator] = None

    def connect(self) -> None:
        """
        Connect to the first reachable RPC endpoint.

        Raises:
            ArbitrageError: If every endpoint fails
        """
        last_error = None
        for rpc_url in self.config.rpc_urls:
            if not rpc_url.startswith(("http://", "https://")):
                logger.debug(f"Skipping invalid RPC URL: {rpc_url}")
                continue
            try:
                logger.info(f"Connecting to RPC: {rpc_url}")
                web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 10}))
                chain_id = web3.eth.chain_id
                block = web3.eth.block_number
            except Exception as e:
                last_error = e
                logger.warning(f"RPC connection failed: {e}")
                continue

            if chain_id != self.config.chain_id:
                raise ConfigError(
                    f"{rpc_url} is chain {chain_id}, expected {self.config.chain_id}"
                )

            chain_name = CHAIN_NAMES.get(chain_id, f"Chain {chain_id}")
            logger.info(f"Connected to {chain_name} (block #{block:,})")
            self.web3 = web3
            return

        raise ArbitrageError(
            f"Failed to connect to any RPC endpoint. Last error: {last_error}"
        )

    async def _verify_v2_pair(self, venue_cfg: VenueConfig) -> None:
        token0, token1, reserve0, reserve1 = await fetch_pool_async(
            self.web3, venue_cfg.pair
        )
        if {token0, token1} != {self.base.address, self.quote.address}:
            raise ConfigError(
                f"Pair {venue_cfg.pair} ({venue_cfg.name}) does not trade "
                f"{self.base.symbol}/{self.quote.symbol}"
            )
        logger.info(
            f"{venue_cfg.name}: v2 pair {short_addr(venue_cfg.pair)} "
            f"reserves {reserve0} / {reserve1}"
        )

    async def _verify_lb_pair(self, venue_cfg: VenueConfig) -> None:
        pair = self.web3.eth.contract(address=venue_cfg.pair, abi=LB_PAIR_ABI)
        token_x, token_y, bin_step = await asyncio.gather(
            call_with_retry(pair.functions.getTokenX().call),
            call_with_retry(pair.functions.getTokenY().call),
            call_with_retry(pair.functions.getBinStep().call),
        )
        tokens = {Web3.to_checksum_address(token_x), Web3.to_checksum_address(token_y)}
        if tokens != {self.base.address, self.quote.address}:
            raise ConfigError(
                f"LB pair {venue_cfg.pair} ({venue_cfg.name}) does not trade "
                f"{self.base.symbol}/{self.quote.symbol}"
            )
        logger.info(
            f"{venue_cfg.name}: LB pair {short_addr(venue_cfg.pair)} bin step {bin_step}"
        )

    def _build_venue(self, venue_cfg: VenueConfig) -> VenueAdapter:
        if venue_cfg.kind == "lb":
            return LiquidityBookVenue(
                self.web3,
                venue_cfg.name,
                venue_cfg.pair,
                self.base,
                self.quote,
                fee_bps=venue_cfg.fee_bps,
                router_address=venue_cfg.router,
                depth_bins=venue_cfg.depth_bins,
            )
        return ConstantProductVenue(
            self.web3,
            venue_cfg.name,
            venue_cfg.pair,
            self.base,
            self.quote,
            fee_bps=venue_cfg.fee_bps,
            router_address=venue_cfg.router,
        )

    async def build(self) -> None:
        """Resolve tokens, check both pairs, and construct the pipeline."""
        if self.web3 is None:
            raise ArbitrageError("Not connected. Call connect() before build().")
        cfg = self.config

        registry = TokenRegistry(self.web3)
        self.base = await registry.get(
            cfg.base.address, decimals=cfg.base.decimals, symbol=cfg.base.symbol
        )
        self.quote = await registry.get(
            cfg.quote.address, decimals=cfg.quote.decimals, symbol=cfg.quote.symbol
        )

        for venue_cfg in (cfg.venue_a, cfg.venue_b):
            if venue_cfg.kind == "lb":
                await self._verify_lb_pair(venue_cfg)
            else:
                await self._verify_v2_pair(venue_cfg)

        self.venue_a = self._build_venue(cfg.venue_a)
        self.venue_b = self._build_venue(cfg.venue_b)
        self.simulator = RoundTripSimulator(self.base, self.quote)

        if cfg.is_deployed or self.private_key:
            self.settlement = SettlementClient(
                self.web3,
                SettlementConfig(
                    arbitrage_address=cfg.arbitrage_address,
                    private_key=self.private_key,
                    is_deployed=cfg.is_deployed,
                    gas_limit=cfg.gas_limit,
                    max_gas_price_gwei=cfg.gas_price_gwei,
                    receipt_timeout_sec=cfg.receipt_timeout_sec,
                ),
                self.base,
            )

        self.coordinator = ExecutionCoordinator(
            self.venue_a,
            self.venue_b,
            TradeSizer(cfg.tiers, cfg.max_depth_fraction),
            self.simulator,
            settlement=self.settlement,
            threshold_pct=cfg.threshold_pct,
            fixed_cost=cfg.fixed_cost_base,
            reference_venue=cfg.reference_venue,
            cycle_timeout_sec=cfg.cycle_timeout_sec,
            units=cfg.units,
        )

    async def run_once(self) -> CycleOutcome:
        """Run a single cycle without waiting for a swap."""
        outcome = await self.coordinator.run_cycle(VenueSignal(venue="manual"))
        logger.info(f"Cycle finished: {outcome.status.value}")
        return outcome

    async def analyze(self) -> AnalysisReport:
        report = await analyze_trade_sizes(
            self.venue_a,
            self.venue_b,
            self.simulator,
            self.config.analysis_sizes,
            self.config.fixed_cost_base,
        )
        log_report(report, self.base.symbol, self.quote.symbol, self.config.units)
        return report

    async def run(self) -> None:
        """Watch both venues and run the coordinator until cancelled."""
        sources = [
            SwapEventSource(venue, self.web3, self.coordinator, self.config.poll_sec)
            for venue in (self.venue_a, self.venue_b)
        ]
        tasks: List[asyncio.Task] = [
            asyncio.create_task(self.coordinator.run(), name="coordinator")
        ]
        tasks.extend(
            asyncio.create_task(source.run(), name=f"events:{source.venue.name}")
            for source in sources
        )
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Coordinator stats: {self.coordinator.get_stats()}")
