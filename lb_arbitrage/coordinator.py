"""
Single-flight execution coordinator.

Swap signals from both venues are multiplexed into one bounded queue with a
single consumer. At most one detect -> simulate -> execute cycle is in flight:
a signal arriving while a cycle runs, or while one is already pending, is
dropped rather than queued.

State machine:

    IDLE -> EVALUATING -> SIMULATING -> (EXECUTING | REJECTED) -> IDLE

Every exit path of a cycle returns the coordinator to IDLE, including
timeouts and unexpected exceptions.
"""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Union

from .adapters.base import VenueAdapter
from .exceptions import ArbitrageError, QuoteUnavailable, SettlementFailed, SimulationFailed
from .opportunity_math import DEFAULT_FIXED_COST, decide
from .settlement import SettlementClient
from .simulator import RoundTripSimulator
from .sizing import TradeSizer
from .spread import evaluate
from .types import Direction, ExecutionResult, SpreadDecision, TradePlan, VenueSignal
from .utils import format_amount, get_logger

logger = get_logger(__name__)


class CoordinatorState(str, Enum):
    IDLE = "IDLE"
    EVALUATING = "EVALUATING"
    SIMULATING = "SIMULATING"
    EXECUTING = "EXECUTING"
    REJECTED = "REJECTED"


ALLOWED_TRANSITIONS = {
    CoordinatorState.IDLE: {CoordinatorState.EVALUATING},
    CoordinatorState.EVALUATING: {
        CoordinatorState.SIMULATING,
        CoordinatorState.REJECTED,
        CoordinatorState.IDLE,
    },
    CoordinatorState.SIMULATING: {
        CoordinatorState.EXECUTING,
        CoordinatorState.REJECTED,
        CoordinatorState.IDLE,
    },
    CoordinatorState.EXECUTING: {CoordinatorState.IDLE},
    CoordinatorState.REJECTED: {CoordinatorState.IDLE},
}


class CycleStatus(str, Enum):
    NO_OPPORTUNITY = "no_opportunity"
    QUOTE_UNAVAILABLE = "quote_unavailable"
    BELOW_SIZE = "below_size"
    SIMULATION_FAILED = "simulation_failed"
    UNPROFITABLE = "unprofitable"
    DRY_RUN = "dry_run"
    EXECUTED = "executed"
    SETTLEMENT_FAILED = "settlement_failed"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass
class CycleOutcome:
    """Final status of one cycle, for logs and stats."""

    status: CycleStatus
    signal: Optional[VenueSignal] = None
    spread: Optional[SpreadDecision] = None
    plan: Optional[TradePlan] = None
    result: Optional[ExecutionResult] = None
    error: Optional[str] = None
    duration_ms: float = 0.0


class ExecutionCoordinator:
    """
    Owns the cycle state machine and the pipeline that runs inside it.

    Venue A and venue B are fixed at construction; the direction computed by
    the spread evaluator picks which of them is the buy and which the sell
    venue for the rest of the cycle.
    """

    def __init__(
        self,
        venue_a: VenueAdapter,
        venue_b: VenueAdapter,
        sizer: TradeSizer,
        simulator: RoundTripSimulator,
        settlement: Optional[SettlementClient] = None,
        threshold_pct: Decimal = Decimal("0.3"),
        fixed_cost: Decimal = DEFAULT_FIXED_COST,
        reference_venue: str = "a",
        cycle_timeout_sec: float = 30.0,
        units: int = 6,
    ):
        """
        Args:
            venue_a: First monitored venue
            venue_b: Second monitored venue
            sizer: Tiered trade sizer
            simulator: Round-trip simulator
            settlement: Settlement client; None or not deployed means dry-run
            threshold_pct: Minimum spread in percent
            fixed_cost: Execution cost estimate in base tokens
            reference_venue: "a" or "b", whose depth the sizing tiers use
            cycle_timeout_sec: Budget for evaluation and simulation
            units: Display decimals for log lines
        """
        if reference_venue not in ("a", "b"):
            raise ValueError(f"reference_venue must be 'a' or 'b': {reference_venue}")
        if cycle_timeout_sec <= 0:
            raise ValueError(f"cycle_timeout_sec must be positive: {cycle_timeout_sec}")

        self.venue_a = venue_a
        self.venue_b = venue_b
        self.sizer = sizer
        self.simulator = simulator
        self.settlement = settlement
        self.threshold_pct = threshold_pct
        self.fixed_cost = fixed_cost
        self.reference_venue = reference_venue
        self.cycle_timeout_sec = cycle_timeout_sec
        self.units = units

        self._state = CoordinatorState.IDLE
        self._queue: "asyncio.Queue[VenueSignal]" = asyncio.Queue(maxsize=1)

        self.cycles = 0
        self.executed = 0
        self.rejected = 0
        self.dry_runs = 0
        self.dropped_signals = 0
        self.timeouts = 0
        self.errors = 0
        self.last_outcome: Optional[CycleOutcome] = None

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def is_dry_run(self) -> bool:
        return self.settlement is None or not self.settlement.is_live

    def _transition(self, new_state: CoordinatorState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            raise ArbitrageError(
                f"Illegal transition {self._state.value} -> {new_state.value}"
            )
        logger.debug(f"State {self._state.value} -> {new_state.value}")
        self._state = new_state

    def _release(self) -> None:
        if self._state is not CoordinatorState.IDLE:
            self._transition(CoordinatorState.IDLE)

    def _fmt(self, value: Decimal) -> str:
        return format_amount(value, self.units)

    # Signal intake

    def offer(self, signal: VenueSignal) -> bool:
        """
        Hand a venue signal to the coordinator.

        Returns:
            True if the signal will start a cycle, False if it was dropped
        """
        if self._state is not CoordinatorState.IDLE:
            self.dropped_signals += 1
            logger.debug(
                f"Dropped signal from {signal.venue}: cycle in progress ({self._state.value})"
            )
            return False
        try:
            self._queue.put_nowait(signal)
        except asyncio.QueueFull:
            self.dropped_signals += 1
            logger.debug(f"Dropped signal from {signal.venue}: cycle already pending")
            return False
        return True

    async def run(self) -> None:
        """Consume signals forever, one cycle at a time. Stop by cancelling."""
        logger.info(
            f"Coordinator running: {self.venue_a.name} vs {self.venue_b.name}, "
            f"threshold {self.threshold_pct}%"
            + (" [DRY RUN]" if self.is_dry_run else "")
        )
        while True:
            signal = await self._queue.get()
            try:
                await self.run_cycle(signal)
            finally:
                self._queue.task_done()

    # Cycle

    async def run_cycle(self, signal: Optional[VenueSignal] = None) -> CycleOutcome:
        """
        Run one detect -> simulate -> execute cycle and return to IDLE.

        Never raises for pipeline errors; the failure is recorded in the
        returned CycleOutcome.
        """
        start = time.time()
        self.cycles += 1
        self._transition(CoordinatorState.EVALUATING)

        try:
            try:
                planned = await asyncio.wait_for(
                    self._plan(signal), timeout=self.cycle_timeout_sec
                )
            except asyncio.TimeoutError:
                self.timeouts += 1
                logger.error(
                    f"Cycle timed out after {self.cycle_timeout_sec}s in "
                    f"{self._state.value}, releasing"
                )
                planned = CycleOutcome(
                    status=CycleStatus.TIMEOUT,
                    signal=signal,
                    error=f"timeout after {self.cycle_timeout_sec}s",
                )

            if isinstance(planned, CycleOutcome):
                outcome = planned
            else:
                outcome = await self._execute(planned, signal)
        except Exception as e:
            self.errors += 1
            logger.exception(f"Unexpected error in cycle: {e}")
            outcome = CycleOutcome(status=CycleStatus.ERROR, signal=signal, error=str(e))
        finally:
            self._release()

        outcome.duration_ms = (time.time() - start) * 1000
        self.last_outcome = outcome
        return outcome

    def _reject(self, status: CycleStatus, **kwargs) -> CycleOutcome:
        self._transition(CoordinatorState.REJECTED)
        self.rejected += 1
        return CycleOutcome(status=status, **kwargs)

    async def _evaluate(self):
        quote_a, quote_b = await asyncio.gather(
            self.venue_a.fetch_quote(), self.venue_b.fetch_quote()
        )
        decision = evaluate(quote_a.price, quote_b.price, self.threshold_pct)
        logger.debug(
            f"{self.venue_a.name}={quote_a.price} {self.venue_b.name}={quote_b.price} "
            f"spread={decision.spread_pct:.4f}% -> {decision.direction.value}"
        )
        return quote_a, quote_b, decision

    async def _plan(
        self, signal: Optional[VenueSignal]
    ) -> Union[TradePlan, CycleOutcome]:
        """EVALUATING and SIMULATING; returns a profitable plan or a rejection."""
        try:
            quote_a, quote_b, decision = await self._evaluate()
        except QuoteUnavailable as e:
            logger.warning(f"Quote unavailable ({e.venue}): {e}")
            return self._reject(
                CycleStatus.QUOTE_UNAVAILABLE, signal=signal, error=str(e)
            )

        if not decision.is_opportunity:
            return self._reject(
                CycleStatus.NO_OPPORTUNITY, signal=signal, spread=decision
            )

        self._transition(CoordinatorState.SIMULATING)

        if decision.direction is Direction.BUY_B_SELL_A:
            buy_venue, sell_venue = self.venue_b, self.venue_a
        else:
            buy_venue, sell_venue = self.venue_a, self.venue_b

        reference = quote_a if self.reference_venue == "a" else quote_b
        notional = self.sizer.size(
            decision.spread_pct,
            reference.depth_quote,
            quote_a.depth_quote,
            quote_b.depth_quote,
        )
        if notional is None:
            logger.info(
                f"Spread {decision.spread_pct:.4f}% sizes to no trade "
                f"(depths {self._fmt(quote_a.depth_quote)} / {self._fmt(quote_b.depth_quote)})"
            )
            return self._reject(CycleStatus.BELOW_SIZE, signal=signal, spread=decision)

        try:
            simulation = await self.simulator.simulate(
                notional, buy_venue, sell_venue, decision.direction
            )
        except SimulationFailed as e:
            logger.warning(
                f"Simulation failed on {e.venue} ({decision.direction.value}, "
                f"notional {notional}): {e}"
            )
            return self._reject(
                CycleStatus.SIMULATION_FAILED, signal=signal, spread=decision, error=str(e)
            )

        profit = decide(simulation.amount_in, simulation.amount_out, self.fixed_cost)
        plan = TradePlan(
            direction=decision.direction,
            buy_venue=buy_venue,
            sell_venue=sell_venue,
            notional_quote=notional,
            simulation=simulation,
            decision=profit,
        )

        base = self.simulator.base.symbol
        logger.info(
            f"{decision.direction.value} spread {decision.spread_pct:.4f}%: "
            f"in {self._fmt(simulation.amount_in)} {base} on {sell_venue.name}, "
            f"out {self._fmt(simulation.amount_out)} {base} on {buy_venue.name}, "
            f"net {self._fmt(profit.net_profit)} {base}"
        )

        if not profit.profitable:
            return self._reject(
                CycleStatus.UNPROFITABLE, signal=signal, spread=decision, plan=plan
            )
        return plan

    async def _execute(
        self, plan: TradePlan, signal: Optional[VenueSignal]
    ) -> CycleOutcome:
        """EXECUTING: call settlement at most once. Not subject to the cycle timeout."""
        self._transition(CoordinatorState.EXECUTING)

        # The first leg runs on the sell venue
        start_on_venue_a = plan.sell_venue is self.venue_a
        base = self.simulator.base
        quote = self.simulator.quote

        if self.is_dry_run:
            self.dry_runs += 1
            logger.info(
                f"[DRY RUN] Would call executeTrade(startOnVenueA={start_on_venue_a}, "
                f"{base.symbol}, {quote.symbol}, amount={plan.amount_in_raw}), "
                f"expected out {self._fmt(plan.expected_output)} {base.symbol}"
            )
            return CycleOutcome(
                status=CycleStatus.DRY_RUN,
                signal=signal,
                plan=plan,
                result=ExecutionResult(success=True, dry_run=True),
            )

        logger.info(
            f"Executing {plan.direction.value}: startOnVenueA={start_on_venue_a}, "
            f"amount={plan.amount_in_raw}, "
            f"expected out {self._fmt(plan.expected_output)}, net {self._fmt(plan.net_profit)} {base.symbol}"
        )
        try:
            result = await self.settlement.execute_trade(
                start_on_venue_a, base.address, quote.address, plan.amount_in_raw
            )
        except SettlementFailed as e:
            logger.error(f"Settlement failed (tx {e.tx_hash}): {e}")
            return CycleOutcome(
                status=CycleStatus.SETTLEMENT_FAILED,
                signal=signal,
                plan=plan,
                error=str(e),
            )

        self.executed += 1
        return CycleOutcome(
            status=CycleStatus.EXECUTED, signal=signal, plan=plan, result=result
        )

    def get_stats(self) -> Dict:
        """Get coordinator statistics."""
        return {
            "state": self._state.value,
            "cycles": self.cycles,
            "executed": self.executed,
            "rejected": self.rejected,
            "dry_runs": self.dry_runs,
            "dropped_signals": self.dropped_signals,
            "timeouts": self.timeouts,
            "errors": self.errors,
        }
