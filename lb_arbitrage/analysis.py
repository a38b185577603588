"""
Trade-size analysis.

Runs the round-trip simulator and the profitability gate over a list of
notionals against live venue state, to show where price impact starts to
eat the spread. Nothing is executed.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from .adapters.base import VenueAdapter
from .exceptions import SimulationFailed
from .opportunity_math import decide, pool_impact_pct, profit_pct
from .simulator import RoundTripSimulator
from .spread import evaluate
from .types import Direction, SpreadDecision, VenueQuote
from .utils import format_amount, get_logger

logger = get_logger(__name__)

# Recommended ceiling for a single trade: 1% of the shallower pool, at most 200 quote
RECOMMENDED_DEPTH_FRACTION = Decimal("0.01")
RECOMMENDED_MAX_QUOTE = Decimal("200")


@dataclass
class SizeAnalysis:
    """Outcome of one notional. Failed sizes carry `error` and no amounts."""

    notional_quote: Decimal
    amount_in: Optional[Decimal] = None
    amount_out: Optional[Decimal] = None
    gross_profit: Optional[Decimal] = None
    net_profit: Optional[Decimal] = None
    profit_pct: Optional[Decimal] = None
    pool_impact_pct: Optional[Decimal] = None
    profitable: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class AnalysisReport:
    quote_a: VenueQuote
    quote_b: VenueQuote
    spread: SpreadDecision
    buy_venue: str
    sell_venue: str
    fee_floor_pct: Decimal
    recommended_max_quote: Decimal
    rows: List[SizeAnalysis] = field(default_factory=list)

    @property
    def best(self) -> Optional[SizeAnalysis]:
        """Most profitable successful size, if any was profitable."""
        profitable = [r for r in self.rows if r.profitable]
        if not profitable:
            return None
        return max(profitable, key=lambda r: r.net_profit)


async def analyze_trade_sizes(
    venue_a: VenueAdapter,
    venue_b: VenueAdapter,
    simulator: RoundTripSimulator,
    sizes: Sequence[Decimal],
    fixed_cost: Decimal,
) -> AnalysisReport:
    """
    Simulate every notional in `sizes` in the direction the current spread
    points to.

    Raises:
        QuoteUnavailable: If either venue cannot be read
    """
    quote_a = await venue_a.fetch_quote()
    quote_b = await venue_b.fetch_quote()

    # Zero threshold: always pick a side, the analysis reports the spread as is
    spread = evaluate(quote_a.price, quote_b.price, Decimal("0"))
    if spread.direction is Direction.BUY_B_SELL_A:
        buy_venue, sell_venue = venue_b, venue_a
    else:
        buy_venue, sell_venue = venue_a, venue_b

    min_depth = min(quote_a.depth_quote, quote_b.depth_quote)
    report = AnalysisReport(
        quote_a=quote_a,
        quote_b=quote_b,
        spread=spread,
        buy_venue=buy_venue.name,
        sell_venue=sell_venue.name,
        fee_floor_pct=(venue_a.fee + venue_b.fee) * Decimal("100"),
        recommended_max_quote=min(min_depth * RECOMMENDED_DEPTH_FRACTION, RECOMMENDED_MAX_QUOTE),
    )

    for size in sizes:
        try:
            sim = await simulator.simulate(size, buy_venue, sell_venue, spread.direction)
        except SimulationFailed as e:
            logger.debug(f"Size {size} failed: {e}")
            report.rows.append(SizeAnalysis(notional_quote=size, error=str(e)))
            continue

        verdict = decide(sim.amount_in, sim.amount_out, fixed_cost)
        report.rows.append(
            SizeAnalysis(
                notional_quote=size,
                amount_in=sim.amount_in,
                amount_out=sim.amount_out,
                gross_profit=sim.gross_profit,
                net_profit=verdict.net_profit,
                profit_pct=profit_pct(sim.amount_in, verdict.net_profit),
                pool_impact_pct=pool_impact_pct(size, min_depth),
                profitable=verdict.profitable,
            )
        )

    return report


def log_report(report: AnalysisReport, base_symbol: str, quote_symbol: str, units: int = 6) -> None:
    """Write a report to the log, one line per size."""
    logger.info(
        f"{report.quote_a.venue}: {report.quote_a.price:.4f} {quote_symbol}/{base_symbol} "
        f"(depth {report.quote_a.depth_quote:.0f}) | "
        f"{report.quote_b.venue}: {report.quote_b.price:.4f} "
        f"(depth {report.quote_b.depth_quote:.0f})"
    )
    logger.info(
        f"Spread {report.spread.spread_pct:+.3f}%: buy on {report.buy_venue}, "
        f"sell on {report.sell_venue} (fees alone need {report.fee_floor_pct:.2f}%)"
    )
    logger.info(
        f"Recommended max trade size: {report.recommended_max_quote:.2f} {quote_symbol}"
    )
    for row in report.rows:
        if row.failed:
            logger.info(f"{row.notional_quote} {quote_symbol}: FAILED ({row.error})")
            continue
        logger.info(
            f"{row.notional_quote} {quote_symbol}: in {format_amount(row.amount_in, units)} "
            f"out {format_amount(row.amount_out, units)} "
            f"gross {format_amount(row.gross_profit, units)} "
            f"net {format_amount(row.net_profit, units)} {base_symbol} "
            f"impact {row.pool_impact_pct:.3f}% "
            f"{'PROFITABLE' if row.profitable else 'not profitable'}"
        )
