"""
Tiered trade sizing against pool depth.

Larger spreads are allowed larger notionals, but no trade may exceed a fixed
fraction of the shallower venue's depth.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from .utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SizingTier:
    """
    One row of the tier table.

    Attributes:
        min_spread_pct: Tier applies when |spread| >= this value (percent)
        cap_quote: Absolute notional cap in quote tokens
        depth_fraction: Fraction of the reference depth (e.g., 0.02 for 2%)
    """

    min_spread_pct: Decimal
    cap_quote: Decimal
    depth_fraction: Decimal


DEFAULT_TIERS = (
    SizingTier(Decimal("1.0"), Decimal("200"), Decimal("0.02")),
    SizingTier(Decimal("0.75"), Decimal("150"), Decimal("0.015")),
    SizingTier(Decimal("0.5"), Decimal("100"), Decimal("0.01")),
    SizingTier(Decimal("0.3"), Decimal("50"), Decimal("0.005")),
)

DEFAULT_MAX_DEPTH_FRACTION = Decimal("0.02")

# Hard ceiling on the depth clamp; config may tighten it, never loosen it
MAX_DEPTH_FRACTION_LIMIT = Decimal("0.02")


class TradeSizer:
    """Maps a spread magnitude and venue depths to a quote-token notional."""

    def __init__(
        self,
        tiers: Optional[Iterable[SizingTier]] = None,
        max_depth_fraction: Decimal = DEFAULT_MAX_DEPTH_FRACTION,
    ):
        tier_list: List[SizingTier] = list(tiers) if tiers is not None else list(DEFAULT_TIERS)
        if not tier_list:
            raise ValueError("At least one sizing tier is required")
        for tier in tier_list:
            if tier.cap_quote < 0 or tier.depth_fraction < 0:
                raise ValueError(f"Tier values must be non-negative: {tier}")
        if not 0 < max_depth_fraction <= MAX_DEPTH_FRACTION_LIMIT:
            raise ValueError(
                f"max_depth_fraction must be in (0, {MAX_DEPTH_FRACTION_LIMIT}]: "
                f"{max_depth_fraction}"
            )

        # Highest threshold first so the first match is the best tier
        self.tiers: Sequence[SizingTier] = sorted(
            tier_list, key=lambda t: t.min_spread_pct, reverse=True
        )
        self.max_depth_fraction = max_depth_fraction

    @property
    def min_spread_pct(self) -> Decimal:
        """Smallest spread that sizes to a trade at all."""
        return self.tiers[-1].min_spread_pct

    def tier_for(self, spread_pct: Decimal) -> Optional[SizingTier]:
        magnitude = abs(spread_pct)
        for tier in self.tiers:
            if magnitude >= tier.min_spread_pct:
                return tier
        return None

    def size(
        self,
        spread_pct: Decimal,
        reference_depth: Decimal,
        depth_a: Decimal,
        depth_b: Decimal,
    ) -> Optional[Decimal]:
        """
        Pick a notional for the spread.

        Args:
            spread_pct: Signed spread in percent
            reference_depth: Depth (quote units) the tier fractions apply to
            depth_a: Venue A depth (quote units)
            depth_b: Venue B depth (quote units)

        Returns:
            Notional in quote tokens, or None when the spread is below every
            tier or the depth leaves nothing to trade
        """
        tier = self.tier_for(spread_pct)
        if tier is None:
            logger.debug(f"Spread {spread_pct:.4f}% below sizing tiers, no trade")
            return None

        notional = min(tier.cap_quote, reference_depth * tier.depth_fraction)

        # Depth clamp applies regardless of tier
        ceiling = min(depth_a, depth_b) * self.max_depth_fraction
        if notional > ceiling:
            logger.debug(f"Notional {notional} clamped to {ceiling} by depth")
            notional = ceiling

        if notional <= 0:
            return None
        return notional
