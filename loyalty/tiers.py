"""
Tier table and spend-based tier resolution.

Tiers are determined only by cumulative spend. Thresholds are inclusive lower
bounds and the lowest tier starts at zero, so every non-negative spend maps to
exactly one tier.
"""

from decimal import Decimal
from typing import Iterable, Optional

from .models import Tier, TierName, TierProgress


DEFAULT_TIERS = (
    Tier(name=TierName.BRONZE, minimum_spend=Decimal("0"), multiplier=Decimal("1")),
    Tier(name=TierName.SILVER, minimum_spend=Decimal("500"), multiplier=Decimal("1.25")),
    Tier(name=TierName.GOLD, minimum_spend=Decimal("1000"), multiplier=Decimal("1.5")),
    Tier(name=TierName.PLATINUM, minimum_spend=Decimal("2000"), multiplier=Decimal("2")),
)


class TierTable:
    def __init__(self, tiers: Iterable[Tier] = DEFAULT_TIERS):
        self.tiers = tuple(tiers)
        if not self.tiers:
            raise ValueError("Tier table must define at least one tier")
        thresholds = [t.minimum_spend for t in self.tiers]
        if thresholds != sorted(thresholds) or len(set(thresholds)) != len(thresholds):
            raise ValueError("Tiers must be strictly ascending by minimum spend")
        if thresholds[0] != 0:
            raise ValueError("Lowest tier must start at a minimum spend of 0")
        if len({t.name for t in self.tiers}) != len(self.tiers):
            raise ValueError("Tier names must be unique")
        self._by_name = {t.name: t for t in self.tiers}

    def get(self, name: TierName) -> Tier:
        return self._by_name[TierName(name)]

    def resolve_tier(self, cumulative_spend: Decimal) -> Tier:
        spend = _normalize_spend(cumulative_spend)
        for tier in reversed(self.tiers):
            if tier.minimum_spend <= spend:
                return tier
        # Unreachable: the lowest threshold is 0.
        return self.tiers[0]

    def next_tier(self, cumulative_spend: Decimal) -> Optional[Tier]:
        spend = _normalize_spend(cumulative_spend)
        for tier in self.tiers:
            if tier.minimum_spend > spend:
                return tier
        return None

    def tier_progress(self, cumulative_spend: Decimal) -> TierProgress:
        """Position of a spend value within its tier bracket."""
        spend = _normalize_spend(cumulative_spend)
        current = self.resolve_tier(spend)
        upcoming = self.next_tier(spend)

        if upcoming is None:
            return TierProgress(
                current_tier=current,
                cumulative_spend=spend,
                percentage=100.0,
                is_top_tier=True,
            )

        bracket = upcoming.minimum_spend - current.minimum_spend
        reached = spend - current.minimum_spend
        return TierProgress(
            current_tier=current,
            next_tier=upcoming,
            cumulative_spend=spend,
            amount_to_next_tier=upcoming.minimum_spend - spend,
            percentage=float(reached / bracket * 100),
            is_top_tier=False,
        )


def _normalize_spend(value) -> Decimal:
    spend = Decimal(value)
    if spend < 0:
        spend = Decimal("0")
    return spend


DEFAULT_TIER_TABLE = TierTable()


def resolve_tier(cumulative_spend: Decimal, table: TierTable = DEFAULT_TIER_TABLE) -> Tier:
    return table.resolve_tier(cumulative_spend)
