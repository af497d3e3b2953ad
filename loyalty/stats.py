"""
Read-only summaries of the ledger, recomputed from full history on every call.
"""

from datetime import datetime, timezone
from typing import Optional

from .models import (
    CategoryCount,
    MonthlyStat,
    PointsSummary,
    RewardCategory,
    TierCount,
)
from .service import LedgerService

MONTHS_IN_SERIES = 6


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _as_utc(moment: datetime) -> datetime:
    # Naive datetimes are taken to be UTC already.
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc)


class StatsAggregator:
    def __init__(self, ledger: LedgerService):
        self.ledger = ledger

    def monthly_series(self, now: Optional[datetime] = None) -> list[MonthlyStat]:
        """Spend and points for the six calendar months ending at ``now``."""
        now = _as_utc(now or self.ledger.clock())
        series = []
        for offset in range(MONTHS_IN_SERIES - 1, -1, -1):
            year, month = _shift_month(now.year, now.month, -offset)
            series.append(MonthlyStat(
                month=datetime(year, month, 1).strftime("%b %Y"),
                year=year,
                month_number=month,
            ))
        index = {(s.year, s.month_number): s for s in series}

        for transaction in self.ledger.list_transactions():
            when = _as_utc(transaction.date)
            bucket = index.get((when.year, when.month))
            if bucket is None:
                continue
            bucket.total_spent += transaction.amount
            bucket.points_earned += transaction.points_earned
            bucket.transaction_count += 1

        return series

    def tier_distribution(self) -> list[TierCount]:
        counts = {tier.name: 0 for tier in self.ledger.tier_table.tiers}
        for customer in self.ledger.list_customers():
            counts[customer.tier] += 1
        return [TierCount(tier=name, count=count) for name, count in counts.items()]

    def redemptions_by_category(self) -> list[CategoryCount]:
        counts = {category: 0 for category in RewardCategory}
        for redemption in self.ledger.list_redemptions():
            counts[redemption.reward.category] += 1
        return [CategoryCount(category=c, count=n) for c, n in counts.items()]

    def points_summary(self) -> PointsSummary:
        # One snapshot so the three totals describe the same moment.
        customers = self.ledger.snapshot().customers
        earned = sum(t.points_earned for c in customers for t in c.transactions)
        redeemed = sum(r.points_spent for c in customers for r in c.redemptions)
        available = sum(c.points_balance for c in customers)
        return PointsSummary(
            total_earned=earned,
            total_redeemed=redeemed,
            total_available=available,
        )
