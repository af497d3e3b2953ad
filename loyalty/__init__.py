"""
Tiered Loyalty Points Ledger

This module provides:
- Spend-based tier resolution with inclusive thresholds
- Multiplier-adjusted point accrual, truncated to whole points
- Append-only transaction and redemption history
- Reward redemption with solvency checks and reward snapshots
- Monthly, tier and category summaries derived from history
"""

from .models import (
    TierName,
    RewardCategory,
    Tier,
    Customer,
    Transaction,
    Reward,
    Redemption,
)
from .tiers import TierTable, resolve_tier
from .accrual import AccrualEngine, compute_points_earned
from .service import LedgerService
from .stats import StatsAggregator

__all__ = [
    "TierName",
    "RewardCategory",
    "Tier",
    "Customer",
    "Transaction",
    "Reward",
    "Redemption",
    "TierTable",
    "resolve_tier",
    "AccrualEngine",
    "compute_points_earned",
    "LedgerService",
    "StatsAggregator",
]
