import math
from decimal import Decimal, InvalidOperation

from .errors import InvalidAmountError
from .models import Tier
from .tiers import DEFAULT_TIER_TABLE, TierTable


def to_money(value) -> Decimal:
    """Decimal amount from user input. Floats go through their shortest repr."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidAmountError(value)


def compute_points_earned(amount: Decimal, tier: Tier) -> int:
    """Points for a purchase at the given tier. Fractions are truncated."""
    amount = to_money(amount)
    if not amount.is_finite() or not amount > 0:
        raise InvalidAmountError(amount)
    return math.floor(amount * tier.multiplier)


class AccrualEngine:
    def __init__(self, tier_table: TierTable = DEFAULT_TIER_TABLE):
        self.tier_table = tier_table

    def points_for_purchase(self, amount: Decimal, cumulative_spend: Decimal) -> tuple[Tier, int]:
        # Multiplier reflects standing before this purchase is applied.
        tier = self.tier_table.resolve_tier(cumulative_spend)
        return tier, compute_points_earned(amount, tier)
