from typing import Optional
from uuid import UUID


class LedgerServiceError(Exception):
    pass


class CustomerNotFoundError(LedgerServiceError):
    def __init__(self, customer_id: UUID):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found")


class RewardNotFoundError(LedgerServiceError):
    def __init__(self, reward_id: UUID):
        self.reward_id = reward_id
        super().__init__(f"Reward {reward_id} not found")


class InvalidAmountError(LedgerServiceError):
    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Purchase amount must be positive, got {amount}")


class InsufficientPointsError(LedgerServiceError):
    def __init__(self, required: int, available: int, reward_name: Optional[str] = None):
        self.required = required
        self.available = available
        self.shortfall = required - available
        target = reward_name or "this reward"
        super().__init__(
            f"Customer needs {self.shortfall} more points to redeem {target}. "
            f"Needed: {required}, Available: {available}"
        )


class RewardInUseError(LedgerServiceError):
    def __init__(self, reward_id: UUID):
        self.reward_id = reward_id
        super().__init__(
            f"Reward {reward_id} has been redeemed by customers and cannot be deleted"
        )


class CustomerInUseError(LedgerServiceError):
    def __init__(self, customer_id: UUID):
        self.customer_id = customer_id
        super().__init__(
            f"Customer {customer_id} has ledger history and cannot be deleted"
        )
