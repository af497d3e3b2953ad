from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class TierName(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"


class RewardCategory(str, Enum):
    DISCOUNT = "Discount"
    PRODUCT = "Product"
    EXPERIENCE = "Experience"


class Tier(BaseModel):
    name: TierName
    minimum_spend: Decimal = Field(..., ge=0)
    multiplier: Decimal = Field(..., ge=1)

    model_config = ConfigDict(frozen=True)


class Customer(BaseModel):
    id: UUID
    name: str
    email: str
    phone: str
    points_balance: int = Field(default=0, ge=0)
    cumulative_spend: Decimal = Field(default=Decimal("0"), ge=0)
    tier: TierName = TierName.BRONZE
    join_date: date

    model_config = ConfigDict(from_attributes=True)


class Transaction(BaseModel):
    id: UUID
    customer_id: UUID
    date: datetime
    amount: Decimal = Field(..., gt=0)
    points_earned: int = Field(..., ge=0)
    store_location: str
    tier: TierName

    model_config = ConfigDict(frozen=True, from_attributes=True)


class Reward(BaseModel):
    id: UUID
    name: str
    description: str
    points_cost: int = Field(..., gt=0)
    category: RewardCategory

    model_config = ConfigDict(from_attributes=True)


class Redemption(BaseModel):
    id: UUID
    customer_id: UUID
    date: datetime
    reward: Reward
    points_spent: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True, from_attributes=True)


class CustomerRecord(Customer):
    """Customer plus its full history, as persisted in a snapshot."""
    transactions: list[Transaction] = Field(default_factory=list)
    redemptions: list[Redemption] = Field(default_factory=list)


class LedgerSnapshot(BaseModel):
    customers: list[CustomerRecord] = Field(default_factory=list)
    rewards: list[Reward] = Field(default_factory=list)


class CreateCustomerRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Jane Shopper",
            "email": "jane@example.com",
            "phone": "555-0100"
        }
    })


class UpdateCustomerRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class RecordTransactionRequest(BaseModel):
    amount: Decimal = Field(..., description="Purchase amount, must be positive")
    store_location: str = Field(..., min_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {"amount": 600.00, "store_location": "Downtown Store"}
    })


class RecordRedemptionRequest(BaseModel):
    reward_id: UUID


class CreateRewardRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    points_cost: int = Field(..., gt=0)
    category: RewardCategory = RewardCategory.DISCOUNT

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "10% Discount",
            "description": "Get 10% off your next purchase",
            "points_cost": 500,
            "category": "Discount"
        }
    })


class UpdateRewardRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    points_cost: Optional[int] = Field(default=None, gt=0)
    category: Optional[RewardCategory] = None


class TransactionResponse(BaseModel):
    transaction: Transaction
    customer: Customer
    tier_changed: bool
    message: str


class RedemptionResponse(BaseModel):
    redemption: Redemption
    customer: Customer
    message: str


class CustomerHistoryResponse(BaseModel):
    customer_id: UUID
    transactions: list[Transaction]
    redemptions: list[Redemption]
    total_transactions: int
    total_redemptions: int
    points_balance: int


class TierProgress(BaseModel):
    current_tier: Tier
    next_tier: Optional[Tier] = None
    cumulative_spend: Decimal
    amount_to_next_tier: Optional[Decimal] = None
    percentage: float
    is_top_tier: bool


class MonthlyStat(BaseModel):
    month: str
    year: int
    month_number: int
    total_spent: Decimal = Decimal("0")
    points_earned: int = 0
    transaction_count: int = 0


class TierCount(BaseModel):
    tier: TierName
    count: int


class CategoryCount(BaseModel):
    category: RewardCategory
    count: int


class PointsSummary(BaseModel):
    total_earned: int
    total_redeemed: int
    total_available: int
