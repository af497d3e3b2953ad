import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID, uuid4

from .accrual import AccrualEngine, to_money
from .errors import (
    LedgerServiceError,
    CustomerNotFoundError,
    RewardNotFoundError,
    InvalidAmountError,
    InsufficientPointsError,
    RewardInUseError,
    CustomerInUseError,
)
from .models import (
    Customer,
    CustomerHistoryResponse,
    LedgerSnapshot,
    Redemption,
    RedemptionResponse,
    Reward,
    RewardCategory,
    TierName,
    TierProgress,
    Transaction,
    TransactionResponse,
)
from .storage import BlobStore, LedgerStore, load_store, save_store
from .tiers import DEFAULT_TIER_TABLE, TierTable

__all__ = [
    "LedgerService",
    "LedgerServiceError",
    "CustomerNotFoundError",
    "RewardNotFoundError",
    "InvalidAmountError",
    "InsufficientPointsError",
    "RewardInUseError",
    "CustomerInUseError",
]

logger = logging.getLogger(__name__)

SORT_KEYS = {
    "name": lambda c: c["name"].lower(),
    "points": lambda c: c["points_balance"],
    "spend": lambda c: c["cumulative_spend"],
    "join_date": lambda c: c["join_date"],
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerService:
    def __init__(
        self,
        storage: Optional[LedgerStore] = None,
        tier_table: TierTable = DEFAULT_TIER_TABLE,
        blob_store: Optional[BlobStore] = None,
        namespace: str = "loyalty",
        seed_rewards: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.tier_table = tier_table
        self.accrual = AccrualEngine(tier_table)
        self.blob_store = blob_store
        self.namespace = namespace
        self.clock = clock
        self._lock = threading.RLock()

        if storage is not None:
            self.storage = storage
        elif blob_store is not None:
            self.storage = load_store(blob_store, namespace, tier_table, seed_rewards=seed_rewards)
        else:
            self.storage = LedgerStore(seed_rewards=seed_rewards)

    @contextmanager
    def _mutation(self):
        """Serialize a write and roll back if it cannot be committed."""
        with self._lock:
            if self.blob_store is None:
                yield self.storage
                return
            checkpoint = self.storage.copy()
            try:
                yield self.storage
                save_store(self.storage, self.blob_store, self.namespace)
            except Exception:
                self.storage = checkpoint
                raise

    # Customers

    def create_customer(self, name: str, email: str, phone: str) -> Customer:
        now = self.clock()
        data = {
            "id": uuid4(),
            "name": name,
            "email": email,
            "phone": phone,
            "points_balance": 0,
            "cumulative_spend": Decimal("0"),
            "tier": self.tier_table.resolve_tier(Decimal("0")).name,
            "join_date": now.date(),
        }
        customer = Customer(**data)
        with self._mutation() as store:
            store.customers[customer.id] = customer.model_dump()
        logger.info("Created customer %s", customer.id)
        return customer

    def update_customer(
        self,
        customer_id: UUID,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Customer:
        """Edit contact details. Balance, spend and tier are ledger-owned."""
        changes = {k: v for k, v in (("name", name), ("email", email), ("phone", phone)) if v}
        with self._mutation() as store:
            data = self._customer_data(customer_id)
            updated = {**data, **changes}
            store.customers[customer_id] = updated
        return Customer(**updated)

    def delete_customer(self, customer_id: UUID) -> None:
        with self._mutation() as store:
            self._customer_data(customer_id)
            has_history = any(
                e["customer_id"] == customer_id
                for e in (*store.transactions.values(), *store.redemptions.values())
            )
            if has_history:
                raise CustomerInUseError(customer_id)
            del store.customers[customer_id]
        logger.info("Deleted customer %s", customer_id)

    def get_customer(self, customer_id: UUID) -> Customer:
        with self._lock:
            return Customer(**self._customer_data(customer_id))

    def list_customers(self) -> list[Customer]:
        with self._lock:
            return [Customer(**c) for c in self.storage.customers.values()]

    def search_customers(
        self,
        search: Optional[str] = None,
        tier: Optional[TierName] = None,
        sort_by: str = "name",
        descending: bool = False,
    ) -> list[Customer]:
        if sort_by not in SORT_KEYS:
            raise ValueError(f"Cannot sort customers by {sort_by!r}")
        term = (search or "").strip().lower()
        with self._lock:
            matches = [
                c for c in self.storage.customers.values()
                if (not term
                    or term in c["name"].lower()
                    or term in c["email"].lower()
                    or term in c["phone"])
                and (tier is None or c["tier"] == TierName(tier))
            ]
        matches.sort(key=SORT_KEYS[sort_by], reverse=descending)
        return [Customer(**c) for c in matches]

    # Ledger operations

    def record_transaction(self, customer_id: UUID, amount: Decimal, store_location: str) -> Transaction:
        return self.purchase(customer_id, amount, store_location).transaction

    def purchase(self, customer_id: UUID, amount: Decimal, store_location: str) -> TransactionResponse:
        """Record a purchase and return it with the customer as of that purchase."""
        with self._mutation() as store:
            customer = self._customer_data(customer_id)
            amount = to_money(amount)
            tier_now, points_earned = self.accrual.points_for_purchase(
                amount, customer["cumulative_spend"]
            )

            transaction = Transaction(
                id=uuid4(),
                customer_id=customer_id,
                date=self.clock(),
                amount=amount,
                points_earned=points_earned,
                store_location=store_location,
                tier=tier_now.name,
            )

            new_spend = customer["cumulative_spend"] + amount
            updated = {
                **customer,
                "cumulative_spend": new_spend,
                "points_balance": customer["points_balance"] + points_earned,
                "tier": self.tier_table.resolve_tier(new_spend).name,
            }

            store.transactions[transaction.id] = transaction.model_dump()
            store.customers[customer_id] = updated

        tier_changed = updated["tier"] != customer["tier"]
        message = f"Customer earned {points_earned} points"
        if tier_changed:
            message += f" and reached {updated['tier'].value} tier"
            logger.info(
                "Customer %s promoted from %s to %s",
                customer_id, customer["tier"].value, updated["tier"].value,
            )
        logger.debug(
            "Transaction %s: %s at %s earned %d points",
            transaction.id, amount, tier_now.name.value, points_earned,
        )
        return TransactionResponse(
            transaction=transaction,
            customer=Customer(**updated),
            tier_changed=tier_changed,
            message=message,
        )

    def record_redemption(self, customer_id: UUID, reward_id: UUID) -> Redemption:
        return self.redeem(customer_id, reward_id).redemption

    def redeem(self, customer_id: UUID, reward_id: UUID) -> RedemptionResponse:
        """Redeem a reward and return it with the customer as of that redemption."""
        with self._mutation() as store:
            customer = self._customer_data(customer_id)
            reward = Reward(**self._reward_data(reward_id))

            if customer["points_balance"] < reward.points_cost:
                raise InsufficientPointsError(
                    required=reward.points_cost,
                    available=customer["points_balance"],
                    reward_name=reward.name,
                )

            redemption = Redemption(
                id=uuid4(),
                customer_id=customer_id,
                date=self.clock(),
                reward=reward.model_copy(deep=True),
                points_spent=reward.points_cost,
            )

            updated = {
                **customer,
                "points_balance": customer["points_balance"] - reward.points_cost,
            }
            store.redemptions[redemption.id] = redemption.model_dump()
            store.customers[customer_id] = updated

        logger.info(
            "Customer %s redeemed %s for %d points",
            customer_id, reward.name, reward.points_cost,
        )
        return RedemptionResponse(
            redemption=redemption,
            customer=Customer(**updated),
            message=f"Redeemed {reward.name} for {reward.points_cost} points",
        )

    # Reward catalog

    def create_reward(
        self,
        name: str,
        description: str,
        points_cost: int,
        category: RewardCategory = RewardCategory.DISCOUNT,
    ) -> Reward:
        reward = Reward(
            id=uuid4(),
            name=name,
            description=description,
            points_cost=points_cost,
            category=category,
        )
        with self._mutation() as store:
            store.rewards[reward.id] = reward.model_dump()
        logger.info("Created reward %s (%s)", reward.id, reward.name)
        return reward

    def update_reward(
        self,
        reward_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        points_cost: Optional[int] = None,
        category: Optional[RewardCategory] = None,
    ) -> Reward:
        """Edit a catalog entry. Past redemptions keep their own snapshot."""
        changes = {
            k: v for k, v in (
                ("name", name),
                ("description", description),
                ("points_cost", points_cost),
                ("category", category),
            )
            if v is not None
        }
        with self._mutation() as store:
            reward = Reward(**{**self._reward_data(reward_id), **changes})
            store.rewards[reward_id] = reward.model_dump()
        return reward

    def delete_reward(self, reward_id: UUID) -> None:
        with self._mutation() as store:
            self._reward_data(reward_id)
            if any(r["reward"]["id"] == reward_id for r in store.redemptions.values()):
                raise RewardInUseError(reward_id)
            del store.rewards[reward_id]
        logger.info("Deleted reward %s", reward_id)

    def get_reward(self, reward_id: UUID) -> Reward:
        with self._lock:
            return Reward(**self._reward_data(reward_id))

    def list_rewards(self, category: Optional[RewardCategory] = None) -> list[Reward]:
        with self._lock:
            return [
                Reward(**r) for r in self.storage.rewards.values()
                if category is None or r["category"] == RewardCategory(category)
            ]

    # History

    def list_transactions(self, customer_id: Optional[UUID] = None) -> list[Transaction]:
        with self._lock:
            entries = [
                Transaction(**e) for e in self.storage.transactions.values()
                if customer_id is None or e["customer_id"] == customer_id
            ]
        entries.sort(key=lambda e: e.date)
        return entries

    def list_redemptions(self, customer_id: Optional[UUID] = None) -> list[Redemption]:
        with self._lock:
            entries = [
                Redemption(**e) for e in self.storage.redemptions.values()
                if customer_id is None or e["customer_id"] == customer_id
            ]
        entries.sort(key=lambda e: e.date)
        return entries

    def get_customer_history(self, customer_id: UUID, limit: int = 50, offset: int = 0) -> CustomerHistoryResponse:
        with self._lock:
            customer = self.get_customer(customer_id)
            transactions = self.list_transactions(customer_id)
            redemptions = self.list_redemptions(customer_id)

        transactions.reverse()
        redemptions.reverse()
        return CustomerHistoryResponse(
            customer_id=customer_id,
            transactions=transactions[offset:offset + limit],
            redemptions=redemptions[offset:offset + limit],
            total_transactions=len(transactions),
            total_redemptions=len(redemptions),
            points_balance=customer.points_balance,
        )

    def tier_progress(self, customer_id: UUID) -> TierProgress:
        customer = self.get_customer(customer_id)
        return self.tier_table.tier_progress(customer.cumulative_spend)

    # Persistence

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return self.storage.to_snapshot()

    def save(self) -> None:
        if self.blob_store is None:
            raise LedgerServiceError("No blob store configured for this ledger")
        with self._lock:
            save_store(self.storage, self.blob_store, self.namespace)

    def _customer_data(self, customer_id: UUID) -> dict:
        data = self.storage.customers.get(customer_id)
        if not data:
            raise CustomerNotFoundError(customer_id)
        return data

    def _reward_data(self, reward_id: UUID) -> dict:
        data = self.storage.rewards.get(reward_id)
        if not data:
            raise RewardNotFoundError(reward_id)
        return data
