"""
Ledger state and the persistence boundary.

LedgerStore is the whole in-memory ledger state owned by a LedgerService.
BlobStore implementations are the persistence collaborator: synchronous
get/set of an opaque blob keyed by a namespace string.
"""

import logging
import os
import tempfile
from collections import defaultdict
from decimal import Decimal
from pathlib import Path
from typing import Optional, Protocol, Union
from uuid import UUID

from .models import (
    CustomerRecord,
    LedgerSnapshot,
    RewardCategory,
)
from .tiers import DEFAULT_TIER_TABLE, TierTable

logger = logging.getLogger(__name__)


SEED_REWARDS = [
    {
        "id": UUID("11111111-1111-1111-1111-111111111111"),
        "name": "10% Discount", "description": "Get 10% off your next purchase",
        "points_cost": 500, "category": RewardCategory.DISCOUNT,
    },
    {
        "id": UUID("22222222-2222-2222-2222-222222222222"),
        "name": "25% Discount", "description": "Get 25% off your next purchase",
        "points_cost": 1000, "category": RewardCategory.DISCOUNT,
    },
    {
        "id": UUID("33333333-3333-3333-3333-333333333333"),
        "name": "Free T-Shirt", "description": "Redeem for a free branded t-shirt",
        "points_cost": 1500, "category": RewardCategory.PRODUCT,
    },
    {
        "id": UUID("44444444-4444-4444-4444-444444444444"),
        "name": "VIP Shopping Experience", "description": "Personal shopping assistant for 1 hour",
        "points_cost": 3000, "category": RewardCategory.EXPERIENCE,
    },
    {
        "id": UUID("55555555-5555-5555-5555-555555555555"),
        "name": "Free Shipping", "description": "Free shipping on your next order",
        "points_cost": 300, "category": RewardCategory.DISCOUNT,
    },
]


class LedgerStore:
    def __init__(self, seed_rewards: bool = False):
        self.customers: dict[UUID, dict] = {}
        self.rewards: dict[UUID, dict] = {}
        self.transactions: dict[UUID, dict] = {}
        self.redemptions: dict[UUID, dict] = {}
        if seed_rewards:
            self._seed_rewards()

    def _seed_rewards(self):
        for reward in SEED_REWARDS:
            self.rewards[reward["id"]] = dict(reward)

    def copy(self) -> "LedgerStore":
        # Records are replaced, never mutated in place, so a shallow copy is a
        # complete checkpoint.
        clone = LedgerStore()
        clone.customers = dict(self.customers)
        clone.rewards = dict(self.rewards)
        clone.transactions = dict(self.transactions)
        clone.redemptions = dict(self.redemptions)
        return clone

    def to_snapshot(self) -> LedgerSnapshot:
        transactions = defaultdict(list)
        for entry in self.transactions.values():
            transactions[entry["customer_id"]].append(entry)
        redemptions = defaultdict(list)
        for entry in self.redemptions.values():
            redemptions[entry["customer_id"]].append(entry)

        customers = [
            CustomerRecord(
                **data,
                transactions=sorted(transactions[customer_id], key=lambda e: e["date"]),
                redemptions=sorted(redemptions[customer_id], key=lambda e: e["date"]),
            )
            for customer_id, data in self.customers.items()
        ]
        return LedgerSnapshot(customers=customers, rewards=list(self.rewards.values()))

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot, tier_table: TierTable = DEFAULT_TIER_TABLE) -> "LedgerStore":
        store = cls()
        for reward in snapshot.rewards:
            store.rewards[reward.id] = reward.model_dump()

        for record in snapshot.customers:
            customer = record.model_dump(exclude={"transactions", "redemptions"})
            earned = 0
            spend = Decimal("0")
            for transaction in record.transactions:
                store.transactions[transaction.id] = transaction.model_dump()
                earned += transaction.points_earned
                spend += transaction.amount
            spent = 0
            for redemption in record.redemptions:
                store.redemptions[redemption.id] = redemption.model_dump()
                spent += redemption.points_spent

            derived = {
                "points_balance": earned - spent,
                "cumulative_spend": spend,
                "tier": tier_table.resolve_tier(spend).name,
            }
            mismatched = {k: customer[k] for k in derived if customer[k] != derived[k]}
            if mismatched:
                logger.warning(
                    "Customer %s stored values %s disagree with history; using %s",
                    record.id, mismatched, derived,
                )
            if derived["points_balance"] < 0:
                raise ValueError(f"Customer {record.id} history yields a negative balance")
            customer.update(derived)
            store.customers[record.id] = customer

        return store


class BlobStore(Protocol):
    def get(self, namespace: str) -> Optional[str]:
        ...

    def set(self, namespace: str, blob: str) -> None:
        ...


class InMemoryBlobStore:
    def __init__(self):
        self.blobs: dict[str, str] = {}

    def get(self, namespace: str) -> Optional[str]:
        return self.blobs.get(namespace)

    def set(self, namespace: str, blob: str) -> None:
        self.blobs[namespace] = blob


class JsonFileBlobStore:
    """One ``<namespace>.json`` file per namespace, replaced atomically on save."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, namespace: str) -> Path:
        return self.directory / f"{namespace}.json"

    def get(self, namespace: str) -> Optional[str]:
        path = self._path(namespace)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, namespace: str, blob: str) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{namespace}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
            os.replace(tmp_path, self._path(namespace))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def load_store(
    blob_store: BlobStore,
    namespace: str,
    tier_table: TierTable = DEFAULT_TIER_TABLE,
    seed_rewards: bool = False,
) -> LedgerStore:
    blob = blob_store.get(namespace)
    if blob is None:
        logger.info("No saved ledger under namespace %r, starting fresh", namespace)
        return LedgerStore(seed_rewards=seed_rewards)
    snapshot = LedgerSnapshot.model_validate_json(blob)
    logger.info(
        "Loaded ledger %r: %d customers, %d rewards",
        namespace, len(snapshot.customers), len(snapshot.rewards),
    )
    return LedgerStore.from_snapshot(snapshot, tier_table)


def save_store(store: LedgerStore, blob_store: BlobStore, namespace: str) -> None:
    blob = store.to_snapshot().model_dump_json()
    blob_store.set(namespace, blob)
    logger.debug("Saved ledger %r (%d bytes)", namespace, len(blob))
