"""
Unit Tests for ledger persistence

Tests cover:
1. JSON file blob store
2. Snapshot shape
3. Derived values on load
"""

import json
from decimal import Decimal
from uuid import UUID

import pytest

from loyalty.models import TierName
from loyalty.service import LedgerService
from loyalty.storage import (
    InMemoryBlobStore,
    JsonFileBlobStore,
    LedgerStore,
    load_store,
    save_store,
)


DISCOUNT_10_ID = UUID("11111111-1111-1111-1111-111111111111")


class TestJsonFileBlobStore:
    """Tests for the file-backed blob store."""

    def test_missing_namespace_returns_none(self, tmp_path):
        assert JsonFileBlobStore(tmp_path).get("loyalty") is None

    def test_set_then_get(self, tmp_path):
        store = JsonFileBlobStore(tmp_path / "data")
        store.set("loyalty", '{"customers": [], "rewards": []}')

        assert (tmp_path / "data" / "loyalty.json").exists()
        assert store.get("loyalty") == '{"customers": [], "rewards": []}'
        assert [p.name for p in (tmp_path / "data").iterdir()] == ["loyalty.json"]

    def test_failed_write_leaves_no_temp_file(self, tmp_path):
        store = JsonFileBlobStore(tmp_path)
        store.set("loyalty", "{}")

        with pytest.raises(UnicodeEncodeError):
            store.set("loyalty", "\ud800")

        assert [p.name for p in tmp_path.iterdir()] == ["loyalty.json"]
        assert store.get("loyalty") == "{}"

    def test_ledger_reloads_from_disk(self, tmp_path, clock):
        service = LedgerService(blob_store=JsonFileBlobStore(tmp_path), clock=clock)
        customer = service.create_customer("Jane Shopper", "jane@example.com", "555-0100")
        service.record_transaction(customer.id, Decimal("1200.50"), "Downtown Store")

        reloaded = LedgerService(blob_store=JsonFileBlobStore(tmp_path), clock=clock)

        restored = reloaded.get_customer(customer.id)
        assert restored.cumulative_spend == Decimal("1200.50")
        assert restored.tier == TierName.GOLD
        assert restored.points_balance == 1200


class TestSnapshot:
    """Tests for the whole-state snapshot."""

    def test_snapshot_nests_history_under_customers(self, service, customer):
        service.record_transaction(customer.id, Decimal("500"), "Downtown Store")
        service.record_redemption(customer.id, DISCOUNT_10_ID)

        payload = json.loads(service.snapshot().model_dump_json())

        assert set(payload) == {"customers", "rewards"}
        record = payload["customers"][0]
        assert len(record["transactions"]) == 1
        assert record["redemptions"][0]["reward"]["name"] == "10% Discount"

    def test_fresh_namespace_is_seeded(self):
        store = load_store(InMemoryBlobStore(), "loyalty", seed_rewards=True)

        assert DISCOUNT_10_ID in store.rewards
        assert store.customers == {}

    def test_load_derives_balance_from_history(self, service, customer):
        service.record_transaction(customer.id, Decimal("600"), "Downtown Store")
        blob_store = InMemoryBlobStore()
        save_store(service.storage, blob_store, "loyalty")

        payload = json.loads(blob_store.get("loyalty"))
        payload["customers"][0]["points_balance"] = 99999
        payload["customers"][0]["tier"] = "Platinum"
        blob_store.set("loyalty", json.dumps(payload))

        store = load_store(blob_store, "loyalty")

        restored = store.customers[customer.id]
        assert restored["points_balance"] == 600
        assert restored["tier"] == TierName.SILVER

    def test_copy_is_independent(self):
        store = LedgerStore(seed_rewards=True)
        clone = store.copy()
        del clone.rewards[DISCOUNT_10_ID]

        assert DISCOUNT_10_ID in store.rewards


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
