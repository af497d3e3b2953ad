"""
HTTP tests for the loyalty API, run against a fresh ledger per test.
"""

import pytest
from fastapi.testclient import TestClient

from loyalty.api import app, get_ledger_service
from loyalty.service import LedgerService


DISCOUNT_10_ID = "11111111-1111-1111-1111-111111111111"
FREE_SHIPPING_ID = "55555555-5555-5555-5555-555555555555"
MISSING_ID = "00000000-0000-0000-0000-000000000000"


@pytest.fixture
def client():
    service = LedgerService()
    app.dependency_overrides[get_ledger_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customer_id(client):
    response = client.post("/customers", json={
        "name": "Jane Shopper", "email": "jane@example.com", "phone": "555-0100",
    })
    assert response.status_code == 201
    return response.json()["id"]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_tiers_listed_in_order(client):
    names = [t["name"] for t in client.get("/tiers").json()]
    assert names == ["Bronze", "Silver", "Gold", "Platinum"]


def test_purchase_promotes_customer(client, customer_id):
    response = client.post(f"/customers/{customer_id}/transactions", json={
        "amount": 600, "store_location": "Downtown Store",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["transaction"]["points_earned"] == 600
    assert body["customer"]["tier"] == "Silver"
    assert body["tier_changed"] is True

    second = client.post(f"/customers/{customer_id}/transactions", json={
        "amount": 100, "store_location": "Mall Location",
    }).json()
    assert second["transaction"]["points_earned"] == 125
    assert second["customer"]["points_balance"] == 725
    assert second["tier_changed"] is False


def test_non_positive_purchase_is_bad_request(client, customer_id):
    response = client.post(f"/customers/{customer_id}/transactions", json={
        "amount": 0, "store_location": "Downtown Store",
    })
    assert response.status_code == 400


def test_unknown_customer_is_not_found(client):
    response = client.post(f"/customers/{MISSING_ID}/transactions", json={
        "amount": 10, "store_location": "Downtown Store",
    })
    assert response.status_code == 404


def test_redemption_and_shortfall(client, customer_id):
    client.post(f"/customers/{customer_id}/transactions", json={
        "amount": 500, "store_location": "Downtown Store",
    })

    ok = client.post(f"/customers/{customer_id}/redemptions", json={"reward_id": DISCOUNT_10_ID})
    assert ok.status_code == 201
    assert ok.json()["customer"]["points_balance"] == 0

    short = client.post(f"/customers/{customer_id}/redemptions", json={"reward_id": FREE_SHIPPING_ID})
    assert short.status_code == 400
    assert "300 more points" in short.json()["detail"]


def test_delete_redeemed_reward_conflicts(client, customer_id):
    client.post(f"/customers/{customer_id}/transactions", json={
        "amount": 500, "store_location": "Downtown Store",
    })
    client.post(f"/customers/{customer_id}/redemptions", json={"reward_id": DISCOUNT_10_ID})

    assert client.delete(f"/rewards/{DISCOUNT_10_ID}").status_code == 409
    assert client.delete(f"/rewards/{FREE_SHIPPING_ID}").status_code == 204
    assert client.get(f"/rewards/{FREE_SHIPPING_ID}").status_code == 404


def test_create_reward_validates_cost(client):
    bad = client.post("/rewards", json={"name": "Free Gift", "points_cost": 0})
    assert bad.status_code == 422

    good = client.post("/rewards", json={
        "name": "Free Gift", "description": "A gift", "points_cost": 50, "category": "Product",
    })
    assert good.status_code == 201
    assert good.json()["category"] == "Product"


def test_customer_listing_filters(client, customer_id):
    client.post("/customers", json={"name": "Alex", "email": "alex@example.com", "phone": "555-0200"})

    silver = client.get("/customers", params={"tier": "Silver"}).json()
    assert silver == []

    found = client.get("/customers", params={"search": "jane"}).json()
    assert [c["id"] for c in found] == [customer_id]


def test_stats_endpoints(client, customer_id):
    client.post(f"/customers/{customer_id}/transactions", json={
        "amount": 600, "store_location": "Downtown Store",
    })

    monthly = client.get("/stats/monthly").json()
    assert len(monthly) == 6
    assert monthly[-1]["points_earned"] == 600

    tiers = client.get("/stats/tiers").json()
    assert {t["tier"]: t["count"] for t in tiers}["Silver"] == 1

    categories = client.get("/stats/redemptions").json()
    assert len(categories) == 3

    assert client.get("/stats/points").json()["total_available"] == 600


def test_history_and_tier_progress(client, customer_id):
    client.post(f"/customers/{customer_id}/transactions", json={
        "amount": 750, "store_location": "Downtown Store",
    })

    history = client.get(f"/customers/{customer_id}/history").json()
    assert history["total_transactions"] == 1

    progress = client.get(f"/customers/{customer_id}/tier-progress").json()
    assert progress["current_tier"]["name"] == "Silver"
    assert progress["next_tier"]["name"] == "Gold"


def test_delete_customer_with_history_conflicts(client, customer_id):
    client.post(f"/customers/{customer_id}/transactions", json={
        "amount": 10, "store_location": "Downtown Store",
    })
    assert client.delete(f"/customers/{customer_id}").status_code == 409
