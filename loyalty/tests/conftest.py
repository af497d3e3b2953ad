"""Shared fixtures for ledger tests."""

from datetime import datetime, timezone

import pytest

from loyalty.service import LedgerService


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def service(clock):
    return LedgerService(clock=clock)


@pytest.fixture
def customer(service):
    return service.create_customer("Jane Shopper", "jane@example.com", "555-0100")
