"""Pytest fixtures for testing"""

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from rental_lifecycle.api.main import create_app
from rental_lifecycle.domain.calendar import HolidayCalendar
from rental_lifecycle.domain.charges import ChargeEngine, ManualReplacementPolicy
from rental_lifecycle.domain.exceptions import DispatchError
from rental_lifecycle.domain.models import Listing, Party, SendResult, Transaction
from rental_lifecycle.infrastructure.clients.memory_store import InMemoryTransactionStore


class RecordingDispatcher:
    """Dispatcher double that records every message instead of sending it"""

    def __init__(self, simulate: bool = False, configured: bool = True):
        self.simulate = simulate
        self.configured = configured
        self.sent: List[Dict[str, Any]] = []
        self.fail_to: set = set()

    def is_configured(self) -> bool:
        return self.configured

    async def send(self, to: str, body: str, tag: str, meta: Optional[Dict[str, Any]] = None) -> SendResult:
        if to in self.fail_to:
            raise DispatchError("SMS provider error: 500")
        self.sent.append({"to": to, "body": body, "tag": tag, "meta": meta or {}})
        sid = f"SIMULATED-{len(self.sent)}" if self.simulate else f"SM{len(self.sent)}"
        return SendResult(sid=sid, status="queued", simulated=self.simulate)

    @property
    def tags(self) -> List[str]:
        return [message["tag"] for message in self.sent]


class PassThroughShortener:
    """Shortener double returning URLs unchanged"""

    def __init__(self):
        self.calls: List[str] = []

    async def shorten(self, url: str) -> str:
        self.calls.append(url)
        return url


@pytest.fixture
def make_tx():
    """Factory for transactions with a borrower, a lender and a listing"""

    def _make(
        tx_id: str = "tx-1",
        state: str = "accepted",
        protected_data: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        booking_end: Optional[str] = None,
        customer_phone: Optional[str] = "555-123-4567",
        provider_phone: Optional[str] = "(555) 987-6543",
        listing: Optional[Listing] = None,
    ) -> Transaction:
        return Transaction(
            id=tx_id,
            state=state,
            booking_end=booking_end,
            protected_data=protected_data or {},
            metadata=metadata or {},
            customer=Party(id=f"{tx_id}-customer", phone=customer_phone, display_name="Borrower"),
            provider=Party(id=f"{tx_id}-provider", phone=provider_phone, display_name="Lender"),
            listing=listing
            or Listing(
                id=f"{tx_id}-listing",
                title="Silk midi dress",
                price_cents=4500,
                public_data={"replacementValueCents": 18000},
            ),
        )

    return _make


@pytest.fixture
def calendar() -> HolidayCalendar:
    """Bundled USPS calendar in Pacific time"""
    return HolidayCalendar.bundled("America/Los_Angeles")


@pytest.fixture
def store() -> InMemoryTransactionStore:
    return InMemoryTransactionStore()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def shortener() -> PassThroughShortener:
    return PassThroughShortener()


@pytest.fixture
def engine(store: InMemoryTransactionStore, calendar: HolidayCalendar) -> ChargeEngine:
    """Charge engine with manual replacement and a $15/day fee"""
    return ChargeEngine(store=store, calendar=calendar, policy=ManualReplacementPolicy(), late_fee_cents=1500)


@pytest.fixture
def client() -> TestClient:
    """Ops API test client"""
    return TestClient(create_app())
