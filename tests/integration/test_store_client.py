"""Integration tests for the transaction store client over a mock transport"""

import json

import httpx
import pytest

from rental_lifecycle.domain.exceptions import AuthorizationError, NotFoundError, StoreError, TransientStoreError
from rental_lifecycle.domain.models import LineItem
from rental_lifecycle.infrastructure.clients.store import TransactionStoreClient

BASE = "https://store.example"


def tx_resource(tx_id="tx-1", state="delivered", protected_data=None):
    return {
        "id": {"uuid": tx_id},
        "type": "transaction",
        "attributes": {"state": state, "protectedData": protected_data or {}, "metadata": {"shipBy": "2025-03-10"}},
        "relationships": {
            "customer": {"data": {"id": {"uuid": "u-1"}, "type": "user"}},
            "provider": {"data": {"id": {"uuid": "u-2"}, "type": "user"}},
            "listing": {"data": {"id": {"uuid": "l-1"}, "type": "listing"}},
            "booking": {"data": {"id": {"uuid": "b-1"}, "type": "booking"}},
        },
    }


INCLUDED = [
    {
        "id": {"uuid": "u-1"},
        "type": "user",
        "attributes": {"profile": {"displayName": "Ana B", "protectedData": {"phone": "5551234567"}}},
    },
    {
        "id": {"uuid": "u-2"},
        "type": "user",
        "attributes": {"profile": {"displayName": "Lee L", "protectedData": {"phoneNumber": "5559876543"}}},
    },
    {
        "id": {"uuid": "l-1"},
        "type": "listing",
        "attributes": {"title": "Silk dress", "price": {"amount": 4500}, "publicData": {"retailPriceCents": 20000}},
    },
    {"id": {"uuid": "b-1"}, "type": "booking", "attributes": {"start": "2025-01-05", "end": "2025-01-10"}},
]


class FakeStore:
    """Request handler standing in for the store API"""

    def __init__(self):
        self.requests = []
        self.protected_data = {"return": {"dueAt": "2025-01-10", "chargeHistory": [{"date": "2025-01-11"}]}}
        self.status_override = None
        self.token_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/auth/token":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        assert request.headers["Authorization"] == "Bearer tok"
        if self.status_override:
            return httpx.Response(self.status_override, text="nope")
        if path.endswith("/transactions/query"):
            return httpx.Response(
                200,
                json={
                    "data": [tx_resource(protected_data=self.protected_data)],
                    "included": INCLUDED,
                    "meta": {"page": 1, "totalPages": 3},
                },
            )
        if path.endswith("/transactions/show"):
            return httpx.Response(200, json={"data": tx_resource(protected_data=self.protected_data), "included": INCLUDED})
        if path.endswith("/transactions/update_metadata") or path.endswith("/transactions/transition"):
            body = json.loads(request.content)
            patch = body.get("protectedData") or body.get("params", {}).get("protectedData") or {}
            self.protected_data = {**self.protected_data, **patch}
            return httpx.Response(200, json={"data": tx_resource(protected_data=self.protected_data)})
        return httpx.Response(404)


@pytest.fixture
def fake() -> FakeStore:
    return FakeStore()


@pytest.fixture
def client(fake: FakeStore) -> TransactionStoreClient:
    return TransactionStoreClient(
        base_url=BASE, client_id="id", client_secret="secret", transport=httpx.MockTransport(fake)
    )


async def test_query_parses_transactions_and_relations(client, fake):
    page = await client.query(["delivered", "accepted"], page=1, per_page=50)

    tx = page.transactions[0]
    assert tx.id == "tx-1"
    assert tx.state == "delivered"
    assert tx.customer.phone == "5551234567"
    assert tx.provider.phone == "5559876543"
    assert tx.listing.public_data["retailPriceCents"] == 20000
    assert tx.booking_end == "2025-01-10"
    assert tx.return_record.due_at == "2025-01-10"
    assert page.next_page == 2

    query = fake.requests[-1].url.params
    assert query["states"] == "delivered,accepted"
    assert query["perPage"] == "50"


async def test_token_is_cached(client, fake):
    await client.show("tx-1")
    await client.show("tx-1")

    assert fake.token_calls == 1


async def test_update_merges_into_fresh_read(client, fake):
    await client.update("tx-1", {"return": {"overdue": {"lastNotifiedDay": 1}}})

    sent = json.loads(fake.requests[-1].content)
    assert sent["protectedData"]["return"] == {
        "dueAt": "2025-01-10",
        "chargeHistory": [{"date": "2025-01-11"}],
        "overdue": {"lastNotifiedDay": 1},
    }


async def test_transition_sends_line_items_and_patch_together(client, fake):
    await client.transition(
        "tx-1",
        "transition/privileged-apply-late-fees-non-return",
        line_items=[LineItem(code="late-fee", unit_price_cents=1500)],
        protected_data_patch={"return": {"lastLateFeeDayCharged": "2025-01-13"}},
    )

    sent = json.loads(fake.requests[-1].content)
    assert sent["transition"] == "transition/privileged-apply-late-fees-non-return"
    assert sent["params"]["lineItems"] == [
        {
            "code": "late-fee",
            "unitPrice": {"amount": 1500, "currency": "USD"},
            "quantity": 1,
            "percentage": 0,
            "includeFor": ["customer"],
        }
    ]
    assert sent["params"]["protectedData"]["return"]["lastLateFeeDayCharged"] == "2025-01-13"
    assert sent["params"]["protectedData"]["return"]["dueAt"] == "2025-01-10"


@pytest.mark.parametrize(
    "status,error",
    [
        (401, AuthorizationError),
        (403, AuthorizationError),
        (404, NotFoundError),
        (409, TransientStoreError),
        (429, TransientStoreError),
        (503, TransientStoreError),
        (422, StoreError),
    ],
)
async def test_status_mapping(client, fake, status, error):
    fake.status_override = status

    with pytest.raises(error) as exc_info:
        await client.show("tx-1")

    assert exc_info.value.status_code == status


async def test_timeout_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = TransactionStoreClient(base_url=BASE, transport=httpx.MockTransport(handler), timeout=1.0)

    with pytest.raises(TransientStoreError):
        await client.show("tx-1")


async def test_malformed_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/auth/token":
            return httpx.Response(200, json={"access_token": "tok"})
        return httpx.Response(200, json={"data": [{"id": "tx-1"}]})

    client = TransactionStoreClient(base_url=BASE, transport=httpx.MockTransport(handler))

    with pytest.raises(StoreError):
        await client.query(["accepted"])
