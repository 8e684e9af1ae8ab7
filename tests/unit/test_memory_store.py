"""Unit tests for the in-memory transaction store"""

import json

import pytest

from rental_lifecycle.domain.exceptions import NotFoundError, StoreError, TransientStoreError
from rental_lifecycle.domain.models import LineItem
from rental_lifecycle.infrastructure.clients.memory_store import InMemoryTransactionStore


async def test_query_pages_by_state(store, make_tx):
    for i in range(3):
        store.add(make_tx(f"tx-{i}", state="delivered"))
    store.add(make_tx("tx-other", state="accepted"))

    first = await store.query(["delivered"], page=1, per_page=2)
    second = await store.query(["delivered"], page=first.next_page, per_page=2)

    assert [tx.id for tx in first.transactions] == ["tx-0", "tx-1"]
    assert first.next_page == 2
    assert [tx.id for tx in second.transactions] == ["tx-2"]
    assert second.next_page is None


async def test_update_merges_and_reads_are_copies(store, make_tx):
    store.add(make_tx(protected_data={"return": {"dueAt": "2025-01-10"}}))

    shown = await store.show("tx-1")
    shown.protected_data["return"]["dueAt"] = "tampered"
    await store.update("tx-1", {"return": {"tMinus1SentAt": "2025-01-09T20:00:00+00:00"}})

    assert store.get("tx-1").protected_data == {
        "return": {"dueAt": "2025-01-10", "tMinus1SentAt": "2025-01-09T20:00:00+00:00"}
    }


async def test_transition_records_line_items_and_state(store, make_tx):
    store.add(make_tx())

    await store.transition("tx-1", "transition/cancel")
    await store.transition(
        "tx-1",
        "transition/privileged-apply-late-fees",
        line_items=[LineItem(code="late-fee", unit_price_cents=1500)],
        protected_data_patch={"return": {"lastLateFeeDayCharged": "2025-01-13"}},
    )

    assert store.get("tx-1").state == "cancelled"
    assert [t["line_items"] for t in store.transitions] == [[], ["late-fee"]]
    assert store.get("tx-1").protected_data["return"]["lastLateFeeDayCharged"] == "2025-01-13"


async def test_missing_transaction_and_injected_failure(store, make_tx):
    store.add(make_tx())
    store.fail("update", TransientStoreError("store down", status_code=503), tx_id="tx-1")

    with pytest.raises(NotFoundError):
        await store.show("tx-missing")
    with pytest.raises(TransientStoreError):
        await store.update("tx-1", {"a": 1})


def test_seeded_from_store_document(tmp_path):
    seed = tmp_path / "seed.json"
    seed.write_text(
        json.dumps(
            {
                "data": [
                    {
                        "id": {"uuid": "tx-9"},
                        "type": "transaction",
                        "attributes": {"state": "state/accepted", "protectedData": {"outbound": {"shipByDate": "2025-03-10"}}},
                        "relationships": {"provider": {"data": {"id": {"uuid": "user-2"}, "type": "user"}}},
                    }
                ],
                "included": [
                    {
                        "id": {"uuid": "user-2"},
                        "type": "user",
                        "attributes": {"profile": {"protectedData": {"phone": "555-987-6543"}}},
                    }
                ],
            }
        ),
        encoding="utf-8",
    )

    store = InMemoryTransactionStore.from_file(str(seed))

    tx = store.get("tx-9")
    assert tx.state == "accepted"
    assert tx.provider.phone == "555-987-6543"


def test_seed_must_be_a_store_document(tmp_path):
    seed = tmp_path / "seed.json"
    seed.write_text("[]", encoding="utf-8")

    with pytest.raises(StoreError):
        InMemoryTransactionStore.from_file(str(seed))
