"""Integration tests for lender shipping reminders and auto-cancel"""

from datetime import datetime, timezone

import pytest

from rental_lifecycle.domain.exceptions import TransientStoreError
from rental_lifecycle.jobs.shipping_reminders import CANCEL_TRANSITION, ShippingReminderJob
from rental_lifecycle.jobs.windowed import JobOptions


def utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 3, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def job(store, dispatcher, shortener, calendar) -> ShippingReminderJob:
    return ShippingReminderJob(store, dispatcher, shortener, calendar)


def outbound(make_tx, tx_id="tx-1", label="https://label.example/out", **outbound_fields):
    """Accepted rental whose lender must ship by March 10"""
    fields = {"labelUrl": label, **outbound_fields} if label else outbound_fields
    return make_tx(
        tx_id=tx_id,
        state="accepted",
        metadata={"shipBy": "2025-03-10"},
        protected_data={"outbound": fields},
    )


def reminders(store, tx_id="tx-1"):
    return store.get(tx_id).outbound_record


async def test_24h_reminder(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx))

    summary = await job.run(JobOptions(now=utc(9, 12)))

    assert summary.sent == 1
    assert dispatcher.tags == ["shipping_reminder_24h"]
    assert dispatcher.sent[0]["to"] == "+15559876543"
    assert "(Mar 10)" in dispatcher.sent[0]["body"]
    assert "https://label.example/out" in dispatcher.sent[0]["body"]
    assert reminders(store).sent_24h
    assert not reminders(store).sent_end_of_day


async def test_end_of_day_reminder(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx, shippingReminders={"sent24h": True}))

    await job.run(JobOptions(now=utc(10, 23, 55)))

    assert dispatcher.tags == ["shipping_reminder_end_of_day"]
    assert reminders(store).sent_end_of_day


async def test_between_windows_nothing_sent(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx))

    summary = await job.run(JobOptions(now=utc(10, 12)))

    assert summary.skipped == 1
    assert dispatcher.sent == []


async def test_reminder_needs_label(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx, label=None))

    summary = await job.run(JobOptions(now=utc(9, 12)))

    assert summary.skipped == 1
    assert dispatcher.sent == []


async def test_shipped_item_is_skipped(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx, firstScanAt="2025-03-09T10:00:00Z"))

    summary = await job.run(JobOptions(now=utc(9, 12)))

    assert summary.skipped == 1
    assert dispatcher.sent == []


async def test_return_only_transaction_is_skipped(job, store, dispatcher, make_tx):
    tx = outbound(make_tx)
    tx.metadata["direction"] = "return"
    store.add(tx)

    await job.run(JobOptions(now=utc(9, 12)))

    assert dispatcher.sent == []


async def test_auto_cancel_cancels_then_notifies(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx))

    summary = await job.run(JobOptions(now=utc(12, 6)))

    assert summary.sent == 1
    assert store.transitions[0]["name"] == CANCEL_TRANSITION
    assert store.get("tx-1").state == "cancelled"
    assert dispatcher.tags == ["shipping_auto_cancel"]
    assert reminders(store).auto_cancel_sent


async def test_auto_cancel_already_terminal_still_notifies(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx))
    store.fail("transition", TransientStoreError("Store transition failed: 409", status_code=409))

    summary = await job.run(JobOptions(now=utc(12, 6)))

    assert summary.sent == 1
    assert dispatcher.tags == ["shipping_auto_cancel"]
    assert reminders(store).auto_cancel_sent


async def test_auto_cancel_failure_sends_nothing(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx))
    store.fail("transition", TransientStoreError("Store transition failed: 503", status_code=503))

    summary = await job.run(JobOptions(now=utc(12, 6)))

    assert summary.failed == 1
    assert dispatcher.sent == []
    assert not reminders(store).auto_cancel_sent


async def test_auto_cancel_dry_run(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx))

    summary = await job.run(JobOptions(now=utc(12, 6), dry_run=True))

    assert summary.sent == 1
    assert store.transitions == []
    assert store.updates == []
    assert dispatcher.sent == []
    assert store.get("tx-1").state == "accepted"


async def test_auto_cancel_in_simulate_mode_persists(job, store, dispatcher, make_tx):
    """Simulated SMS still cancels and sets the flag"""
    dispatcher.simulate = True
    store.add(outbound(make_tx))

    await job.run(JobOptions(now=utc(12, 6)))

    assert store.get("tx-1").state == "cancelled"
    assert reminders(store).auto_cancel_sent


async def test_past_auto_cancel_window(job, store, dispatcher, make_tx):
    store.add(outbound(make_tx))

    await job.run(JobOptions(now=utc(13, 6)))

    assert store.transitions == []
    assert dispatcher.sent == []
