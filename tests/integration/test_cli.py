"""Tests for the console entry points"""

import argparse
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from rental_lifecycle import cli
from rental_lifecycle.domain.exceptions import TransientStoreError
from rental_lifecycle.infrastructure.clients.memory_store import InMemoryTransactionStore
from rental_lifecycle.infrastructure.clients.store import TransactionStoreClient
from rental_lifecycle.jobs.windowed import RunSummary


SEED_DOCUMENT = {
    "data": [
        {
            "id": {"uuid": "tx-seed"},
            "type": "transaction",
            "attributes": {"state": "state/delivered", "protectedData": {"return": {"dueAt": "2025-01-10"}}},
        }
    ],
    "included": [],
}


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("rental_lifecycle.cli.setup_logging"):
        yield


def test_parse_now_date_is_local_noon():
    """A bare date stays that calendar day in Los Angeles"""
    assert cli.parse_now("2025-01-10") == datetime(2025, 1, 10, 20, 0, tzinfo=timezone.utc)


def test_parse_now_timestamp():
    assert cli.parse_now("2025-01-10T23:55:00Z") == datetime(2025, 1, 10, 23, 55, tzinfo=timezone.utc)


def test_parse_now_rejects_garbage():
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_now("yesterday")


@patch("rental_lifecycle.cli.run_once", new_callable=AsyncMock)
@patch("rental_lifecycle.cli.build_job")
def test_flags_become_job_options(mock_build, mock_run):
    mock_run.return_value = RunSummary(job="return-reminders")

    code = cli.main(
        "return-reminders",
        ["--dry-run", "--limit", "3", "--only-phone", "5551234567", "--now", "2025-01-10"],
    )

    assert code == 0
    assert mock_build.call_args.args == ("return-reminders",)
    assert isinstance(mock_build.call_args.kwargs["store"], TransactionStoreClient)
    options = mock_run.call_args.args[1]
    assert options.dry_run
    assert options.send_limit == 3
    assert options.only_phone == "5551234567"
    assert options.now == datetime(2025, 1, 10, 20, 0, tzinfo=timezone.utc)


@patch("rental_lifecycle.cli.run_once", new_callable=AsyncMock)
def test_store_seed_runs_against_memory_store(mock_run, tmp_path):
    seed = tmp_path / "transactions.json"
    seed.write_text(json.dumps(SEED_DOCUMENT), encoding="utf-8")
    mock_run.return_value = RunSummary(job="overdue-reminders")

    code = cli.main("overdue-reminders", ["--store-seed", str(seed), "--dry-run"])

    assert code == 0
    job = mock_run.call_args.args[0]
    assert isinstance(job.store, InMemoryTransactionStore)
    assert job.engine.store is job.store
    assert job.store.get("tx-seed").state == "delivered"


def test_unreadable_store_seed_exits_nonzero(tmp_path):
    assert cli.main("return-reminders", ["--store-seed", str(tmp_path / "missing.json")]) == 1


@patch("rental_lifecycle.cli.run_once", new_callable=AsyncMock)
@patch("rental_lifecycle.cli.build_job")
def test_fatal_error_exits_nonzero(mock_build, mock_run):
    mock_run.side_effect = TransientStoreError("Store query failed: 503", status_code=503)

    assert cli.main("overdue-reminders", []) == 1


def test_negative_limit_rejected():
    assert cli.main("shipping-reminders", ["--limit", "-1"]) == 1


@patch("rental_lifecycle.cli.run_daemon", new_callable=AsyncMock)
@patch("rental_lifecycle.cli.build_job")
def test_daemon_mode(mock_build, mock_daemon):
    code = cli.main("shipping-reminders", ["--daemon", "--interval", "60", "--ops-port", "9100"])

    assert code == 0
    assert mock_daemon.call_args.kwargs == {"interval": 60.0, "ops_port": 9100}


@patch("rental_lifecycle.cli.main", return_value=0)
def test_console_scripts_exit_with_status(mock_main):
    with pytest.raises(SystemExit) as exc_info:
        cli.send_overdue_reminders()

    assert exc_info.value.code == 0
    mock_main.assert_called_once_with("overdue-reminders")
