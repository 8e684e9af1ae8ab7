"""
Console entry points for the three reminder jobs.

    send-return-reminders [--dry-run] [--verbose] [--limit N] [--only-phone P]
                          [--now TS] [--store-seed FILE] [--daemon [--interval S] [--ops-port PORT]]

Exit status is 0 when the run completes (individual transaction failures are
reported in the summary) and 1 on a fatal error such as a failed candidate
query or an exhausted holiday calendar.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, time
from typing import List, Optional

from rental_lifecycle.config import settings
from rental_lifecycle.infrastructure.observability.logging import setup_logging
from rental_lifecycle.jobs.overdue_reminders import OverdueReminderJob
from rental_lifecycle.jobs.return_reminders import ReturnReminderJob
from rental_lifecycle.jobs.runner import build_job, get_store, run_daemon, run_once
from rental_lifecycle.jobs.shipping_reminders import ShippingReminderJob
from rental_lifecycle.jobs.windowed import JobOptions
from rental_lifecycle.utils.date_utils import get_zone, parse_timestamp, to_utc_datetime

logger = logging.getLogger(__name__)


def parse_now(value: str) -> datetime:
    """
    Parse --now.

    A bare date means noon of that day in the business timezone, so the
    local calendar day is the one given; timestamps are taken as written.
    """
    try:
        parsed = parse_timestamp(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid --now value {value!r}: {e}") from e
    if isinstance(parsed, datetime):
        return to_utc_datetime(parsed)
    return to_utc_datetime(datetime.combine(parsed, time(12), tzinfo=get_zone(settings.business_timezone)))


def build_parser(job_name: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=job_name, description=f"Run the {job_name} job.")
    parser.add_argument("--dry-run", action="store_true", default=settings.dry_run,
                        help="Log would-be messages and charges without sending or writing anything")
    parser.add_argument("--verbose", action="store_true", default=settings.verbose,
                        help="Debug logging, including skip decisions and message bodies")
    parser.add_argument("--limit", type=int, default=settings.send_limit,
                        help="Maximum sends this run (default: unlimited)")
    parser.add_argument("--only-phone", default=settings.only_phone,
                        help="Only message this recipient (controlled testing)")
    parser.add_argument("--now", type=parse_now, default=None,
                        help="Simulated current time, ISO date or timestamp")
    parser.add_argument("--store-seed", default=settings.store_seed_path,
                        help="Rehearse against an in-memory store seeded from this JSON file")
    parser.add_argument("--daemon", action="store_true", help="Run continuously on a fixed interval")
    parser.add_argument("--interval", type=float, default=None,
                        help="Seconds between daemon runs (default: per-job setting)")
    parser.add_argument("--ops-port", type=int, default=settings.ops_port,
                        help="Serve /health, /metrics and /v1/runs on this port in daemon mode")
    return parser


def main(job_name: str, argv: Optional[List[str]] = None) -> int:
    args = build_parser(job_name).parse_args(argv)
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    if args.limit < 0:
        logger.error("--limit must not be negative", extra={"job": job_name})
        return 1

    options = JobOptions(
        dry_run=args.dry_run,
        only_phone=args.only_phone,
        now=args.now or (to_utc_datetime(settings.force_now) if settings.force_now else None),
        send_limit=args.limit,
        verbose=args.verbose,
    )

    try:
        job = build_job(job_name, store=get_store(args.store_seed))
        if args.daemon:
            asyncio.run(run_daemon(job, options, interval=args.interval, ops_port=args.ops_port))
        else:
            asyncio.run(run_once(job, options))
    except KeyboardInterrupt:
        logger.info("Interrupted", extra={"job": job_name})
    except Exception as e:
        logger.error("Job failed", extra={"job": job_name, "error": str(e), "error_type": type(e).__name__})
        return 1
    return 0


def send_return_reminders() -> None:
    sys.exit(main(ReturnReminderJob.name))


def send_shipping_reminders() -> None:
    sys.exit(main(ShippingReminderJob.name))


def send_overdue_reminders() -> None:
    sys.exit(main(OverdueReminderJob.name))
