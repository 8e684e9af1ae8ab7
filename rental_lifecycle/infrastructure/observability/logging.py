"""Structured JSON logging for scheduled jobs"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from rental_lifecycle.config import settings
from rental_lifecycle.utils.phone import mask_phone


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_reminder(
    job: str,
    tx_id: str,
    window: str,
    outcome: str,
    phone: Optional[str] = None,
    tag: Optional[str] = None,
    reason: Optional[str] = None,
    dry_run: bool = False,
    body: Optional[str] = None,
) -> None:
    """Log one reminder decision (sent, skipped, failed, or would-send in dry-run)"""
    extra = {
        "job": job,
        "tx_id": tx_id,
        "window": window,
        "outcome": outcome,
        "to": mask_phone(phone) if phone else None,
        "tag": tag,
        "reason": reason,
        "dry_run": dry_run,
    }
    if body is not None:
        extra["body"] = body

    if outcome == "failed":
        logging.error("Reminder failed", extra=extra)
    elif outcome == "skipped":
        logging.debug("Reminder skipped", extra=extra)
    else:
        logging.info("Reminder %s", outcome, extra=extra)


def log_charge(job: str, tx_id: str, result: Any, dry_run: bool = False) -> None:
    """Log a charge evaluation result"""
    logging.info(
        "Charge evaluated",
        extra={
            "job": job,
            "tx_id": tx_id,
            "charged": result.charged,
            "scenario": result.scenario,
            "late_days": result.late_days,
            "items": result.items,
            "total_cents": result.total_cents,
            "reason": result.reason,
            "dry_run": dry_run,
        },
    )


def log_run_summary(summary: Any) -> None:
    """Log end-of-run counts"""
    logging.info("Run complete", extra={"step": "run_complete", **summary.to_dict()})
