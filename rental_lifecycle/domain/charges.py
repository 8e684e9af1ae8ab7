"""
Late fee and replacement charge engine.

Charges are applied through a single privileged transition that carries the
new line items and the idempotency state patch together, so a failed
transition leaves neither applied.

Idempotency (protectedData.return):
- lastLateFeeDayCharged: effective date (YYYY-MM-DD) of the last daily fee
- replacementCharged: once true, nothing else is ever charged
- chargeHistory: append-only audit log
"""

import logging
from datetime import datetime
from typing import List, Optional

from rental_lifecycle.domain.calendar import HolidayCalendar
from rental_lifecycle.domain.exceptions import ChargeError, NotFoundError, ValidationError
from rental_lifecycle.domain.models import ChargeHistoryEntry, ChargeResult, LineItem, Listing
from rental_lifecycle.domain.ports import TransactionStore
from rental_lifecycle.domain.scenarios import NEVER_RETURNED, RETURNED_LATE, classify
from rental_lifecycle.domain.state import resolve_return_due
from rental_lifecycle.utils.date_utils import to_utc_datetime

logger = logging.getLogger(__name__)

LATE_FEE_CODE = "late-fee"
REPLACEMENT_CODE = "replacement"

TRANSITIONS = {
    RETURNED_LATE: "transition/privileged-apply-late-fees",
    NEVER_RETURNED: "transition/privileged-apply-late-fees-non-return",
}


class ReplacementPolicy:
    """Decides whether lateness has reached the point of charging replacement value"""

    name = "base"

    def wants_replacement(self, late_days: int) -> bool:
        raise NotImplementedError


class ManualReplacementPolicy(ReplacementPolicy):
    """Replacement is only ever charged by an operator; the engine keeps adding daily fees"""

    name = "manual"

    def wants_replacement(self, late_days: int) -> bool:
        return False


class AutomaticReplacementPolicy(ReplacementPolicy):
    """Charge the listing's replacement value once lateness reaches the threshold"""

    name = "automatic"

    def __init__(self, threshold_days: int = 5):
        if threshold_days < 1:
            raise ValueError("threshold_days must be at least 1")
        self.threshold_days = threshold_days

    def wants_replacement(self, late_days: int) -> bool:
        return late_days >= self.threshold_days


def build_replacement_policy(kind: str, threshold_days: int = 5) -> ReplacementPolicy:
    if kind == "manual":
        return ManualReplacementPolicy()
    if kind == "automatic":
        return AutomaticReplacementPolicy(threshold_days)
    raise ValueError(f"Unknown replacement policy: {kind}")


def get_replacement_value(listing: Listing) -> int:
    """
    Replacement value in cents.

    Priority: publicData.replacementValueCents, publicData.retailPriceCents,
    listing price. There is no default; a listing without any of them raises
    ValidationError.
    """
    public_data = listing.public_data or {}
    for key in ("replacementValueCents", "retailPriceCents"):
        value = public_data.get(key)
        if isinstance(value, int) and value > 0:
            return value
    if listing.price_cents and listing.price_cents > 0:
        return listing.price_cents
    raise ValidationError(
        f"No replacement value found for listing {listing.id}. "
        "Set publicData.replacementValueCents or publicData.retailPriceCents."
    )


class ChargeEngine:
    """Applies idempotent late-fee / replacement line items to one transaction at a time"""

    def __init__(
        self,
        store: TransactionStore,
        calendar: HolidayCalendar,
        policy: ReplacementPolicy,
        late_fee_cents: int = 1500,
        currency: str = "USD",
    ):
        self.store = store
        self.calendar = calendar
        self.policy = policy
        self.late_fee_cents = late_fee_cents
        self.currency = currency

    async def apply_charges(self, tx_id: str, now: datetime, commit: bool = True) -> ChargeResult:
        """
        Evaluate and apply charges for a transaction.

        With commit=False the same evaluation runs but no transition is issued;
        the would-be line items come back with committed=False.

        Raises:
            ChargeError: wrapping any read, validation or write failure, with the
                transaction id and timestamp attached
        """
        try:
            return await self._apply(tx_id, now, commit)
        except Exception as e:
            timestamp = to_utc_datetime(now).isoformat()
            logger.error(
                "Charge application failed",
                extra={"tx_id": tx_id, "charge_timestamp": timestamp, "error": str(e), "error_type": type(e).__name__},
            )
            raise ChargeError(tx_id, timestamp, e) from e

    async def _apply(self, tx_id: str, now: datetime, commit: bool) -> ChargeResult:
        tx = await self.store.show(tx_id)
        record = tx.return_record

        due_at = resolve_return_due(tx)
        if not due_at:
            raise ValidationError(
                f"No return due date found for transaction {tx_id}. Expected return.dueAt or booking end."
            )

        classification = classify(
            state=tx.state,
            first_scan_at=record.first_scan_at,
            status=record.status,
            due_at=due_at,
            now=now,
            calendar=self.calendar,
        )
        if not classification.is_modeled:
            logger.warning(
                "Unexpected scenario, not charging",
                extra={"tx_id": tx_id, "state": tx.state, "reason": classification.reason},
            )
            return ChargeResult(charged=False, scenario=classification.scenario, reason=classification.reason)

        scenario = classification.scenario
        late_days = classification.late_days
        effective_date = classification.effective_date

        if late_days < 1:
            return ChargeResult(charged=False, scenario=scenario, late_days=late_days, reason="not-overdue")

        if record.replacement_charged:
            return ChargeResult(
                charged=False, scenario=scenario, late_days=late_days, reason="replacement-already-charged"
            )

        line_items: List[LineItem] = []
        if self.policy.wants_replacement(late_days):
            if tx.listing is None:
                raise NotFoundError(f"Listing not found for transaction {tx_id}", status_code=404)
            line_items.append(
                LineItem(code=REPLACEMENT_CODE, unit_price_cents=get_replacement_value(tx.listing), currency=self.currency)
            )
        elif record.last_late_fee_day_charged != effective_date:
            line_items.append(LineItem(code=LATE_FEE_CODE, unit_price_cents=self.late_fee_cents, currency=self.currency))

        if not line_items:
            return ChargeResult(
                charged=False,
                scenario=scenario,
                late_days=late_days,
                effective_date=effective_date,
                reason="no-op",
            )

        patch = self._state_patch(record.charge_history, line_items, scenario, late_days, effective_date, now)

        if not commit:
            return ChargeResult(
                charged=False,
                scenario=scenario,
                late_days=late_days,
                effective_date=effective_date,
                line_items=line_items,
                reason="preview",
                committed=False,
            )

        await self.store.transition(tx_id, TRANSITIONS[scenario], line_items=line_items, protected_data_patch=patch)

        logger.info(
            "Charges applied",
            extra={
                "tx_id": tx_id,
                "scenario": scenario,
                "late_days": late_days,
                "effective_date": effective_date,
                "items": [item.code for item in line_items],
                "total_cents": sum(item.unit_price_cents for item in line_items),
            },
        )
        return ChargeResult(
            charged=True,
            scenario=scenario,
            late_days=late_days,
            effective_date=effective_date,
            line_items=line_items,
        )

    def _state_patch(
        self,
        history: List[dict],
        line_items: List[LineItem],
        scenario: str,
        late_days: int,
        effective_date: Optional[str],
        now: datetime,
    ) -> dict:
        entry = ChargeHistoryEntry(
            date=effective_date or "",
            scenario=scenario,
            items=[{"code": item.code, "amount": item.unit_price_cents} for item in line_items],
            late_days=late_days,
            timestamp=to_utc_datetime(now).isoformat(),
        )
        return_patch = {"chargeHistory": [*history, entry.to_dict()]}
        codes = {item.code for item in line_items}
        if LATE_FEE_CODE in codes:
            return_patch["lastLateFeeDayCharged"] = effective_date
        if REPLACEMENT_CODE in codes:
            return_patch["replacementCharged"] = True
        return {"return": return_patch}
