"""Phone number normalization and recipient lookup"""

import re
from typing import Optional

from rental_lifecycle.domain.models import Transaction

COUNTRY_CODES = {"US": "1", "CA": "1", "UK": "44", "GB": "44"}
MIN_PHONE_LENGTH = 7


def normalize_phone_e164(phone: Optional[str], default_country: str = "US") -> Optional[str]:
    """
    Normalize a phone number to E.164.

    "5551234567" -> "+15551234567", "(555) 123-4567" -> "+15551234567".
    Values that cannot be normalized are returned unchanged.
    """
    if not phone:
        return phone

    country_code = COUNTRY_CODES.get(default_country.upper(), "1")
    cleaned = re.sub(r"[^\d+]", "", str(phone).strip())

    if cleaned.startswith("+"):
        return cleaned if len(cleaned) >= 8 else phone
    if len(cleaned) == 10:
        return f"+{country_code}{cleaned}"
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return f"+{cleaned}"
    if len(cleaned) > 10:
        return f"+{cleaned}"
    if cleaned:
        return f"+{country_code}{cleaned}"
    return phone


def mask_phone(phone: Optional[str]) -> str:
    """Hide all but the last four digits for logging"""
    if not phone:
        return "(none)"
    return re.sub(r"\d(?=\d{4})", "*", phone)


def _candidate(value) -> Optional[str]:
    text = str(value).strip() if value else ""
    return text if len(text) >= MIN_PHONE_LENGTH else None


def resolve_borrower_phone(tx: Transaction) -> Optional[str]:
    """Checkout-entered phone on the transaction first, then the customer's profile phone"""
    pd = tx.protected_data
    checkout = pd.get("checkoutDetails") or {}
    for value in (
        pd.get("customerPhone"),
        pd.get("phone"),
        pd.get("customer_phone"),
        checkout.get("customerPhone"),
        checkout.get("phone"),
        tx.customer.phone if tx.customer else None,
    ):
        phone = _candidate(value)
        if phone:
            return normalize_phone_e164(phone)
    return None


def resolve_lender_phone(tx: Transaction) -> Optional[str]:
    phone = _candidate(tx.provider.phone if tx.provider else None)
    return normalize_phone_e164(phone) if phone else None
