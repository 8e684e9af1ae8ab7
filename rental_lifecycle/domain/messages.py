"""SMS templates for the reminder windows"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Template:
    tag: str
    body: str
    fallback_body: Optional[str] = None  # link-free variant
    fallback_tag: Optional[str] = None


@dataclass
class Message:
    tag: str
    body: str
    link: Optional[str] = None


def format_cents(cents: int) -> str:
    return f"${cents / 100:.0f}" if cents % 100 == 0 else f"${cents / 100:.2f}"


def compose(template: Template, link: Optional[str], max_length: int, **fields) -> Message:
    """
    Render a template, embedding link when it fits.

    The link-free variant is used when there is no link or when the message
    with the link would exceed max_length, so a long raw URL is never sent.
    """
    if link and "{link}" in template.body:
        body = template.body.format(link=link, **fields)
        if len(body) <= max_length:
            return Message(tag=template.tag, body=body, link=link)
        logger.warning("Message too long with link, using link-free variant", extra={"tag": template.tag, "length": len(body)})
    elif "{link}" not in template.body:
        return Message(tag=template.tag, body=template.body.format(**fields))

    if template.fallback_body is None:
        raise ValueError(f"Template {template.tag} needs a link and has no link-free variant")
    body = template.fallback_body.format(**fields)
    if len(body) > max_length:
        logger.warning("Message exceeds length target", extra={"tag": template.tag, "length": len(body)})
    return Message(tag=template.fallback_tag or template.tag, body=body)


# Return reminders (borrower)
RETURN_T_MINUS_1 = Template(
    tag="return_tminus1_to_borrower",
    body=(
        "📦 It's almost return time! Please ship your item back tomorrow using this {label_noun}: {link} "
        "Late fees are {fee}/day if it ships after the return date. Thanks for sharing style 💌"
    ),
    fallback_body=(
        "📦 It's almost return time! Please ship your item back tomorrow using the {label_noun} in your "
        "{brand} inbox. Late fees are {fee}/day if it ships after the return date."
    ),
)

RETURN_TODAY = Template(
    tag="return_reminder_today",
    body="📦 Today's the day! Ship your {brand} item back. Return label: {link}",
    fallback_body="📦 Today's the day! Ship your {brand} item back. Check your dashboard for return instructions.",
    fallback_tag="return_reminder_today_no_label",
)

RETURN_TOMORROW = Template(
    tag="return_reminder_tomorrow",
    body=(
        "📦 Your {brand} return is now late. A {fee}/day late fee is being charged until the carrier scans it. "
        "Please ship it back ASAP using your QR code or label."
    ),
)

# Outbound shipping reminders (lender)
SHIP_24H = Template(
    tag="shipping_reminder_24h",
    body="{brand} 🍧 Reminder: Please ship your item by tomorrow ({ship_by}). Shipping label: {link}",
    fallback_body="{brand} 🍧 Reminder: Please ship your item by tomorrow ({ship_by}). Your label is in your {brand} inbox.",
)

SHIP_END_OF_DAY = Template(
    tag="shipping_reminder_end_of_day",
    body=(
        "{brand} 🍧: Your item hasn't been scanned yet. Please ship ASAP to receive your payment. "
        "Need help? Reply anytime. Shipping label: {link}"
    ),
    fallback_body=(
        "{brand} 🍧: Your item hasn't been scanned yet. Please ship ASAP to receive your payment. "
        "Need help? Reply anytime."
    ),
)

SHIP_AUTO_CANCEL = Template(
    tag="shipping_auto_cancel",
    body="{brand} 🍧: Your item was not shipped out in time. This transaction has been canceled.",
)

# Overdue reminders (borrower, never-returned only), by chargeable late days
OVERDUE_TIERS = {
    1: Template(
        tag="overdue_day1_to_borrower",
        body="⚠️ Due yesterday. Please ship today to avoid {fee}/day late fees. QR: {link}",
        fallback_body="⚠️ Due yesterday. Please ship today to avoid {fee}/day late fees.",
    ),
    2: Template(
        tag="overdue_day2_to_borrower",
        body="🚫 2 days late. {fee}/day fees are adding up. Ship now: {link}",
        fallback_body="🚫 2 days late. {fee}/day fees are adding up. Ship now.",
    ),
    3: Template(
        tag="overdue_day3_to_borrower",
        body="⏰ 3 days late. Fees continue. Ship today to avoid full replacement.",
    ),
    4: Template(
        tag="overdue_day4_to_borrower",
        body="⚠️ 4 days late. Ship immediately to prevent replacement charges.",
    ),
    5: Template(
        tag="overdue_day5_to_borrower",
        body=(
            "🚫 5+ chargeable days late. Per {brand} policy, you may be charged the full replacement value "
            "set by the lender if the item is not returned. Please ship back your item as soon as possible: {link}"
        ),
        fallback_body=(
            "🚫 5+ chargeable days late. Per {brand} policy, you may be charged the full replacement value "
            "set by the lender if the item is not returned. Please ship back your item as soon as possible."
        ),
    ),
}


def overdue_tier(late_days: int) -> int:
    return max(1, min(late_days, 5))
