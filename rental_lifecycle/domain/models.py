"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class Party:
    """Customer (borrower) or provider (lender) attached to a transaction"""

    id: str
    phone: Optional[str] = None  # profile phone, as stored
    display_name: Optional[str] = None


@dataclass
class Listing:
    """Rented item"""

    id: str
    title: str = ""
    price_cents: Optional[int] = None
    public_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ReturnRecord:
    """Typed view of protectedData.return"""

    due_at: Optional[str] = None
    first_scan_at: Optional[str] = None
    status: Optional[str] = None
    last_late_fee_day_charged: Optional[str] = None
    replacement_charged: bool = False
    charge_history: List[Dict[str, Any]] = field(default_factory=list)
    overdue_last_notified_day: Optional[int] = None
    t_minus_1_sent_at: Optional[str] = None
    today_reminder_sent_at: Optional[str] = None
    tomorrow_reminder_sent_at: Optional[str] = None
    label_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReturnRecord":
        data = data or {}
        overdue = data.get("overdue") or {}
        label = data.get("label") or {}
        return cls(
            due_at=data.get("dueAt"),
            first_scan_at=data.get("firstScanAt"),
            status=data.get("status"),
            last_late_fee_day_charged=data.get("lastLateFeeDayCharged"),
            replacement_charged=data.get("replacementCharged") is True,
            charge_history=list(data.get("chargeHistory") or []),
            overdue_last_notified_day=overdue.get("lastNotifiedDay"),
            t_minus_1_sent_at=data.get("tMinus1SentAt"),
            today_reminder_sent_at=data.get("todayReminderSentAt"),
            tomorrow_reminder_sent_at=data.get("tomorrowReminderSentAt"),
            label_url=label.get("url") if isinstance(label, dict) else None,
        )


@dataclass
class OutboundRecord:
    """Typed view of protectedData.outbound"""

    ship_by_date: Optional[str] = None
    tracking_number: Optional[str] = None
    first_scan_at: Optional[str] = None
    status: Optional[str] = None
    label_url: Optional[str] = None
    qr_code_url: Optional[str] = None
    sent_24h: bool = False
    sent_end_of_day: bool = False
    auto_cancel_sent: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "OutboundRecord":
        data = data or {}
        flags = data.get("shippingReminders") or {}
        return cls(
            ship_by_date=data.get("shipByDate"),
            tracking_number=data.get("trackingNumber"),
            first_scan_at=data.get("firstScanAt"),
            status=data.get("trackingStatus") or data.get("status"),
            label_url=data.get("labelUrl"),
            qr_code_url=data.get("qrCodeUrl"),
            sent_24h=flags.get("sent24h") is True,
            sent_end_of_day=flags.get("sentEndOfDay") is True,
            auto_cancel_sent=flags.get("autoCancelSent") is True,
        )


@dataclass
class Transaction:
    """Rental transaction as read from the transaction store"""

    id: str
    state: str
    booking_start: Optional[str] = None
    booking_end: Optional[str] = None
    protected_data: Dict[str, Any] = field(default_factory=dict)  # persisted per-direction state
    metadata: Dict[str, Any] = field(default_factory=dict)  # store-level metadata (shipBy, labelUrl)
    customer: Optional[Party] = None
    provider: Optional[Party] = None
    listing: Optional[Listing] = None

    @property
    def return_data(self) -> Dict[str, Any]:
        return self.protected_data.get("return") or {}

    @property
    def outbound_data(self) -> Dict[str, Any]:
        return self.protected_data.get("outbound") or {}

    @property
    def return_record(self) -> ReturnRecord:
        return ReturnRecord.from_dict(self.return_data)

    @property
    def outbound_record(self) -> OutboundRecord:
        return OutboundRecord.from_dict(self.outbound_data)


@dataclass
class LineItem:
    """Charge added to a transaction through a privileged transition"""

    code: str  # "late-fee" | "replacement"
    unit_price_cents: int
    quantity: int = 1
    currency: str = "USD"
    include_for: Tuple[str, ...] = ("customer",)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "unitPrice": {"amount": self.unit_price_cents, "currency": self.currency},
            "quantity": self.quantity,
            "percentage": 0,
            "includeFor": list(self.include_for),
        }


@dataclass
class ChargeHistoryEntry:
    """Append-only audit record stored in return.chargeHistory"""

    date: str
    scenario: str
    items: List[Dict[str, Any]]
    late_days: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "scenario": self.scenario,
            "items": self.items,
            "lateDays": self.late_days,
            "timestamp": self.timestamp,
        }


@dataclass
class ChargeResult:
    """Outcome of one apply_charges call"""

    charged: bool
    scenario: Optional[str] = None
    late_days: Optional[int] = None
    reason: Optional[str] = None
    effective_date: Optional[str] = None
    line_items: List[LineItem] = field(default_factory=list)
    committed: bool = True  # False for previews

    @property
    def items(self) -> List[str]:
        return [item.code for item in self.line_items]

    @property
    def total_cents(self) -> int:
        return sum(item.unit_price_cents * item.quantity for item in self.line_items)


@dataclass
class Page:
    """One page of a store query"""

    transactions: List[Transaction]
    page: int
    next_page: Optional[int] = None


@dataclass
class SendResult:
    """Outcome reported by the notification dispatcher"""

    sid: Optional[str] = None
    status: Optional[str] = None
    simulated: bool = False
    skipped: bool = False
    reason: Optional[str] = None

    @property
    def delivered(self) -> bool:
        """True when the provider accepted the message (or a simulated send)"""
        return not self.skipped
