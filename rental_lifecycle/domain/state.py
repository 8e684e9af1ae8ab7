"""
Helpers for reading and patching the persisted per-direction state.

Patches are nested dicts merged into protectedData: dicts merge key by key,
scalars and lists replace. Patches only ever set forward-moving values
(sent timestamps, true flags, appended history); nothing here decrements or
clears a flag.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from rental_lifecycle.domain.models import Transaction

SHIPPED_STATUSES = frozenset({"ACCEPTED", "ACCEPTANCE", "IN_TRANSIT", "TRANSIT", "PICKUP"})
DELIVERED_STATUSES = frozenset({"DELIVERED", "DELIVERY"})
EXCEPTION_STATUSES = frozenset({"FAILURE", "RETURNED", "EXCEPTION", "UNKNOWN"})


def deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Non-destructive merge of patch into base; returns a new dict"""
    result = dict(base)
    for key, value in patch.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = deep_merge(result[key], value)
        elif isinstance(value, Mapping):
            result[key] = deep_merge({}, value)
        else:
            result[key] = value
    return result


def get_path(data: Mapping[str, Any], path: Sequence[str], default: Any = None) -> Any:
    node: Any = data
    for key in path:
        if not isinstance(node, Mapping) or key not in node:
            return default
        node = node[key]
    return node


def path_patch(path: Sequence[str], value: Any) -> Dict[str, Any]:
    """("return", "overdue", "lastNotifiedDay"), 2 -> {"return": {"overdue": {"lastNotifiedDay": 2}}}"""
    patch: Any = value
    for key in reversed(path):
        patch = {key: patch}
    return patch


def to_carrier_phase(status: Optional[str]) -> str:
    """Normalize a carrier tracking status to SHIPPED | DELIVERED | EXCEPTION | OTHER"""
    normalized = str(status or "").strip().upper()
    if normalized in SHIPPED_STATUSES:
        return "SHIPPED"
    if normalized in DELIVERED_STATUSES:
        return "DELIVERED"
    if normalized in EXCEPTION_STATUSES:
        return "EXCEPTION"
    return "OTHER"


def is_return_scanned(tx: Transaction) -> bool:
    """Return shipment has a carrier scan (firstScanAt, or accepted/in_transit status)"""
    record = tx.return_record
    return bool(record.first_scan_at) or to_carrier_phase(record.status) == "SHIPPED"


def is_outbound_scanned(tx: Transaction) -> bool:
    record = tx.outbound_record
    if record.first_scan_at:
        return True
    tracking = tx.metadata.get("tracking") or {}
    status = tracking.get("status") or record.status
    return to_carrier_phase(status) == "SHIPPED"


def first_present(values: Iterable[Optional[str]]) -> Optional[str]:
    for value in values:
        if value and str(value).strip():
            return str(value).strip()
    return None


def resolve_return_due(tx: Transaction) -> Optional[str]:
    """return.dueAt, else the booking end"""
    return first_present([tx.return_record.due_at, tx.booking_end])


def resolve_ship_by(tx: Transaction) -> Optional[str]:
    """metadata.shipBy, else outbound.shipByDate"""
    return first_present([tx.metadata.get("shipBy"), tx.outbound_record.ship_by_date])


def resolve_return_label(tx: Transaction, prefer_qr: bool = False) -> Optional[str]:
    pd = tx.protected_data
    candidates = [
        pd.get("returnLabelUrl"),
        tx.return_record.label_url,
        pd.get("returnLabel"),
        pd.get("shippingLabelUrl"),
        pd.get("returnShippingLabel"),
    ]
    if prefer_qr:
        candidates.insert(0, pd.get("returnQrUrl"))
    return first_present(candidates)


def resolve_outbound_label(tx: Transaction) -> Optional[str]:
    outbound = tx.outbound_record
    return first_present([
        tx.metadata.get("labelUrl"),
        outbound.label_url,
        outbound.qr_code_url,
        tx.protected_data.get("outboundLabelUrl"),
    ])


def is_return_only(tx: Transaction) -> bool:
    """Transaction carries only a return shipment (no outbound label or tracking)"""
    if tx.metadata.get("direction") == "return":
        return True
    pd = tx.protected_data
    has_outbound = bool(
        resolve_outbound_label(tx) or pd.get("outboundTrackingNumber") or tx.outbound_record.tracking_number
    )
    has_return = bool(pd.get("returnTrackingNumber") or pd.get("returnLabelUrl"))
    return not has_outbound and has_return
