"""
needs_reply.py: Who owes the next reply in a quote's message thread.

Only customer and supplier messages count; admin notes never create or
clear an obligation. Legacy rows that say "provider" are read as supplier.
"""

import math

from rfq_market.core import config
from rfq_market.core.dates import parse_timestamp, resolve_now

DEFAULT_SLA_WINDOW_HOURS = 24
STALE_AFTER_HOURS = 48
VERY_STALE_AFTER_HOURS = 24 * 7

_ROLE_ALIASES = {"customer": "customer", "supplier": "supplier", "provider": "supplier"}


def _message_role(msg: dict):
    raw = msg.get("sender_role")
    if raw is None:
        raw = msg.get("senderRole")
    return _ROLE_ALIASES.get(raw.strip().lower()) if isinstance(raw, str) else None


def _message_created_at(msg: dict):
    raw = msg.get("created_at")
    if raw is None:
        raw = msg.get("createdAt")
    if not isinstance(raw, str) or parse_timestamp(raw) is None:
        return None
    return raw.strip()


def _resolve_window(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_SLA_WINDOW_HOURS
    if not math.isfinite(value) or value < 0:
        return DEFAULT_SLA_WINDOW_HOURS
    return value


def _is_later(a, b) -> bool:
    """a strictly after b (both already validated ISO strings)."""
    return parse_timestamp(a) > parse_timestamp(b)


def _is_overdue(last_at, now_dt, window_hours: float) -> bool:
    if not last_at or window_hours <= 0:
        return False
    elapsed = (now_dt - parse_timestamp(last_at)).total_seconds()
    return elapsed > window_hours * 3600


def compute_needs_reply_summary(messages, sla_window_hours=None, now=None) -> dict:
    window = _resolve_window(config.MESSAGE_SLA_HOURS if sla_window_hours is None
                             else sla_window_hours)
    now_dt = resolve_now(now)

    last_customer = None
    last_supplier = None
    for msg in messages if isinstance(messages, (list, tuple)) else []:
        if not isinstance(msg, dict):
            continue
        role = _message_role(msg)
        created_at = _message_created_at(msg) if role else None
        if not created_at:
            continue
        if role == "customer":
            if last_customer is None or _is_later(created_at, last_customer):
                last_customer = created_at
        elif last_supplier is None or _is_later(created_at, last_supplier):
            last_supplier = created_at

    supplier_owes = bool(last_customer) and (
        last_supplier is None or _is_later(last_customer, last_supplier))
    customer_owes = bool(last_supplier) and (
        last_customer is None or _is_later(last_supplier, last_customer))

    if last_customer and last_supplier:
        # exact tie goes to the customer
        if _is_later(last_supplier, last_customer):
            last_thread, last_role = last_supplier, "supplier"
        else:
            last_thread, last_role = last_customer, "customer"
    elif last_customer:
        last_thread, last_role = last_customer, "customer"
    elif last_supplier:
        last_thread, last_role = last_supplier, "supplier"
    else:
        last_thread, last_role = None, None

    return {
        "supplierOwesReply": supplier_owes,
        "customerOwesReply": customer_owes,
        "supplierReplyOverdue": supplier_owes and _is_overdue(last_customer, now_dt, window),
        "customerReplyOverdue": customer_owes and _is_overdue(last_supplier, now_dt, window),
        "slaWindowHours": window,
        "lastCustomerMessageAt": last_customer,
        "lastSupplierMessageAt": last_supplier,
        "lastThreadMessageAt": last_thread,
        "lastThreadMessageSenderRole": last_role,
    }


def summarize_thread_staleness(last_at, now=None) -> str:
    """none | fresh | stale (>48h) | very_stale (>7d), for admin triage lists."""
    last_dt = parse_timestamp(last_at)
    if last_dt is None:
        return "none"
    hours = (resolve_now(now) - last_dt).total_seconds() / 3600
    if hours > VERY_STALE_AFTER_HOURS:
        return "very_stale"
    if hours > STALE_AFTER_HOURS:
        return "stale"
    return "fresh"
