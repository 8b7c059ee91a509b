"""
destinations.py: RFQ Destinations + Outreach SLA

A destination is one supplier/provider an RFQ was routed to. Its status
follows the outreach: draft → queued → sent → viewed/submitted → quoted,
with declined / error as terminal outcomes.

SLA rules (DEFAULT_SLA_CONFIG):
  queued  longer than 4h                       → queued_too_long
  sent / submitted / viewed, no offer for 48h  → sent_no_reply
  error                                        → error (always)
"""

import logging

from rfq_market.core import db
from rfq_market.core.dates import parse_timestamp, resolve_now, hours_between
from rfq_market.core.status import DestinationStatus, coerce_destination_status

log = logging.getLogger("rfq_market.destinations")

DEFAULT_SLA_CONFIG = {
    "queued_max_hours": 4,
    "sent_no_reply_max_hours": 48,
    "error_always_needs_action": True,
}

_AWAITING_REPLY = (DestinationStatus.SENT, DestinationStatus.SUBMITTED, DestinationStatus.VIEWED)


def _normalize_id(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_destination_row(row: dict) -> dict:
    return {
        **row,
        "provider_id": _normalize_id(row.get("provider_id")) or None,
        "status": coerce_destination_status(row.get("status")).value,
    }


def get_rfq_destinations(rfq_id: str) -> list:
    rfq_id = _normalize_id(rfq_id)
    if not rfq_id:
        return []
    return [normalize_destination_row(r) for r in db.get_destinations_for_rfq(rfq_id)]


def _resolve_sla_config(config: dict = None) -> dict:
    resolved = dict(DEFAULT_SLA_CONFIG)
    for key, value in (config or {}).items():
        if key in resolved and value is not None:
            resolved[key] = value
    return resolved


def _first_timestamp(*values):
    for value in values:
        if parse_timestamp(value) is not None:
            return value
    return None


def _reference_timestamp(status: DestinationStatus, destination: dict):
    if status == DestinationStatus.QUEUED:
        return _first_timestamp(destination.get("created_at"), destination.get("last_status_at"))
    if status in _AWAITING_REPLY:
        return _first_timestamp(destination.get("sent_at"), destination.get("last_status_at"),
                                destination.get("created_at"))
    if status == DestinationStatus.ERROR:
        return _first_timestamp(destination.get("last_status_at"), destination.get("created_at"))
    return _first_timestamp(destination.get("last_status_at"), destination.get("created_at"),
                            destination.get("sent_at"))


def compute_destination_needs_action(destination: dict, now=None, config: dict = None) -> dict:
    """SLA verdict for one destination.

    Pass has_offer=True on the destination when its provider already replied
    with an offer; compute_quote_needs_action() does this for you.
    """
    cfg = _resolve_sla_config(config)
    status = coerce_destination_status(destination.get("status"))
    now_dt = resolve_now(now)
    age_hours = hours_between(_reference_timestamp(status, destination), now_dt)
    has_offer = destination.get("has_offer") is True or destination.get("hasOffer") is True

    reason = None
    if status == DestinationStatus.ERROR:
        if cfg["error_always_needs_action"]:
            reason = "error"
    elif status == DestinationStatus.QUEUED:
        if age_hours > cfg["queued_max_hours"]:
            reason = "queued_too_long"
    elif status in _AWAITING_REPLY:
        if not has_offer and age_hours > cfg["sent_no_reply_max_hours"]:
            reason = "sent_no_reply"

    return {"needsAction": reason is not None, "reason": reason, "ageHours": age_hours}


def compute_quote_needs_action(destinations: list, offers: list, now=None,
                               config: dict = None) -> dict:
    """Aggregate SLA counts over every destination of one RFQ."""
    offer_providers = {_normalize_id(o.get("provider_id")) for o in offers or []}
    offer_providers.discard("")

    counts = {"needsActionCount": 0, "needsReplyCount": 0,
              "errorsCount": 0, "queuedStaleCount": 0}
    for dest in destinations or []:
        provider_id = _normalize_id(dest.get("provider_id"))
        result = compute_destination_needs_action(
            {**dest, "has_offer": bool(provider_id) and provider_id in offer_providers},
            now, config)
        if result["needsAction"]:
            counts["needsActionCount"] += 1
        if result["reason"] == "sent_no_reply":
            counts["needsReplyCount"] += 1
        elif result["reason"] == "error":
            counts["errorsCount"] += 1
        elif result["reason"] == "queued_too_long":
            counts["queuedStaleCount"] += 1
    return counts


def format_sla_response_time(hours):
    """'within 4 hours' / 'within 2 days', None for non-positive input."""
    try:
        hours = float(hours)
    except (TypeError, ValueError):
        return None
    if hours != hours or hours <= 0 or hours == float("inf"):
        return None
    rounded = max(1, int(hours + 0.5))
    if rounded < 24:
        return f"within {rounded} hour{'' if rounded == 1 else 's'}"
    days = max(1, -(-rounded // 24))
    return f"within {days} day{'' if days == 1 else 's'}"
