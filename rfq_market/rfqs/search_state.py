"""
search_state.py: Supplier Search Progress for one RFQ

build_search_state_summary() turns destination + offer rows into counts, a
status label and a recommended next action. build_search_progress() turns
that summary into the customer-facing copy shown on the search page.

Status label (first match wins):
  no_destinations    nothing was routed yet
  results_available  at least one live offer
  needs_attention    an outreach error, or nothing still pending
  searching          otherwise
"""

from rfq_market.core import config
from rfq_market.core.dates import latest_timestamp, format_relative_time
from rfq_market.core.status import (
    DestinationStatus, OfferStatus, PENDING_DESTINATION_STATUSES,
    coerce_destination_status, coerce_offer_status,
)

STATUS_LABELS = ("searching", "results_available", "needs_attention", "no_destinations")
RECOMMENDED_ACTIONS = ("refresh", "contact_support", "adjust_search")

EMPTY_COUNTS = {
    "destinations_total": 0,
    "destinations_pending": 0,
    "destinations_error": 0,
    "offers_total": 0,
}


def _derive_status_label(counts: dict) -> str:
    if counts["destinations_total"] == 0:
        return "no_destinations"
    if counts["offers_total"] > 0:
        return "results_available"
    if counts["destinations_error"] > 0 or counts["destinations_pending"] == 0:
        return "needs_attention"
    return "searching"


def _derive_recommended_action(status_label: str, counts: dict) -> str:
    if status_label == "no_destinations":
        return "adjust_search"
    if status_label == "needs_attention":
        return "contact_support" if counts["destinations_error"] > 0 else "adjust_search"
    return "refresh"


def build_search_state_summary(destinations: list, offers: list) -> dict:
    destinations = destinations or []
    live_offers = [o for o in offers or []
                   if coerce_offer_status(o.get("status")) != OfferStatus.WITHDRAWN]

    counts = dict(EMPTY_COUNTS)
    counts["destinations_total"] = len(destinations)
    counts["offers_total"] = len(live_offers)
    for dest in destinations:
        status = coerce_destination_status(dest.get("status"))
        if status == DestinationStatus.ERROR:
            counts["destinations_error"] += 1
        elif status in PENDING_DESTINATION_STATUSES:
            counts["destinations_pending"] += 1

    last_destination = latest_timestamp(d.get("last_status_at") for d in destinations)
    last_offer = latest_timestamp(o.get("received_at") or o.get("created_at")
                                  for o in live_offers)
    status_label = _derive_status_label(counts)
    return {
        "counts": counts,
        "timestamps": {
            "last_destination_activity_at": last_destination,
            "last_offer_received_at": last_offer,
            "last_activity_at": latest_timestamp([last_destination, last_offer]),
        },
        "status_label": status_label,
        "recommended_action": _derive_recommended_action(status_label, counts),
    }


# ── Display ──────────────────────────────────────────────────────────────────

def format_search_state_label(status_label: str) -> str:
    return {
        "results_available": "Results available",
        "needs_attention": "Needs attention",
        "no_destinations": "No destinations",
    }.get(status_label, "Searching")


def format_search_state_action_label(action: str) -> str:
    return {
        "adjust_search": "Adjust search",
        "contact_support": "Contact support",
    }.get(action, "Refresh results")


def search_state_label_tone(status_label: str) -> str:
    return {
        "results_available": "emerald",
        "needs_attention": "red",
        "no_destinations": "amber",
    }.get(status_label, "blue")


def _status_copy(status: str, counts: dict) -> tuple:
    if status == "initializing":
        return ("Initializing", "Contacting suppliers...",
                "We're preparing your request and contacting suppliers that match it.")
    if status == "results_available":
        return ("Results", "Results available",
                "Review pricing and lead times from responding suppliers.")
    if status == "needs_attention":
        detail = ("Some suppliers could not be contacted. Contact support for help."
                  if counts["destinations_error"] > 0 else
                  "No suppliers are still pending. Add details or invite a supplier "
                  "to restart outreach.")
        return ("Needs attention", "Search needs attention", detail)
    if status == "no_destinations":
        return ("No suppliers contacted", "Invite a supplier to start",
                "Invite a supplier (or add more details) to start collecting offers.")
    return ("Searching", "Waiting for replies",
            "We've contacted suppliers and we're waiting for replies.")


def build_search_progress(summary: dict, quote_id: str = None, is_initializing: bool = False,
                          now=None, support_email: str = None) -> dict:
    """Customer-facing progress copy for a search-state summary."""
    counts = summary.get("counts") or EMPTY_COUNTS
    timestamps = summary.get("timestamps") or {}
    status = "initializing" if is_initializing else summary.get("status_label", "searching")

    tag, headline, detail = _status_copy(status, counts)
    progress = {"statusTag": tag, "statusHeadline": headline, "statusDetail": detail}
    if is_initializing:
        return progress

    action = summary.get("recommended_action")
    if action == "adjust_search" and quote_id:
        progress["recommendedActionLabel"] = format_search_state_action_label(action)
        progress["recommendedActionHref"] = f"/customer/quotes/{quote_id}#uploads"
    elif action == "contact_support":
        progress["recommendedActionLabel"] = format_search_state_action_label(action)
        progress["recommendedActionHref"] = f"mailto:{support_email or config.SUPPORT_EMAIL}"

    last_offer = timestamps.get("last_offer_received_at")
    last_destination = timestamps.get("last_destination_activity_at")
    if counts["offers_total"] > 0:
        last_activity = last_offer or last_destination
    else:
        last_activity = last_destination or last_offer
    relative = format_relative_time(last_activity, now)
    if relative:
        progress["lastUpdatedLabel"] = f"Last updated {relative}"
    return progress
