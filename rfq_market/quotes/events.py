"""
events.py: Quote Timeline Event Sink

Best-effort, fire-and-forget. Emitting an event must never block or fail the
operation that triggered it: every failure is logged and swallowed here.

Destinations:
  1. quote_events table (when Capabilities.quote_events)
  2. EVENT_WEBHOOK_URL (optional JSON POST, e.g. an ops Slack relay)

Event types: submitted, offer_received, offer_revised, awarded, award_undone,
             quote_archived, quote_reopened, message_posted
"""

import logging
import threading

import requests

from rfq_market.core import config, db

log = logging.getLogger("rfq_market.events")

EVENT_ACTOR_ROLES = ("admin", "customer", "supplier", "system")
WEBHOOK_TIMEOUT_S = 5


def _dispatch(event: dict, capabilities, webhook_url: str):
    if capabilities.quote_events:
        try:
            event["id"] = db.insert_event(event)
        except Exception as e:
            log.warning("Event persist failed: %s", e,
                        extra={"quote_id": event["quote_id"], "event_type": event["event_type"]})
    if webhook_url:
        try:
            resp = requests.post(webhook_url, json=event, timeout=WEBHOOK_TIMEOUT_S)
            if resp.status_code >= 400:
                log.warning("Event webhook returned %d", resp.status_code,
                            extra={"quote_id": event["quote_id"],
                                   "event_type": event["event_type"]})
        except requests.RequestException as e:
            log.warning("Event webhook failed: %s", e,
                        extra={"quote_id": event["quote_id"], "event_type": event["event_type"]})
    return event


def emit_quote_event(quote_id: str, event_type: str, actor_role: str = "system",
                     actor_user_id=None, metadata: dict = None, run_async: bool = None,
                     capabilities=None, webhook_url: str = None) -> dict:
    """Record a timeline event. Returns {"ok": bool, "async": bool}."""
    try:
        role = actor_role if actor_role in EVENT_ACTOR_ROLES else "system"
        event = {
            "quote_id": quote_id,
            "event_type": event_type,
            "actor_role": role,
            "actor_user_id": actor_user_id,
            "metadata": metadata or {},
            "created_at": db.utc_now_iso(),
        }
        caps = capabilities or config.load_capabilities()
        url = config.EVENT_WEBHOOK_URL if webhook_url is None else webhook_url
        run_async = config.EVENTS_ASYNC if run_async is None else run_async

        if run_async:
            t = threading.Thread(target=_dispatch, args=(event, caps, url),
                                 daemon=True, name=f"event-{event_type[:16]}")
            t.start()
            return {"ok": True, "async": True}

        _dispatch(event, caps, url)
        return {"ok": True, "async": False}
    except Exception as e:
        log.warning("Event emit crashed: %s", e,
                    extra={"quote_id": quote_id, "event_type": event_type})
        return {"ok": False, "async": False}


def list_quote_events(quote_id: str, limit=None) -> dict:
    quote_id = quote_id.strip() if isinstance(quote_id, str) else ""
    if not quote_id:
        return {"ok": False, "events": [], "error": "quoteId is required"}
    try:
        limit = max(1, min(int(limit), 250)) if limit is not None else 75
    except (TypeError, ValueError):
        limit = 75
    try:
        return {"ok": True, "events": db.list_events(quote_id, limit), "error": None}
    except Exception as e:
        log.error("Event list failed: %s", e, extra={"quote_id": quote_id})
        return {"ok": False, "events": [], "error": "events_unavailable"}
