"""
lifecycle.py: Archive / Reopen quote transitions

    archive → cancelled      reopen → submitted

Every move is checked against QUOTE_STATUS_TRANSITIONS. An awarded quote
cannot be archived; undo the award first.
"""

import sqlite3
import logging

from rfq_market.core import db
from rfq_market.core.status import QuoteStatus, can_transition, coerce_quote_status
from rfq_market.quotes.events import emit_quote_event

log = logging.getLogger("rfq_market.lifecycle")

QUOTE_ACTIONS = {
    "archive": (QuoteStatus.CANCELLED, "quote_archived"),
    "reopen": (QuoteStatus.SUBMITTED, "quote_reopened"),
}

STATUS_CODES = {
    "invalid_input": 400,
    "access_denied": 403,
    "not_found": 404,
    "transition_denied": 409,
    "write_failed": 500,
}


def _owns_quote(actor: dict, quote: dict) -> bool:
    customer_id = (actor.get("customer_id") or "").strip()
    if customer_id and customer_id == (quote.get("customer_id") or "").strip():
        return True
    email = (actor.get("email") or "").strip().lower()
    return bool(email) and email == (quote.get("customer_email") or "").strip().lower()


def transition_quote_status(quote_id: str, action: str, actor: dict, emit_event=None,
                            capabilities=None) -> dict:
    """Apply an archive/reopen action. Returns {"ok", "quoteId", "status"} or {"ok": False, "error"}."""
    emit = emit_event or emit_quote_event
    quote_id = quote_id.strip() if isinstance(quote_id, str) else ""
    action = action.strip().lower() if isinstance(action, str) else ""
    actor = actor or {}
    ctx = {"quote_id": quote_id, "actor_role": actor.get("role"),
           "actor_user_id": actor.get("user_id")}

    if not quote_id or action not in QUOTE_ACTIONS:
        return {"ok": False, "error": "invalid_input"}
    if actor.get("role") not in ("admin", "customer") or not actor.get("user_id"):
        return {"ok": False, "error": "invalid_input"}
    target, event_type = QUOTE_ACTIONS[action]

    try:
        with db.get_db(immediate=True) as conn:
            quote = db.fetch_quote(conn, quote_id, ["id", "status", "customer_id",
                                                    "customer_email"])
            if quote is None:
                return {"ok": False, "error": "not_found"}
            if actor["role"] == "customer" and not _owns_quote(actor, quote):
                log.warning("Customer %s does not own quote", actor["user_id"], extra=ctx)
                return {"ok": False, "error": "access_denied"}
            current = coerce_quote_status(quote.get("status"))
            if current is None or not can_transition(current, target):
                log.info("Transition %s → %s denied", quote.get("status"), target.value,
                         extra={**ctx, "reason": "transition_denied"})
                return {"ok": False, "error": "transition_denied"}
            db.update_quote(conn, quote_id, {"status": target.value,
                                             "updated_at": db.utc_now_iso()})
    except sqlite3.Error as e:
        log.error("Quote %s failed: %s", action, e, extra=ctx, exc_info=True)
        return {"ok": False, "error": "write_failed"}

    log.info("Quote %s: %s → %s", action, current.value, target.value, extra=ctx)
    emit(quote_id, event_type, actor_role=actor["role"], actor_user_id=actor["user_id"],
         metadata={"from": current.value, "to": target.value}, capabilities=capabilities)
    return {"ok": True, "quoteId": quote_id, "status": target.value}
