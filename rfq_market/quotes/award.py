"""
award.py: Award / Undo-Award Coordinator

The only place that writes the award record of a quote.

Award record = quotes.awarded_bid_id, awarded_supplier_id, awarded_at,
awarded_by_user_id, awarded_by_role (+ awarded_provider_id, awarded_offer_id,
award_notes where the deployment has them). The columns are written
together and cleared together; they are never left half-set.

Both operations run inside get_db(immediate=True): SQLite's write lock is
taken before the first read, so two concurrent award/undo requests for the
same quote serialize instead of interleaving their check-then-write.

Results are plain dicts:
    {"ok": True, ...}
    {"ok": False, "error": <reason>}      STATUS_CODES[reason] → HTTP status
"""

import re
import sqlite3
import logging

import requests

from rfq_market.core import config, db
from rfq_market.core.security import UnauthorizedError, require_admin
from rfq_market.core.status import (
    QuoteStatus, BidStatus, CUSTOMER_AWARD_ALLOWED_STATUSES, RESETTABLE_BID_STATUSES,
    BID_INELIGIBLE_STATUSES, coerce_quote_status, coerce_bid_status, is_winning_bid_status,
)
from rfq_market.quotes.events import emit_quote_event

STATUS_CODES = {
    "invalid_input": 400,
    "invalid_quote_id": 400,
    "unauthorized": 401,
    "access_denied": 403,
    "not_found": 404,
    "quote_not_found": 404,
    "bid_not_found": 404,
    "status_not_allowed": 409,
    "winner_exists": 409,
    "bid_ineligible": 409,
    "missing_supplier": 422,
    "quote_lookup_failed": 500,
    "write_failed": 500,
    "unknown": 500,
}

AWARD_ACTOR_ROLES = ("admin", "customer")

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

REVALIDATE_TIMEOUT_S = 5


def is_uuid_like(value) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value.strip()))


def status_code_for(result: dict) -> int:
    if result.get("ok"):
        return 200
    return STATUS_CODES.get(result.get("error"), 500)


def _normalize_id(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _present(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def quote_paths(quote_id: str) -> list:
    return [
        "/customer", "/customer/quotes", f"/customer/quotes/{quote_id}",
        "/admin", "/admin/quotes", f"/admin/quotes/{quote_id}",
        "/supplier", "/supplier/quotes", f"/supplier/quotes/{quote_id}",
    ]


def revalidate_quote_paths(quote_id: str) -> list:
    """Ask the portal to re-render every cached page that shows this quote."""
    paths = quote_paths(quote_id)
    if not config.REVALIDATE_URL:
        logging.getLogger("rfq_market.award").debug(
            "Revalidate skipped (no REVALIDATE_URL)", extra={"quote_id": quote_id})
        return paths
    try:
        requests.post(config.REVALIDATE_URL, json={"paths": paths}, timeout=REVALIDATE_TIMEOUT_S)
    except requests.RequestException as e:
        logging.getLogger("rfq_market.award").warning(
            "Revalidate failed: %s", e, extra={"quote_id": quote_id})
    return paths


class _Abort(Exception):
    """Internal: stop the transaction (rolling it back) with a failure reason."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class AwardCoordinator:
    """Award and undo-award for quotes.

    Collaborators are injected so tests and alternate deployments can swap
    them: capabilities (config.Capabilities), logger, emit_event (timeline
    sink), invalidate (cached-page revalidation).
    """

    def __init__(self, capabilities=None, logger=None, emit_event=None, invalidate=None):
        self.caps = capabilities or config.load_capabilities()
        self.log = logger or logging.getLogger("rfq_market.award")
        self.emit_event = emit_event or emit_quote_event
        self.invalidate = invalidate or revalidate_quote_paths

    # ── helpers ──────────────────────────────────────────────────────────────

    def _fail(self, reason: str, ctx: dict, message: str = None, exc_info: bool = False) -> dict:
        level = logging.ERROR if STATUS_CODES.get(reason, 500) >= 500 else logging.WARNING
        self.log.log(level, "%s: %s", message or "Award operation rejected", reason,
                     extra={**ctx, "reason": reason}, exc_info=exc_info)
        return {"ok": False, "error": reason}

    def _quote_columns(self) -> list:
        cols = ["id", "status", "customer_id", "customer_email"] + self.caps.award_columns()
        if self.caps.award_notes:
            cols.append("award_notes")
        return cols

    def _has_award(self, quote: dict) -> bool:
        return any(_present(quote.get(c)) for c in self.caps.award_marker_columns())

    def _safe_invalidate(self, quote_id: str, ctx: dict):
        try:
            self.invalidate(quote_id)
        except Exception as e:
            self.log.warning("Cache invalidation failed: %s", e, extra=ctx)

    @staticmethod
    def _customer_owns_quote(actor: dict, quote: dict) -> bool:
        customer_id = _normalize_id(actor.get("customer_id"))
        if customer_id and customer_id == _normalize_id(quote.get("customer_id")):
            return True
        email = _normalize_id(actor.get("email")).lower()
        return bool(email) and email == _normalize_id(quote.get("customer_email")).lower()

    # ── award ────────────────────────────────────────────────────────────────

    def award(self, quote_id: str, bid_id: str, actor: dict, notes: str = None) -> dict:
        """Make bid_id the winning bid of quote_id.

        Returns {"ok": True, "awardedBidId", "awardedSupplierId", "awardedAt"}.
        Re-awarding the bid that already won is a successful no-op that only
        fills in missing award fields.
        """
        quote_id = _normalize_id(quote_id)
        bid_id = _normalize_id(bid_id)
        actor = actor or {}
        role = actor.get("role")
        ctx = {"quote_id": quote_id, "bid_id": bid_id, "actor_role": role,
               "actor_user_id": actor.get("user_id")}

        if role not in AWARD_ACTOR_ROLES or not _present(actor.get("user_id")):
            return self._fail("invalid_input", ctx)
        if not quote_id or not bid_id:
            return self._fail("invalid_input", ctx)

        try:
            with db.get_db(immediate=True) as conn:
                result = self._award_locked(conn, quote_id, bid_id, actor, notes, ctx)
        except _Abort as e:
            return self._fail(e.reason, ctx)
        except sqlite3.Error:
            return self._fail("write_failed", ctx, "Award write failed", exc_info=True)
        except Exception:
            return self._fail("unknown", ctx, "Award crashed", exc_info=True)

        self.log.info("Quote awarded to bid %s (%s)", bid_id,
                      "idempotent" if result.pop("_idempotent") else "new", extra=ctx)
        self._safe_invalidate(quote_id, ctx)
        self.emit_event(quote_id, "awarded", actor_role=role, actor_user_id=actor.get("user_id"),
                        metadata={"bidId": bid_id,
                                  "supplierId": result["awardedSupplierId"]},
                        capabilities=self.caps)
        return result

    def _award_locked(self, conn, quote_id, bid_id, actor, notes, ctx) -> dict:
        try:
            quote = db.fetch_quote(conn, quote_id, self._quote_columns())
        except sqlite3.Error:
            self.log.error("Quote lookup failed", extra=ctx, exc_info=True)
            raise _Abort("write_failed")
        if quote is None:
            raise _Abort("quote_not_found")

        existing_bid = _normalize_id(quote.get("awarded_bid_id"))
        if existing_bid and existing_bid != bid_id:
            raise _Abort("winner_exists")
        idempotent = existing_bid == bid_id

        if actor["role"] == "customer":
            if not self._customer_owns_quote(actor, quote):
                raise _Abort("access_denied")
            status = coerce_quote_status(quote.get("status"))
            if not idempotent and status not in CUSTOMER_AWARD_ALLOWED_STATUSES:
                raise _Abort("status_not_allowed")

        bid = db.fetch_bid(conn, bid_id)
        if bid is None or bid.get("quote_id") != quote_id:
            raise _Abort("bid_not_found")
        supplier_id = _normalize_id(bid.get("supplier_id"))
        if not supplier_id:
            raise _Abort("missing_supplier")

        if idempotent:
            if (_present(quote.get("awarded_supplier_id"))
                    and quote["awarded_supplier_id"].strip() != supplier_id):
                raise _Abort("winner_exists")
        else:
            if is_winning_bid_status(bid.get("status")):
                raise _Abort("winner_exists")
            if coerce_bid_status(bid.get("status")) in BID_INELIGIBLE_STATUSES:
                raise _Abort("bid_ineligible")
            others = [b for b in db.fetch_bids_for_quote(conn, quote_id) if b["id"] != bid_id]
            if any(is_winning_bid_status(b.get("status")) for b in others):
                raise _Abort("winner_exists")

        now = db.utc_now_iso()
        award_fields = {
            "awarded_bid_id": bid_id,
            "awarded_supplier_id": supplier_id,
            "awarded_at": now,
            "awarded_by_user_id": actor["user_id"],
            "awarded_by_role": actor["role"],
        }
        if self.caps.award_notes and notes:
            award_fields["award_notes"] = notes
        if idempotent:
            award_fields = {k: v for k, v in award_fields.items() if not _present(quote.get(k))}
        fields = {**award_fields, "status": QuoteStatus.WON.value, "updated_at": now}

        db.update_bid_status(conn, bid_id, BidStatus.WON.value)
        db.update_bid_statuses_for_quote(
            conn, quote_id, BidStatus.LOST.value,
            skip_statuses=BID_INELIGIBLE_STATUSES, exclude_bid_id=bid_id)
        db.update_quote(conn, quote_id, fields)

        return {
            "ok": True,
            "awardedBidId": bid_id,
            "awardedSupplierId": supplier_id,
            "awardedAt": quote.get("awarded_at") if idempotent and _present(
                quote.get("awarded_at")) else now,
            "_idempotent": idempotent,
        }

    # ── undo award ───────────────────────────────────────────────────────────

    def undo_award(self, quote_id: str, actor: dict) -> dict:
        """Clear the award record of a quote (admin only).

        Returns {"ok": True, "quoteId", "undone": bool}. undone is False when
        there was nothing to clear, including when a concurrent undo won.
        """
        ctx = {"quote_id": quote_id if isinstance(quote_id, str) else None,
               "actor_role": (actor or {}).get("role"),
               "actor_user_id": (actor or {}).get("user_id")}
        try:
            require_admin(actor)
        except UnauthorizedError:
            return self._fail("unauthorized", ctx)

        quote_id = _normalize_id(quote_id)
        if not is_uuid_like(quote_id):
            return self._fail("invalid_quote_id", ctx)
        ctx["quote_id"] = quote_id

        try:
            with db.get_db(immediate=True) as conn:
                outcome = self._undo_locked(conn, quote_id, ctx)
        except _Abort as e:
            return self._fail(e.reason, ctx)
        except sqlite3.Error:
            return self._fail("write_failed", ctx, "Undo award write failed", exc_info=True)
        except Exception:
            return self._fail("unknown", ctx, "Undo award crashed", exc_info=True)

        self._safe_invalidate(quote_id, ctx)
        if not outcome["undone"]:
            self.log.info("Undo award: nothing to clear", extra=ctx)
            return {"ok": True, "quoteId": quote_id, "undone": False}

        self.log.info("Award undone (status → %s, %d bids reset)",
                      outcome["next_status"] or "unchanged", outcome["bids_reset"], extra=ctx)
        self.emit_event(quote_id, "award_undone", actor_role="admin",
                        actor_user_id=actor.get("user_id"),
                        metadata={"previousBidId": outcome["previous_bid_id"],
                                  "previousSupplierId": outcome["previous_supplier_id"],
                                  "nextStatus": outcome["next_status"],
                                  "bidsReset": outcome["bids_reset"]},
                        capabilities=self.caps)
        return {"ok": True, "quoteId": quote_id, "undone": True}

    def _undo_locked(self, conn, quote_id: str, ctx: dict) -> dict:
        try:
            quote = db.fetch_quote(conn, quote_id, self._quote_columns())
        except sqlite3.Error:
            self.log.error("Quote lookup failed", extra=ctx, exc_info=True)
            raise _Abort("quote_lookup_failed")
        if quote is None:
            raise _Abort("not_found")

        nothing = {"undone": False, "next_status": None, "bids_reset": 0,
                   "previous_bid_id": None, "previous_supplier_id": None}
        if not self._has_award(quote):
            return nothing

        next_status = None
        # Unknown statuses are left alone; only a won quote is rolled back.
        if coerce_quote_status(quote.get("status")) == QuoteStatus.WON:
            next_status = (QuoteStatus.QUOTED if db.quote_has_bids(conn, quote_id)
                           else QuoteStatus.IN_REVIEW).value

        fields = {c: None for c in self.caps.award_columns()}
        if self.caps.award_notes:
            fields["award_notes"] = None
        fields["updated_at"] = db.utc_now_iso()
        if next_status:
            fields["status"] = next_status

        try:
            cleared = db.update_quote(conn, quote_id, fields,
                                      require_any_not_null=self.caps.award_marker_columns())
            if cleared == 0:
                return nothing
            bids_reset = db.update_bid_statuses_for_quote(
                conn, quote_id, BidStatus.SUBMITTED.value, only_statuses=RESETTABLE_BID_STATUSES)
        except sqlite3.Error:
            self.log.error("Undo award write failed", extra=ctx, exc_info=True)
            raise _Abort("write_failed")

        return {"undone": True, "next_status": next_status, "bids_reset": bids_reset,
                "previous_bid_id": quote.get("awarded_bid_id"),
                "previous_supplier_id": quote.get("awarded_supplier_id")}
