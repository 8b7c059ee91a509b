# Quote Routes
# award / undo-award, archive / reopen, needs-reply, primary action, timeline
# Registered by app.create_app()

import logging

from flask import Blueprint, request, jsonify, current_app

from rfq_market.core import db
from rfq_market.core.security import auth_required, resolve_actor
from rfq_market.quotes import award as award_mod
from rfq_market.quotes import lifecycle
from rfq_market.quotes.events import list_quote_events
from rfq_market.quotes.needs_reply import compute_needs_reply_summary
from rfq_market.quotes.primary_action import resolve_primary_action

log = logging.getLogger("rfq_market.api.quotes")

bp = Blueprint("quotes", __name__)

_TRUE = ("1", "true", "yes", "on")


def _coordinator() -> award_mod.AwardCoordinator:
    return current_app.extensions["award_coordinator"]


def _flag(name: str, default=False):
    raw = request.args.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _result_response(result: dict, codes: dict):
    status = 200 if result.get("ok") else codes.get(result.get("error"), 500)
    return jsonify(result), status


# ── Award ────────────────────────────────────────────────────────────────────

@bp.route("/api/admin/quotes/<quote_id>/undo-award", methods=["POST"])
@auth_required
def api_undo_award(quote_id):
    result = _coordinator().undo_award(quote_id, resolve_actor())
    return _result_response(result, award_mod.STATUS_CODES)


@bp.route("/api/admin/quotes/<quote_id>/award", methods=["POST"])
@bp.route("/api/quotes/<quote_id>/award", methods=["POST"])
@auth_required
def api_award(quote_id):
    body = _json_body()
    bid_id = body.get("bidId") or body.get("bid_id")
    actor = resolve_actor()
    if request.path.startswith("/api/admin/") and (not actor or actor["role"] != "admin"):
        return jsonify({"ok": False, "error": "unauthorized"}), 401
    result = _coordinator().award(quote_id, bid_id, actor, notes=body.get("notes"))
    return _result_response(result, award_mod.STATUS_CODES)


# ── Lifecycle ────────────────────────────────────────────────────────────────

@bp.route("/api/quotes/<quote_id>/status", methods=["POST"])
@auth_required
def api_quote_status(quote_id):
    body = _json_body()
    result = lifecycle.transition_quote_status(quote_id, body.get("action"), resolve_actor(),
                                               capabilities=current_app.config.get("CAPABILITIES"))
    return _result_response(result, lifecycle.STATUS_CODES)


# ── Messages ─────────────────────────────────────────────────────────────────

@bp.route("/api/quotes/<quote_id>/needs-reply")
@auth_required
def api_needs_reply(quote_id):
    if db.get_quote(quote_id) is None:
        return jsonify({"ok": False, "error": "not_found"}), 404
    try:
        sla_hours = float(request.args["slaHours"]) if request.args.get("slaHours") else None
    except ValueError:
        sla_hours = None
    summary = compute_needs_reply_summary(db.get_messages_for_quote(quote_id),
                                          sla_window_hours=sla_hours)
    return jsonify({"ok": True, "quoteId": quote_id, **summary})


# ── Primary action ───────────────────────────────────────────────────────────

@bp.route("/api/quotes/<quote_id>/primary-action")
@auth_required
def api_primary_action(quote_id):
    actor = resolve_actor()
    if not actor:
        return jsonify({"ok": False, "error": "invalid_input"}), 400
    quote = db.get_quote(quote_id)
    if quote is None:
        return jsonify({"ok": False, "error": "not_found"}), 404
    action = resolve_primary_action(
        actor["role"],
        status=quote.get("status"),
        needs_decision=_flag("needsDecision"),
        has_winner=_flag("hasWinner", default=None),
        kickoff_complete=_flag("kickoffComplete"),
        can_submit_bid=_flag("canSubmitBid"),
        awarded_to_supplier=_flag("awardedToSupplier"),
        can_award=_flag("canAward"),
        quote=quote,
    )
    return jsonify({"ok": True, "quoteId": quote_id, "primaryAction": action})


# ── Timeline ─────────────────────────────────────────────────────────────────

@bp.route("/api/quotes/<quote_id>/events")
@auth_required
def api_quote_events(quote_id):
    result = list_quote_events(quote_id, limit=request.args.get("limit"))
    return jsonify(result), (200 if result["ok"] else 500)
