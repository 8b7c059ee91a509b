# RFQ Routes
# offers (ranked + write path), offer count, search state
# Registered by app.create_app()

import logging

from flask import Blueprint, request, jsonify, current_app

from rfq_market.core import db
from rfq_market.core.security import auth_required, resolve_actor
from rfq_market.rfqs.destinations import get_rfq_destinations, compute_quote_needs_action
from rfq_market.rfqs.offers import get_rfq_offers, count_rfq_offers, write_rfq_offer
from rfq_market.rfqs.scoring import decorate_offers_for_compare, score_offer_completeness
from rfq_market.rfqs.search_state import build_search_state_summary, build_search_progress

log = logging.getLogger("rfq_market.api.rfq")

bp = Blueprint("rfq", __name__)


def _pick(body: dict, *keys):
    for key in keys:
        if body.get(key) is not None:
            return body[key]
    return None


@bp.route("/api/rfq/<rfq_id>/offers")
@auth_required
def api_rfq_offers(rfq_id):
    if db.get_quote(rfq_id) is None:
        return jsonify({"ok": False, "error": "not_found"}), 404
    offers = decorate_offers_for_compare(get_rfq_offers(rfq_id))
    for offer in offers:
        offer["completeness"] = score_offer_completeness(offer)
    return jsonify({"ok": True, "rfqId": rfq_id, "offers": offers, "count": len(offers)})


@bp.route("/api/rfq/offers-count")
@auth_required
def api_rfq_offers_count():
    rfq_id = (request.args.get("rfqId") or "").strip()
    if not rfq_id:
        return jsonify({"ok": False, "error": "rfqId is required"}), 400
    return jsonify({"ok": True, "rfqId": rfq_id, "count": count_rfq_offers(rfq_id)})


@bp.route("/api/rfq/<rfq_id>/search-state")
@auth_required
def api_search_state(rfq_id):
    quote = db.get_quote(rfq_id)
    if quote is None:
        return jsonify({"ok": False, "error": "not_found"}), 404
    destinations = get_rfq_destinations(rfq_id)
    offers = get_rfq_offers(rfq_id)
    summary = build_search_state_summary(destinations, offers)
    progress = build_search_progress(summary, quote_id=rfq_id,
                                     is_initializing=request.args.get("initializing") == "1")
    return jsonify({
        "ok": True,
        "rfqId": rfq_id,
        "summary": summary,
        "progress": progress,
        "sla": compute_quote_needs_action(destinations, offers),
    })


@bp.route("/api/rfq/<rfq_id>/offers", methods=["POST"])
@auth_required
def api_submit_offer(rfq_id):
    actor = resolve_actor()
    if not actor or actor["role"] not in ("admin", "supplier"):
        return jsonify({"ok": False, "error": "invalid_input"}), 400
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return jsonify({"ok": False, "error": "invalid_input"}), 400

    provider_id = _pick(body, "providerId", "provider_id")
    if actor["role"] == "supplier":
        provider_id = actor.get("supplier_id") or provider_id
    result = write_rfq_offer(
        rfq_id, provider_id,
        total_price=_pick(body, "totalPrice", "total_price"),
        lead_time_days_min=_pick(body, "leadTimeDaysMin", "lead_time_days_min"),
        lead_time_days_max=_pick(body, "leadTimeDaysMax", "lead_time_days_max"),
        currency=_pick(body, "currency"),
        destination_id=_pick(body, "destinationId", "destination_id"),
        unit_price=_pick(body, "unitPrice", "unit_price"),
        tooling_price=_pick(body, "toolingPrice", "tooling_price"),
        shipping_price=_pick(body, "shippingPrice", "shipping_price"),
        assumptions=_pick(body, "assumptions"),
        notes=_pick(body, "notes"),
        confidence_score=_pick(body, "confidenceScore", "confidence_score"),
        quality_risk_flags=_pick(body, "qualityRiskFlags", "quality_risk_flags"),
        source_type=_pick(body, "sourceType", "source_type"),
        source_name=_pick(body, "sourceName", "source_name"),
        actor_role=actor["role"],
        actor_user_id=actor["user_id"],
        actor_source="provider_token" if actor["role"] == "supplier" else "admin_manual",
        capabilities=current_app.config.get("CAPABILITIES"),
    )
    if result["ok"]:
        return jsonify(result), (200 if result["wasRevision"] else 201)
    if result["error"] == "RFQ not found.":
        return jsonify(result), 404
    if result["error"] == "Unable to save offer.":
        return jsonify(result), 500
    return jsonify(result), 400
