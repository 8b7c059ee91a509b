"""
offers.py: RFQ Offer Rows + Canonical Offer Write Path

One write path for every offer source:
  - supplier-submitted offers (provider token link)
  - broker/admin inserted offers (manual/external, provider_id may be None)

An offer is upserted on (rfq_id, provider_id): a second submission from the
same provider is a revision of the first, never a new row. Offers are never
deleted; withdrawal is a status change.
"""

import logging

from rfq_market.core import db
from rfq_market.core.status import OfferStatus, DestinationStatus, coerce_offer_status
from rfq_market.quotes.events import emit_quote_event
from rfq_market.rfqs.scoring import to_finite_number, normalize_currency

log = logging.getLogger("rfq_market.offers")


def _normalize_id(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_offer_row(row: dict) -> dict:
    """Coerce a raw offer row into the shape the scorer expects."""
    flags = row.get("quality_risk_flags")
    if not isinstance(flags, list):
        flags = []
    return {
        **row,
        "provider_id": _normalize_id(row.get("provider_id")) or None,
        "currency": normalize_currency(row.get("currency")),
        "lead_time_days_min": to_finite_number(row.get("lead_time_days_min")),
        "lead_time_days_max": to_finite_number(row.get("lead_time_days_max")),
        "confidence_score": to_finite_number(row.get("confidence_score")),
        "quality_risk_flags": [f for f in flags if isinstance(f, str)],
        "status": coerce_offer_status(row.get("status")).value,
        "received_at": row.get("received_at") or row.get("created_at"),
    }


def is_active_offer(offer: dict) -> bool:
    return coerce_offer_status(offer.get("status")) != OfferStatus.WITHDRAWN


def get_rfq_offers(rfq_id: str, include_withdrawn: bool = False) -> list:
    rfq_id = _normalize_id(rfq_id)
    if not rfq_id:
        return []
    offers = [normalize_offer_row(r) for r in db.get_offers_for_rfq(rfq_id)]
    if include_withdrawn:
        return offers
    return [o for o in offers if is_active_offer(o)]


def count_rfq_offers(rfq_id: str) -> int:
    return len(get_rfq_offers(rfq_id))


def write_rfq_offer(rfq_id: str, provider_id, total_price, lead_time_days_min,
                    lead_time_days_max, currency: str = "USD", destination_id=None,
                    unit_price=None, tooling_price=None, shipping_price=None,
                    assumptions=None, notes=None, confidence_score=None,
                    quality_risk_flags=None, received_at=None, source_type=None,
                    source_name=None, actor_role: str = "supplier", actor_user_id=None,
                    actor_source: str = "provider_token", emit_event=None,
                    capabilities=None) -> dict:
    """Validate and upsert one offer.

    Returns {"ok": True, "offerId", "wasRevision"} or {"ok": False, "error"}.
    """
    emit = emit_event or emit_quote_event
    rfq_id = _normalize_id(rfq_id)
    provider_id = _normalize_id(provider_id) or None
    destination_id = _normalize_id(destination_id) or None

    if not rfq_id:
        return {"ok": False, "error": "Missing RFQ id."}
    price = to_finite_number(total_price)
    if price is None or price <= 0:
        return {"ok": False, "error": "Invalid offer price."}
    lo = to_finite_number(lead_time_days_min)
    hi = to_finite_number(lead_time_days_max)
    if lo is None or lo <= 0 or hi is None or hi <= 0:
        return {"ok": False, "error": "Invalid lead time."}
    if lo > hi:
        lo, hi = hi, lo
    confidence = to_finite_number(confidence_score)
    if confidence is not None:
        confidence = max(0.0, min(100.0, confidence))
    # Anything but a list of strings carries no flags.
    if not isinstance(quality_risk_flags, (list, tuple)):
        quality_risk_flags = []
    risk_flags = [f.strip() for f in quality_risk_flags if isinstance(f, str) and f.strip()]
    currency = normalize_currency(currency)

    log_ctx = {"rfq_id": rfq_id, "offer_id": None, "actor_role": actor_role}
    try:
        with db.get_db(immediate=True) as conn:
            if db.fetch_quote(conn, rfq_id, ["id"]) is None:
                return {"ok": False, "error": "RFQ not found."}

            existing = (db.fetch_offer_by_provider(conn, rfq_id, provider_id)
                        if provider_id else None)
            was_revision = existing is not None
            status = OfferStatus.REVISED if was_revision else OfferStatus.RECEIVED

            offer_id = db.upsert_offer(conn, {
                "rfq_id": rfq_id,
                "provider_id": provider_id,
                "destination_id": destination_id,
                "currency": currency,
                "total_price": price,
                "unit_price": unit_price,
                "tooling_price": tooling_price,
                "shipping_price": shipping_price,
                "lead_time_days_min": lo,
                "lead_time_days_max": hi,
                "assumptions": assumptions,
                "notes": notes,
                "confidence_score": confidence,
                "quality_risk_flags": risk_flags,
                "status": status.value,
                "source_type": source_type,
                "source_name": source_name,
                "received_at": received_at,
            })
            if destination_id:
                db.update_destination_status(conn, destination_id,
                                             DestinationStatus.QUOTED.value)
    except Exception as e:
        log.error("Offer write failed: %s", e, extra=log_ctx, exc_info=True)
        return {"ok": False, "error": "Unable to save offer."}

    log_ctx["offer_id"] = offer_id
    log.info("Offer %s for RFQ %s via %s", "revised" if was_revision else "received",
             rfq_id, actor_source, extra=log_ctx)
    emit(rfq_id, "offer_revised" if was_revision else "offer_received",
         actor_role=actor_role, actor_user_id=actor_user_id,
         metadata={"offerId": offer_id, "providerId": provider_id,
                   "source": actor_source, "totalPrice": price},
         capabilities=capabilities)
    return {"ok": True, "offerId": offer_id, "wasRevision": was_revision}


def withdraw_rfq_offer(offer_id: str) -> dict:
    offer_id = _normalize_id(offer_id)
    if not offer_id:
        return {"ok": False, "error": "Missing offer id."}
    if db.update_offer_status(offer_id, OfferStatus.WITHDRAWN.value) == 0:
        return {"ok": False, "error": "Offer not found."}
    log.info("Offer withdrawn", extra={"offer_id": offer_id})
    return {"ok": True, "offerId": offer_id}
