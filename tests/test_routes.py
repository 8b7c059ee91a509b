"""Tests for the HTTP surface (Flask test client)."""

import base64

from rfq_market.core import db
from rfq_market.rfqs.offers import write_rfq_offer


# ─── Auth + health ──────────────────────────────────────────────────────────

class TestAuthAndHealth:
    def test_health_is_public(self, anon_client):
        resp = anon_client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["ok"] is True

    def test_basic_auth_required(self, anon_client, make_quote):
        qid = make_quote()
        resp = anon_client.get(f"/api/rfq/{qid}/offers")
        assert resp.status_code == 401
        assert resp.get_json() == {"ok": False, "error": "unauthorized"}
        assert "Basic" in resp.headers["WWW-Authenticate"]

    def test_non_ascii_credentials_rejected(self, anon_client, make_quote):
        qid = make_quote()
        token = base64.b64encode("café:x".encode("utf-8")).decode("ascii")
        resp = anon_client.get(f"/api/rfq/{qid}/offers",
                               headers={"Authorization": f"Basic {token}"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "unauthorized"


# ─── Award routes ───────────────────────────────────────────────────────────

class TestAwardRoutes:
    def test_undo_award(self, client, admin_headers, awarded_quote):
        qid, _, _ = awarded_quote
        resp = client.post(f"/api/admin/quotes/{qid}/undo-award", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"ok": True, "quoteId": qid, "undone": True}

        again = client.post(f"/api/admin/quotes/{qid}/undo-award", headers=admin_headers)
        assert again.get_json()["undone"] is False

    def test_undo_award_unauthorized_actor(self, client, customer_headers, awarded_quote):
        qid, _, _ = awarded_quote
        resp = client.post(f"/api/admin/quotes/{qid}/undo-award", headers=customer_headers)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "unauthorized"

    def test_undo_award_invalid_id(self, client, admin_headers):
        resp = client.post("/api/admin/quotes/not-a-uuid/undo-award", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "invalid_quote_id"

    def test_undo_award_not_found(self, client, admin_headers):
        resp = client.post("/api/admin/quotes/9b2f6a1e-3c4d-4e5f-8a9b-0c1d2e3f4a5b/undo-award",
                           headers=admin_headers)
        assert resp.status_code == 404

    def test_customer_award(self, client, customer_headers, make_quote, make_bid):
        qid = make_quote(status="quoted")
        bid = make_bid(qid, supplier_id="sup-1")
        resp = client.post(f"/api/quotes/{qid}/award", json={"bidId": bid},
                           headers=customer_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["awardedBidId"] == bid
        assert db.get_quote(qid)["awarded_by_role"] == "customer"

    def test_admin_award_route_rejects_customer(self, client, customer_headers, make_quote,
                                                make_bid):
        qid = make_quote()
        bid = make_bid(qid)
        resp = client.post(f"/api/admin/quotes/{qid}/award", json={"bidId": bid},
                           headers=customer_headers)
        assert resp.status_code == 401

    def test_award_conflict(self, client, admin_headers, awarded_quote, make_bid):
        qid, _, _ = awarded_quote
        other = make_bid(qid, supplier_id="sup-z")
        resp = client.post(f"/api/admin/quotes/{qid}/award", json={"bidId": other},
                           headers=admin_headers)
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "winner_exists"

    def test_award_missing_bid_id(self, client, admin_headers, make_quote):
        qid = make_quote()
        resp = client.post(f"/api/admin/quotes/{qid}/award", json={}, headers=admin_headers)
        assert resp.status_code == 400


# ─── Quote routes ───────────────────────────────────────────────────────────

class TestQuoteRoutes:
    def test_status_archive(self, client, admin_headers, make_quote):
        qid = make_quote()
        resp = client.post(f"/api/quotes/{qid}/status", json={"action": "archive"},
                           headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "cancelled"

    def test_status_denied(self, client, admin_headers, awarded_quote):
        qid, _, _ = awarded_quote
        resp = client.post(f"/api/quotes/{qid}/status", json={"action": "archive"},
                           headers=admin_headers)
        assert resp.status_code == 409

    def test_needs_reply(self, client, make_quote):
        qid = make_quote()
        db.insert_message({"quote_id": qid, "sender_role": "customer", "body": "Any update?",
                           "created_at": "2020-01-01T00:00:00+00:00"})
        resp = client.get(f"/api/quotes/{qid}/needs-reply?slaHours=12")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["supplierOwesReply"] is True
        assert body["supplierReplyOverdue"] is True
        assert body["slaWindowHours"] == 12

    def test_needs_reply_unknown_quote(self, client):
        assert client.get("/api/quotes/ghost/needs-reply").status_code == 404

    def test_primary_action(self, client, make_quote, headers_for):
        qid = make_quote(status="quoted")
        resp = client.get(f"/api/quotes/{qid}/primary-action?canAward=1",
                          headers=headers_for("customer", "cust-user-1",
                                              customer_id="cust-1"))
        assert resp.status_code == 200
        assert resp.get_json()["primaryAction"] == {"label": "Review bids",
                                                    "href": "#decision", "tone": "emerald"}

    def test_primary_action_needs_actor(self, client, make_quote):
        qid = make_quote()
        assert client.get(f"/api/quotes/{qid}/primary-action").status_code == 400

    def test_events_timeline(self, client, admin_headers, make_quote):
        qid = make_quote()
        client.post(f"/api/quotes/{qid}/status", json={"action": "archive"},
                    headers=admin_headers)
        resp = client.get(f"/api/quotes/{qid}/events")
        assert resp.status_code == 200
        assert [e["event_type"] for e in resp.get_json()["events"]] == ["quote_archived"]


# ─── RFQ routes ─────────────────────────────────────────────────────────────

class TestRfqRoutes:
    def test_ranked_offers(self, client, make_quote, make_provider):
        rfq = make_quote()
        fast = make_provider("Fastline")
        cheap = make_provider("Budget Works")
        write_rfq_offer(rfq, fast, 1200, 3, 5, confidence_score=70)
        write_rfq_offer(rfq, cheap, 900, 10, 12, unit_price=9, confidence_score=90)

        resp = client.get(f"/api/rfq/{rfq}/offers")
        assert resp.status_code == 200
        offers = {o["providerName"]: o for o in resp.get_json()["offers"]}
        assert "Fastest" in offers["Fastline"]["badges"]
        assert offers["Budget Works"]["completeness"]["score"] == 100
        assert offers["Fastline"]["completeness"]["missing"] == ["Missing unit price"]

    def test_offers_count(self, client, make_quote):
        rfq = make_quote()
        write_rfq_offer(rfq, "p-1", 100, 1, 2)
        resp = client.get(f"/api/rfq/offers-count?rfqId={rfq}")
        assert resp.get_json() == {"ok": True, "rfqId": rfq, "count": 1}
        assert client.get("/api/rfq/offers-count").status_code == 400

    def test_search_state(self, client, make_quote, make_destination):
        rfq = make_quote()
        make_destination(rfq, provider_id="p-1", status="error")
        resp = client.get(f"/api/rfq/{rfq}/search-state")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["summary"]["status_label"] == "needs_attention"
        assert body["summary"]["recommended_action"] == "contact_support"
        assert body["progress"]["recommendedActionHref"].startswith("mailto:")
        assert body["sla"]["errorsCount"] == 1

    def test_supplier_submits_offer(self, client, make_quote, headers_for):
        rfq = make_quote()
        headers = headers_for("supplier", "sup-user", supplier_id="prov-7")
        resp = client.post(f"/api/rfq/{rfq}/offers", headers=headers,
                           json={"totalPrice": "450", "leadTimeDaysMin": 4,
                                 "leadTimeDaysMax": 6})
        assert resp.status_code == 201
        revised = client.post(f"/api/rfq/{rfq}/offers", headers=headers,
                              json={"totalPrice": 430, "leadTimeDaysMin": 4,
                                    "leadTimeDaysMax": 6})
        assert revised.status_code == 200
        assert revised.get_json()["wasRevision"] is True

    def test_offer_validation_errors(self, client, admin_headers, make_quote):
        rfq = make_quote()
        resp = client.post(f"/api/rfq/{rfq}/offers", headers=admin_headers,
                           json={"totalPrice": -1, "leadTimeDaysMin": 1, "leadTimeDaysMax": 2})
        assert resp.status_code == 400
        missing = client.post("/api/rfq/ghost/offers", headers=admin_headers,
                              json={"totalPrice": 10, "leadTimeDaysMin": 1,
                                    "leadTimeDaysMax": 2})
        assert missing.status_code == 404
