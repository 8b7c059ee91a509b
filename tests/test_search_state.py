"""Tests for search-state aggregation and the customer progress copy."""

from rfq_market.rfqs.search_state import (
    build_search_state_summary, build_search_progress, format_search_state_label,
    search_state_label_tone,
)

NOW = "2026-10-01T12:00:00+00:00"


def _dest(status, last_status_at="2026-10-01T10:00:00+00:00"):
    return {"status": status, "last_status_at": last_status_at}


class TestSummary:
    def test_no_destinations_wins_over_offers(self):
        summary = build_search_state_summary([], [{"status": "received"}])
        assert summary["status_label"] == "no_destinations"
        assert summary["recommended_action"] == "adjust_search"
        assert summary["counts"]["offers_total"] == 1

    def test_error_without_offers_needs_support(self):
        summary = build_search_state_summary([_dest("error")], [])
        assert summary["status_label"] == "needs_attention"
        assert summary["recommended_action"] == "contact_support"
        assert summary["counts"]["destinations_error"] == 1

    def test_nothing_pending_needs_adjustment(self):
        summary = build_search_state_summary([_dest("declined")], [])
        assert summary["status_label"] == "needs_attention"
        assert summary["recommended_action"] == "adjust_search"

    def test_searching(self):
        summary = build_search_state_summary([_dest("sent"), _dest("queued")], [])
        assert summary["status_label"] == "searching"
        assert summary["recommended_action"] == "refresh"
        assert summary["counts"]["destinations_pending"] == 2

    def test_results_available(self):
        summary = build_search_state_summary(
            [_dest("quoted")], [{"status": "received", "received_at": "2026-10-01T11:00:00Z"}])
        assert summary["status_label"] == "results_available"
        assert summary["recommended_action"] == "refresh"

    def test_withdrawn_offers_not_counted(self):
        summary = build_search_state_summary([_dest("sent")], [{"status": "withdrawn"}])
        assert summary["counts"]["offers_total"] == 0
        assert summary["status_label"] == "searching"

    def test_timestamps(self):
        summary = build_search_state_summary(
            [_dest("sent", "2026-10-01T08:00:00+00:00"),
             _dest("viewed", "2026-10-01T09:30:00+00:00"),
             _dest("sent", None)],
            [{"status": "received", "received_at": None,
              "created_at": "2026-10-01T09:00:00+00:00"}])
        ts = summary["timestamps"]
        assert ts["last_destination_activity_at"] == "2026-10-01T09:30:00+00:00"
        assert ts["last_offer_received_at"] == "2026-10-01T09:00:00+00:00"
        assert ts["last_activity_at"] == "2026-10-01T09:30:00+00:00"


class TestProgressCopy:
    def test_initializing(self):
        summary = build_search_state_summary([], [])
        progress = build_search_progress(summary, quote_id="q-1", is_initializing=True, now=NOW)
        assert progress == {
            "statusTag": "Initializing",
            "statusHeadline": "Contacting suppliers...",
            "statusDetail": "We're preparing your request and contacting suppliers "
                            "that match it.",
        }

    def test_adjust_search_links_to_uploads(self):
        summary = build_search_state_summary([], [])
        progress = build_search_progress(summary, quote_id="q-1", now=NOW)
        assert progress["statusTag"] == "No suppliers contacted"
        assert progress["recommendedActionLabel"] == "Adjust search"
        assert progress["recommendedActionHref"] == "/customer/quotes/q-1#uploads"
        assert "lastUpdatedLabel" not in progress

    def test_adjust_search_without_quote_id_has_no_link(self):
        summary = build_search_state_summary([], [])
        progress = build_search_progress(summary, now=NOW)
        assert "recommendedActionHref" not in progress

    def test_contact_support_mailto(self):
        summary = build_search_state_summary([_dest("error")], [])
        progress = build_search_progress(summary, quote_id="q-1", now=NOW,
                                         support_email="help@example.test")
        assert progress["recommendedActionHref"] == "mailto:help@example.test"
        assert progress["statusDetail"].startswith("Some suppliers could not be contacted")
        assert progress["lastUpdatedLabel"] == "Last updated 2 hours ago"

    def test_refresh_has_no_action(self):
        summary = build_search_state_summary([_dest("sent", "2026-10-01T11:55:00+00:00")], [])
        progress = build_search_progress(summary, quote_id="q-1", now=NOW)
        assert progress["statusTag"] == "Searching"
        assert "recommendedActionLabel" not in progress
        assert progress["lastUpdatedLabel"] == "Last updated 5 minutes ago"

    def test_labels_and_tones(self):
        assert format_search_state_label("results_available") == "Results available"
        assert format_search_state_label("whatever") == "Searching"
        assert search_state_label_tone("needs_attention") == "red"
