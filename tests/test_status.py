"""Tests for the status taxonomy: parsing, aliases, transition table."""

import pytest

from rfq_market.core.status import (
    QuoteStatus, BidStatus, DestinationStatus, OfferStatus, UnknownStatusError,
    QUOTE_STATUS_TRANSITIONS, WIN_BID_STATUSES, RESETTABLE_BID_STATUSES,
    parse_quote_status, coerce_quote_status, can_transition, format_quote_status_label,
    parse_bid_status, is_winning_bid_status, coerce_destination_status, coerce_offer_status,
)


class TestQuoteStatus:
    def test_canonical_values(self):
        assert parse_quote_status("won") == QuoteStatus.WON
        assert parse_quote_status("  In_Review ") == QuoteStatus.IN_REVIEW

    @pytest.mark.parametrize("raw,expected", [
        ("awarded", QuoteStatus.WON),
        ("canceled", QuoteStatus.CANCELLED),
        ("archived", QuoteStatus.CANCELLED),
        ("in review", QuoteStatus.IN_REVIEW),
        ("in-review", QuoteStatus.IN_REVIEW),
    ])
    def test_aliases(self, raw, expected):
        assert parse_quote_status(raw) == expected

    def test_empty_defaults_to_submitted(self):
        assert parse_quote_status(None) == QuoteStatus.SUBMITTED
        assert parse_quote_status("   ") == QuoteStatus.SUBMITTED

    def test_unknown_raises(self):
        with pytest.raises(UnknownStatusError) as exc:
            parse_quote_status("on_fire")
        assert exc.value.kind == "quote"
        assert exc.value.value == "on_fire"

    def test_coerce_returns_default(self):
        assert coerce_quote_status("on_fire") is None
        assert coerce_quote_status("on_fire", QuoteStatus.SUBMITTED) == QuoteStatus.SUBMITTED

    def test_label(self):
        assert format_quote_status_label("won") == "Awarded"
        assert format_quote_status_label("bogus") == "Unknown"


class TestTransitions:
    def test_table_is_exhaustive(self):
        assert set(QUOTE_STATUS_TRANSITIONS) == set(QuoteStatus)

    def test_archive_and_reopen(self):
        assert can_transition("submitted", "cancelled")
        assert can_transition("cancelled", "submitted")
        assert can_transition("lost", "submitted")

    def test_undo_award_targets(self):
        assert can_transition("won", "quoted")
        assert can_transition("won", "in_review")
        assert not can_transition("won", "cancelled")

    def test_unknown_never_transitions(self):
        assert not can_transition("bogus", "submitted")
        assert not can_transition("submitted", "bogus")


class TestBidAndOtherStatuses:
    def test_win_statuses(self):
        for raw in ("won", "winner", "accepted", "approved", " WON "):
            assert is_winning_bid_status(raw)
        for raw in ("lost", "submitted", "withdrawn", None, "garbage"):
            assert not is_winning_bid_status(raw)

    def test_resettable_excludes_bidder_owned(self):
        assert BidStatus.LOST in RESETTABLE_BID_STATUSES
        assert WIN_BID_STATUSES <= RESETTABLE_BID_STATUSES
        assert BidStatus.WITHDRAWN not in RESETTABLE_BID_STATUSES
        assert BidStatus.DECLINED not in RESETTABLE_BID_STATUSES

    def test_parse_bid_unknown(self):
        with pytest.raises(UnknownStatusError):
            parse_bid_status("maybe")

    def test_destination_and_offer_defaults(self):
        assert coerce_destination_status("weird") == DestinationStatus.DRAFT
        assert coerce_destination_status("ERROR") == DestinationStatus.ERROR
        assert coerce_offer_status(None) == OfferStatus.RECEIVED
        assert coerce_offer_status("withdrawn") == OfferStatus.WITHDRAWN
