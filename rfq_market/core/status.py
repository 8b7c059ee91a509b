"""
rfq_market/core/status.py: Status Taxonomy

Closed vocabularies for quote, bid, destination and offer status.

Raw strings from the database are parsed into these enums at the boundary.
parse_* functions raise UnknownStatusError on values outside the vocabulary;
coerce_* functions return a caller-supplied default instead and are meant for
fail-soft code paths (scoring, aggregation, display).

Quote lifecycle: submitted → in_review → quoted → approved → won
                 any open status → cancelled (archive) ; lost/cancelled → submitted (reopen)
"""

from enum import Enum


class UnknownStatusError(ValueError):
    """Raised when a status string is not part of its vocabulary."""

    def __init__(self, kind: str, value):
        super().__init__(f"unknown {kind} status: {value!r}")
        self.kind = kind
        self.value = value


class QuoteStatus(str, Enum):
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    QUOTED = "quoted"
    APPROVED = "approved"
    WON = "won"
    LOST = "lost"
    CANCELLED = "cancelled"


class BidStatus(str, Enum):
    SUBMITTED = "submitted"
    REVISED = "revised"
    PENDING = "pending"
    ACCEPTED = "accepted"
    WON = "won"
    WINNER = "winner"
    APPROVED = "approved"
    DECLINED = "declined"
    WITHDRAWN = "withdrawn"
    LOST = "lost"


class DestinationStatus(str, Enum):
    DRAFT = "draft"
    QUEUED = "queued"
    SENT = "sent"
    SUBMITTED = "submitted"
    VIEWED = "viewed"
    QUOTED = "quoted"
    DECLINED = "declined"
    ERROR = "error"
    PENDING = "pending"


class OfferStatus(str, Enum):
    RECEIVED = "received"
    REVISED = "revised"
    QUOTED = "quoted"
    WITHDRAWN = "withdrawn"


DEFAULT_QUOTE_STATUS = QuoteStatus.SUBMITTED

_QUOTE_ALIASES = {
    "awarded": QuoteStatus.WON,
    "canceled": QuoteStatus.CANCELLED,
    "archived": QuoteStatus.CANCELLED,
    "in review": QuoteStatus.IN_REVIEW,
    "in-review": QuoteStatus.IN_REVIEW,
}

# ── Bid status groups ────────────────────────────────────────────────────────
WIN_BID_STATUSES = frozenset({BidStatus.WON, BidStatus.WINNER,
                              BidStatus.ACCEPTED, BidStatus.APPROVED})
# Statuses an award (or undo-award) is allowed to rewrite
RESETTABLE_BID_STATUSES = WIN_BID_STATUSES | {BidStatus.LOST}
# Bidder-initiated; independent of the award decision
BIDDER_OWNED_BID_STATUSES = frozenset({BidStatus.DECLINED, BidStatus.WITHDRAWN})
BID_INELIGIBLE_STATUSES = frozenset({BidStatus.LOST}) | BIDDER_OWNED_BID_STATUSES

# ── Destination status groups ────────────────────────────────────────────────
PENDING_DESTINATION_STATUSES = frozenset({
    DestinationStatus.DRAFT, DestinationStatus.QUEUED, DestinationStatus.SENT,
    DestinationStatus.SUBMITTED, DestinationStatus.VIEWED,
})

# ── Quote transition table ───────────────────────────────────────────────────
_OPEN = (QuoteStatus.SUBMITTED, QuoteStatus.IN_REVIEW,
         QuoteStatus.QUOTED, QuoteStatus.APPROVED)

QUOTE_STATUS_TRANSITIONS = {
    QuoteStatus.SUBMITTED: frozenset({QuoteStatus.IN_REVIEW, QuoteStatus.QUOTED,
                                      QuoteStatus.WON, QuoteStatus.CANCELLED}),
    QuoteStatus.IN_REVIEW: frozenset({QuoteStatus.QUOTED, QuoteStatus.APPROVED,
                                      QuoteStatus.WON, QuoteStatus.CANCELLED}),
    QuoteStatus.QUOTED: frozenset({QuoteStatus.IN_REVIEW, QuoteStatus.APPROVED,
                                   QuoteStatus.WON, QuoteStatus.LOST,
                                   QuoteStatus.CANCELLED}),
    QuoteStatus.APPROVED: frozenset({QuoteStatus.QUOTED, QuoteStatus.WON,
                                     QuoteStatus.LOST, QuoteStatus.CANCELLED}),
    # undo-award returns a won quote to quoted (bids exist) or in_review
    QuoteStatus.WON: frozenset({QuoteStatus.QUOTED, QuoteStatus.IN_REVIEW}),
    QuoteStatus.LOST: frozenset({QuoteStatus.SUBMITTED, QuoteStatus.CANCELLED}),
    QuoteStatus.CANCELLED: frozenset({QuoteStatus.SUBMITTED}),
}

_missing = set(QuoteStatus) - set(QUOTE_STATUS_TRANSITIONS)
if _missing:
    raise RuntimeError(f"QUOTE_STATUS_TRANSITIONS missing entries for {sorted(_missing)}")
del _missing

CUSTOMER_AWARD_ALLOWED_STATUSES = frozenset(_OPEN)

QUOTE_STATUS_LABELS = {
    QuoteStatus.SUBMITTED: "Submitted",
    QuoteStatus.IN_REVIEW: "In review",
    QuoteStatus.QUOTED: "Quoted",
    QuoteStatus.APPROVED: "Approved",
    QuoteStatus.WON: "Awarded",
    QuoteStatus.LOST: "Lost",
    QuoteStatus.CANCELLED: "Cancelled",
}


def _clean(value) -> str:
    if isinstance(value, Enum):
        value = value.value
    return value.strip().lower() if isinstance(value, str) else ""


# ── Quote ────────────────────────────────────────────────────────────────────

def parse_quote_status(value) -> QuoteStatus:
    """Parse a raw quote status. Empty → submitted, unknown → UnknownStatusError."""
    cleaned = _clean(value)
    if not cleaned:
        return DEFAULT_QUOTE_STATUS
    if cleaned in _QUOTE_ALIASES:
        return _QUOTE_ALIASES[cleaned]
    try:
        return QuoteStatus(cleaned)
    except ValueError:
        raise UnknownStatusError("quote", value) from None


def coerce_quote_status(value, default=None):
    try:
        return parse_quote_status(value)
    except UnknownStatusError:
        return default


def can_transition(from_status, to_status) -> bool:
    src = coerce_quote_status(from_status)
    dst = coerce_quote_status(to_status)
    if src is None or dst is None:
        return False
    return dst in QUOTE_STATUS_TRANSITIONS[src]


def format_quote_status_label(value) -> str:
    status = coerce_quote_status(value)
    return QUOTE_STATUS_LABELS[status] if status else "Unknown"


# ── Bid ──────────────────────────────────────────────────────────────────────

def parse_bid_status(value) -> BidStatus:
    cleaned = _clean(value)
    try:
        return BidStatus(cleaned)
    except ValueError:
        raise UnknownStatusError("bid", value) from None


def coerce_bid_status(value, default=None):
    try:
        return parse_bid_status(value)
    except UnknownStatusError:
        return default


def is_winning_bid_status(value) -> bool:
    return coerce_bid_status(value) in WIN_BID_STATUSES


# ── Destination ──────────────────────────────────────────────────────────────

def parse_destination_status(value) -> DestinationStatus:
    cleaned = _clean(value)
    try:
        return DestinationStatus(cleaned)
    except ValueError:
        raise UnknownStatusError("destination", value) from None


def coerce_destination_status(value, default=DestinationStatus.DRAFT):
    try:
        return parse_destination_status(value)
    except UnknownStatusError:
        return default


# ── Offer ────────────────────────────────────────────────────────────────────

def parse_offer_status(value) -> OfferStatus:
    cleaned = _clean(value)
    try:
        return OfferStatus(cleaned)
    except ValueError:
        raise UnknownStatusError("offer", value) from None


def coerce_offer_status(value, default=OfferStatus.RECEIVED):
    try:
        return parse_offer_status(value)
    except UnknownStatusError:
        return default
