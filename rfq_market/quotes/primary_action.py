"""
primary_action.py: The single "do this next" button on a quote page.

The resolver only routes; every hint (needs_decision, can_award, ...) is
computed by the caller from the data it already loaded.

Tones: emerald = emphasis, blue = active, slate = muted.
"""

from rfq_market.core.status import QuoteStatus, coerce_quote_status

TONE_EMPHASIS = "emerald"
TONE_ACTIVE = "blue"
TONE_MUTED = "slate"

QUOTE_ACTOR_ROLES = ("admin", "supplier", "customer")

_CLOSED_STATUSES = (QuoteStatus.LOST, QuoteStatus.CANCELLED)


def _action(label: str, href: str, tone: str) -> dict:
    return {"label": label, "href": href, "tone": tone}


def quote_has_winner(quote) -> bool:
    if not isinstance(quote, dict):
        return False
    for key in ("awarded_supplier_id", "awarded_at"):
        value = quote.get(key)
        if isinstance(value, str) and value.strip():
            return True
    return False


def resolve_primary_action(role: str, status=None, needs_decision: bool = False,
                           has_winner: bool = None, kickoff_complete: bool = False,
                           can_submit_bid: bool = False, awarded_to_supplier: bool = False,
                           can_award: bool = False, quote: dict = None) -> dict:
    """Return {"label", "href", "tone"} for the viewer.

    Raises ValueError for a role outside QUOTE_ACTOR_ROLES.
    """
    if role not in QUOTE_ACTOR_ROLES:
        raise ValueError(f"unknown quote actor role: {role!r}")
    if has_winner is None:
        has_winner = quote_has_winner(quote)
    closed = coerce_quote_status(status) in _CLOSED_STATUSES

    if role == "admin":
        if needs_decision:
            return _action("Award", "#decision", TONE_EMPHASIS)
        if has_winner:
            return _action("View kickoff", "#kickoff", TONE_ACTIVE)
        return _action("Open messages", "#messages", TONE_ACTIVE)

    if role == "supplier":
        if can_submit_bid:
            return _action("Submit bid", "#bid", TONE_EMPHASIS)
        if awarded_to_supplier:
            return _action("Kickoff", "#kickoff", TONE_EMPHASIS)
        if has_winner or closed:
            return _action("Open messages", "#messages", TONE_MUTED)
        return _action("Open messages", "#messages", TONE_ACTIVE)

    if can_award:
        return _action("Review bids", "#decision", TONE_EMPHASIS)
    if has_winner and not kickoff_complete:
        return _action("View kickoff", "#kickoff", TONE_EMPHASIS)
    if closed:
        return _action("View timeline", "#timeline", TONE_MUTED)
    return _action("View timeline", "#timeline", TONE_ACTIVE)
