"""
scoring.py: Offer Ranking, Comparison Badges, Completeness

Ranks the competing offers of ONE RFQ and hands out comparison badges:

  Best Value   highest rankScore
  Fastest      lowest average lead time
  Lowest Risk  fewest quality-risk flags, then highest confidence

rankScore = priceScore*0.55 + leadTimeScore*0.30 + confidence/100*0.10
            - riskFlagCount*0.08

priceScore / leadTimeScore are relative to the best value in the set
(min/value), so the cheapest/fastest offer scores 1.0 on that axis.

Every badge has at most one holder. Ties are broken by offer_rank_key():
provider name ascending, then provider id / offer id ascending.

Everything here is pure and fail-soft: bad numbers become None and simply
drop the offer out of the affected badge instead of raising.
"""

import math
import logging

log = logging.getLogger("rfq_market.scoring")

BADGE_BEST_VALUE = "Best Value"
BADGE_FASTEST = "Fastest"
BADGE_LOWEST_RISK = "Lowest Risk"

SCORE_WEIGHTS = {
    "price": 0.55,
    "lead_time": 0.30,
    "confidence": 0.10,
    "risk_penalty": 0.08,
}

COMPLETENESS_WEIGHTS = {
    "total_price": 50,
    "unit_price": 15,
    "lead_time": 35,
}

_CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥"}


# ── Number parsing ───────────────────────────────────────────────────────────

def to_finite_number(value):
    """int/float/numeric string → float, anything else (or NaN/inf) → None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return None
        try:
            parsed = float(trimmed)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_confidence(value):
    numeric = to_finite_number(value)
    if numeric is None:
        return None
    if numeric < 0:
        return 0
    if numeric > 100:
        return 100
    return _round_half_up(numeric)


def resolve_lead_time_average(min_days, max_days):
    lo = to_finite_number(min_days)
    hi = to_finite_number(max_days)
    if lo is not None and hi is not None:
        return (lo + hi) / 2
    return lo if lo is not None else hi


def count_risk_flags(flags) -> int:
    if not isinstance(flags, (list, tuple)):
        return 0
    return sum(1 for f in flags if isinstance(f, str) and f.strip())


def resolve_provider_name(offer: dict) -> str:
    provider = offer.get("provider") or {}
    name = provider.get("name") if isinstance(provider, dict) else None
    name = name.strip() if isinstance(name, str) else ""
    provider_id = offer.get("provider_id")
    provider_id = str(provider_id).strip() if provider_id is not None else ""
    return name or provider_id or "Provider"


def min_numeric(values):
    finite = [v for v in values if v is not None and math.isfinite(v)]
    return min(finite) if finite else None


def score_relative(min_value, value) -> float:
    """min/value, with the zero and missing cases pinned down."""
    if min_value is None or not math.isfinite(min_value):
        return 0.0
    if value is None or not math.isfinite(value):
        return 0.0
    if min_value == 0:
        return 1.0 if value == 0 else 0.0
    return min_value / value


# ── Display ──────────────────────────────────────────────────────────────────

def normalize_currency(currency) -> str:
    """ISO code, upper-cased. Blank or non-string values fall back to USD."""
    if isinstance(currency, str) and currency.strip():
        return currency.strip().upper()
    return "USD"


def format_currency(amount: float, currency: str = "USD") -> str:
    code = normalize_currency(currency)
    symbol = _CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"-{symbol}{abs(amount):,.2f}" if amount < 0 else f"{symbol}{amount:,.2f}"
    return f"{amount:,.2f} {code}"


def format_price_display(value, currency: str = "USD") -> str:
    numeric = to_finite_number(value)
    if numeric is not None:
        return format_currency(numeric, currency)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return "-"


def _fmt_days(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def format_lead_time_display(min_days, max_days) -> str:
    lo = to_finite_number(min_days)
    hi = to_finite_number(max_days)
    if lo is not None and hi is not None:
        if lo == hi:
            return f"{_fmt_days(lo)} day{'' if lo == 1 else 's'}"
        return f"{_fmt_days(lo)}-{_fmt_days(hi)} days"
    if lo is not None:
        return f"{_fmt_days(lo)}+ days"
    if hi is not None:
        return f"Up to {_fmt_days(hi)} days"
    return "-"


# ── Tie-break ────────────────────────────────────────────────────────────────

def offer_rank_key(primary, secondary, name: str, ident: tuple) -> tuple:
    """Sort key shared by every badge; the smallest key wins.

    primary/secondary are already oriented so that smaller is better
    (callers negate "higher is better" metrics).
    """
    name = name or ""
    return (primary, secondary, name.casefold(), name, tuple(i or "" for i in ident))


def _pick(offers: list, key_fn):
    best_key, best_id = None, None
    for offer in offers:
        key = key_fn(offer)
        if key is None:
            continue
        if best_key is None or key < best_key:
            best_key, best_id = key, offer.get("id")
    return best_id


def _ident(offer: dict) -> tuple:
    return (offer.get("provider_id") or "", offer.get("id") or "")


def pick_best_value_id(offers: list):
    def key(o):
        score = o.get("rankScore")
        if score is None or not math.isfinite(score):
            return None
        return offer_rank_key(-score, 0, o["providerName"], _ident(o))
    return _pick(offers, key)


def pick_fastest_id(offers: list):
    def key(o):
        avg = o.get("leadTimeDaysAverage")
        if avg is None or not math.isfinite(avg):
            return None
        return offer_rank_key(avg, 0, o["providerName"], _ident(o))
    return _pick(offers, key)


def pick_lowest_risk_id(offers: list):
    def key(o):
        confidence = o.get("confidenceValue")
        confidence = confidence if confidence is not None else -1
        return offer_rank_key(o["riskFlagCount"], -confidence, o["providerName"], _ident(o))
    return _pick(offers, key)


# ── Public API ───────────────────────────────────────────────────────────────

def decorate_offers_for_compare(offers: list) -> list:
    """Rank the offers of one RFQ and attach badges + display fields.

    Input offers are row dicts (withdrawn offers should already be filtered out).
    Returns new dicts; the inputs are not mutated.
    """
    normalized = []
    for offer in offers or []:
        normalized.append({
            **offer,
            "badges": [],
            "rankScore": 0.0,
            "priceDisplay": format_price_display(offer.get("total_price"),
                                                 offer.get("currency") or "USD"),
            "leadTimeDisplay": format_lead_time_display(offer.get("lead_time_days_min"),
                                                        offer.get("lead_time_days_max")),
            "totalPriceValue": to_finite_number(offer.get("total_price")),
            "leadTimeDaysAverage": resolve_lead_time_average(offer.get("lead_time_days_min"),
                                                             offer.get("lead_time_days_max")),
            "confidenceValue": normalize_confidence(offer.get("confidence_score")),
            "riskFlagCount": count_risk_flags(offer.get("quality_risk_flags")),
            "providerName": resolve_provider_name(offer),
        })

    min_price = min_numeric(o["totalPriceValue"] for o in normalized)
    min_lead = min_numeric(o["leadTimeDaysAverage"] for o in normalized)

    for o in normalized:
        price_score = score_relative(min_price, o["totalPriceValue"])
        lead_score = score_relative(min_lead, o["leadTimeDaysAverage"])
        confidence_score = o["confidenceValue"] / 100 if o["confidenceValue"] is not None else 0.0
        risk_penalty = o["riskFlagCount"] * SCORE_WEIGHTS["risk_penalty"]
        o["rankScore"] = (price_score * SCORE_WEIGHTS["price"]
                          + lead_score * SCORE_WEIGHTS["lead_time"]
                          + confidence_score * SCORE_WEIGHTS["confidence"]
                          - risk_penalty)

    winners = {
        BADGE_BEST_VALUE: pick_best_value_id(normalized),
        BADGE_FASTEST: pick_fastest_id(normalized),
        BADGE_LOWEST_RISK: pick_lowest_risk_id(normalized),
    }
    for o in normalized:
        o["badges"] = [badge for badge, winner_id in winners.items()
                       if winner_id is not None and o.get("id") == winner_id]

    log.debug("Ranked %d offers: %s", len(normalized),
              {badge: winner for badge, winner in winners.items() if winner})
    return normalized


def score_offer_completeness(offer: dict) -> dict:
    """Data-quality score for one offer, independent of its competitors."""
    has_total = to_finite_number(offer.get("total_price")) is not None
    has_unit = to_finite_number(offer.get("unit_price")) is not None
    has_lead = (to_finite_number(offer.get("lead_time_days_min")) is not None
                or to_finite_number(offer.get("lead_time_days_max")) is not None)

    missing = []
    if not has_total:
        missing.append("Missing total price")
    if not has_unit:
        missing.append("Missing unit price")
    if not has_lead:
        missing.append("Missing lead time")

    raw = ((COMPLETENESS_WEIGHTS["total_price"] if has_total else 0)
           + (COMPLETENESS_WEIGHTS["unit_price"] if has_unit else 0)
           + (COMPLETENESS_WEIGHTS["lead_time"] if has_lead else 0))
    return {
        "score": max(0, min(100, raw)),
        "missing": missing,
        "isActionable": has_total or has_unit,
    }
