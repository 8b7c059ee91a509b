"""
rfq_market/core/config.py: Centralized Configuration

Single source of truth for environment-driven settings. Every module imports
from here instead of reading os.environ on its own.

Capabilities are resolved ONCE per deployment (env flags, defaulting to the
full schema created by core/db.py) and passed into the engine. Nothing in the
engine inspects the live schema to decide which columns exist.
"""

import os
import logging
from dataclasses import dataclass

log = logging.getLogger("rfq_market.config")

# ── Project Root ──────────────────────────────────────────────────────────────
_THIS_FILE = os.path.abspath(__file__)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(_THIS_FILE)))
_DEFAULT_DATA_DIR = os.path.join(PROJECT_ROOT, "data")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return default
    return raw.strip().lower() not in ("false", "0", "off", "no")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    try:
        return float(raw) if raw.strip() else default
    except ValueError:
        log.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


# ── Resolve DATA_DIR ─────────────────────────────────────────────────────────
# Priority: RFQ_DATA_DIR env → Railway volume mount → project data/
def resolve_data_dir() -> str:
    """Find the best persistent data directory."""
    env_dir = os.environ.get("RFQ_DATA_DIR", "")
    if env_dir:
        return env_dir

    vol_mount = os.environ.get("RAILWAY_VOLUME_MOUNT_PATH", "")
    if vol_mount and os.path.isdir(vol_mount):
        return os.path.join(vol_mount, "data") if not vol_mount.endswith("/data") else vol_mount

    return _DEFAULT_DATA_DIR


def resolve_db_path() -> str:
    return os.environ.get("RFQ_DB_PATH") or os.path.join(resolve_data_dir(), "rfq_market.db")


# ── HTTP / auth ──────────────────────────────────────────────────────────────
API_USER = os.environ.get("API_USER", "rfq")
API_PASS = os.environ.get("API_PASS", "changeme")
SECRET_KEY = os.environ.get("SECRET_KEY", "rfq-market-dev")

# ── Customer-facing copy ─────────────────────────────────────────────────────
SUPPORT_EMAIL = os.environ.get("SUPPORT_EMAIL", "support@rfq-market.app")

# ── Messaging SLA ────────────────────────────────────────────────────────────
MESSAGE_SLA_HOURS = _env_float("MESSAGE_SLA_HOURS", 24.0)

# ── Timeline events ──────────────────────────────────────────────────────────
EVENT_WEBHOOK_URL = os.environ.get("EVENT_WEBHOOK_URL", "")
EVENTS_ASYNC = _env_flag("EVENTS_ASYNC", True)

# ── Portal cache invalidation ────────────────────────────────────────────────
# Optional portal endpoint that re-renders cached quote pages.
REVALIDATE_URL = os.environ.get("REVALIDATE_URL", "")


@dataclass(frozen=True)
class Capabilities:
    """Which optional schema features this deployment has.

    award_provider_columns: quotes.awarded_provider_id / awarded_offer_id
    award_notes:            quotes.award_notes
    quote_events:           quote_events table (timeline)
    """
    award_provider_columns: bool = True
    award_notes: bool = True
    quote_events: bool = True

    def award_columns(self) -> list:
        """Quote columns that together make up the award record."""
        cols = ["awarded_bid_id", "awarded_supplier_id", "awarded_at",
                "awarded_by_user_id", "awarded_by_role"]
        if self.award_provider_columns:
            cols += ["awarded_provider_id", "awarded_offer_id"]
        return cols

    def award_marker_columns(self) -> list:
        """Columns whose presence means "this quote has an award"."""
        cols = ["awarded_bid_id", "awarded_supplier_id", "awarded_at"]
        if self.award_provider_columns:
            cols += ["awarded_provider_id", "awarded_offer_id"]
        return cols


def load_capabilities() -> Capabilities:
    """Build the deployment's Capabilities from env flags. Call once at startup."""
    caps = Capabilities(
        award_provider_columns=_env_flag("RFQ_CAP_AWARD_PROVIDER_COLUMNS", True),
        award_notes=_env_flag("RFQ_CAP_AWARD_NOTES", True),
        quote_events=_env_flag("RFQ_CAP_QUOTE_EVENTS", True),
    )
    log.debug("Capabilities: provider_columns=%s award_notes=%s quote_events=%s",
             caps.award_provider_columns, caps.award_notes, caps.quote_events)
    return caps
