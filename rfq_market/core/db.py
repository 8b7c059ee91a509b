"""
rfq_market/core/db.py: SQLite Persistence Layer

The persistence collaborator for the engine. It only offers what the engine
needs: fetch-by-id, fetch-by-parent-id, update-by-id and upsert-with-conflict-key.
No vendor-specific query language leaks out of this module.

TABLES:
  providers           supplier/provider directory (display names for offers)
  quotes              RFQs with lifecycle status + award fields
  supplier_bids       bids placed against a quote
  rfq_offers          priced/timed offers (supplier or brokered), one per provider+rfq
  rfq_destinations    outreach targets for an RFQ and their send/respond status
  quote_messages      shared customer/supplier/admin message thread per quote
  quote_events        timeline of lifecycle events

Transactions:
  get_db() commits on success and rolls back on any exception.
  get_db(immediate=True) takes the SQLite write lock up front (BEGIN IMMEDIATE)
  so a read-then-write sequence cannot interleave with another writer.
"""

import os
import json
import uuid
import sqlite3
import logging
import threading
from datetime import datetime, timezone
from contextlib import contextmanager

from rfq_market.core.config import resolve_db_path

log = logging.getLogger("rfq_market.db")

DB_PATH = resolve_db_path()

_db_lock = threading.Lock()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


# ── Connection factory ────────────────────────────────────────────────────────
@contextmanager
def get_db(immediate: bool = False):
    """Thread-safe SQLite connection with WAL mode for multi-worker gunicorn."""
    with _db_lock:
        parent = os.path.dirname(DB_PATH)
        if parent:
            os.makedirs(parent, exist_ok=True)
        conn = sqlite3.connect(DB_PATH, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


# ── Schema ────────────────────────────────────────────────────────────────────
SCHEMA = """
CREATE TABLE IF NOT EXISTS providers (
    id              TEXT PRIMARY KEY,
    name            TEXT,
    provider_type   TEXT,
    quoting_mode    TEXT,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS quotes (
    id                  TEXT PRIMARY KEY,
    created_at          TEXT NOT NULL,
    status              TEXT DEFAULT 'submitted',
    customer_id         TEXT,
    customer_email      TEXT,
    title               TEXT,
    awarded_bid_id      TEXT,
    awarded_supplier_id TEXT,
    awarded_at          TEXT,
    awarded_by_user_id  TEXT,
    awarded_by_role     TEXT CHECK (awarded_by_role IS NULL
                                    OR awarded_by_role IN ('admin', 'customer', 'system')),
    awarded_provider_id TEXT,
    awarded_offer_id    TEXT,
    award_notes         TEXT,
    updated_at          TEXT
);

CREATE TABLE IF NOT EXISTS supplier_bids (
    id              TEXT PRIMARY KEY,
    quote_id        TEXT NOT NULL REFERENCES quotes(id),
    supplier_id     TEXT,
    status          TEXT DEFAULT 'submitted',
    amount          REAL,
    currency        TEXT DEFAULT 'USD',
    lead_time_days  INTEGER,
    created_at      TEXT NOT NULL,
    updated_at      TEXT
);

CREATE INDEX IF NOT EXISTS idx_bids_quote ON supplier_bids(quote_id);
CREATE INDEX IF NOT EXISTS idx_bids_status ON supplier_bids(quote_id, status);

CREATE TABLE IF NOT EXISTS rfq_offers (
    id                  TEXT PRIMARY KEY,
    rfq_id              TEXT NOT NULL REFERENCES quotes(id),
    provider_id         TEXT,           -- NULL for brokered/external offers
    destination_id      TEXT,
    currency            TEXT DEFAULT 'USD',
    total_price         TEXT,           -- numeric-or-string
    unit_price          TEXT,
    tooling_price       TEXT,
    shipping_price      TEXT,
    lead_time_days_min  REAL,
    lead_time_days_max  REAL,
    assumptions         TEXT,
    notes               TEXT,
    confidence_score    REAL,
    quality_risk_flags  TEXT,           -- JSON array of strings
    status              TEXT DEFAULT 'received',
    source_type         TEXT,
    source_name         TEXT,
    received_at         TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT,
    UNIQUE (rfq_id, provider_id)
);

CREATE INDEX IF NOT EXISTS idx_offers_rfq ON rfq_offers(rfq_id);

CREATE TABLE IF NOT EXISTS rfq_destinations (
    id              TEXT PRIMARY KEY,
    rfq_id          TEXT NOT NULL REFERENCES quotes(id),
    provider_id     TEXT,
    status          TEXT DEFAULT 'draft',
    created_at      TEXT NOT NULL,
    sent_at         TEXT,
    last_status_at  TEXT,
    error_message   TEXT
);

CREATE INDEX IF NOT EXISTS idx_destinations_rfq ON rfq_destinations(rfq_id);

CREATE TABLE IF NOT EXISTS quote_messages (
    id              TEXT PRIMARY KEY,
    quote_id        TEXT NOT NULL REFERENCES quotes(id),
    sender_role     TEXT NOT NULL,      -- customer|supplier|admin
    sender_id       TEXT,
    body            TEXT,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_quote ON quote_messages(quote_id, created_at);

CREATE TABLE IF NOT EXISTS quote_events (
    id              TEXT PRIMARY KEY,
    quote_id        TEXT NOT NULL,
    event_type      TEXT NOT NULL,
    actor_role      TEXT DEFAULT 'system',  -- admin|customer|supplier|system
    actor_user_id   TEXT,
    metadata        TEXT,                   -- JSON object
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_quote ON quote_events(quote_id, created_at);
"""


def init_db():
    """Create all tables if they don't exist. Safe to call multiple times."""
    with get_db() as conn:
        conn.executescript(SCHEMA)
    log.info("DB initialized at %s", DB_PATH)
    return True


# ── Row helpers ──────────────────────────────────────────────────────────────

def _row_to_dict(row) -> dict:
    return dict(row) if row is not None else None


def _jl(val, default=None):
    """JSON-load a TEXT column, tolerating NULL and garbage."""
    if val is None or val == "":
        return default
    try:
        return json.loads(val)
    except (TypeError, ValueError):
        return default


def _jd(val) -> str:
    return json.dumps(val, default=str)


def _set_clause(fields: dict) -> tuple:
    cols = list(fields.keys())
    return ", ".join(f"{c}=?" for c in cols), [fields[c] for c in cols]


# ── Providers ────────────────────────────────────────────────────────────────

def upsert_provider(p: dict) -> str:
    pid = p.get("id") or new_id()
    with get_db() as conn:
        conn.execute("""
            INSERT INTO providers (id, name, provider_type, quoting_mode, created_at)
            VALUES (?,?,?,?,?)
            ON CONFLICT(id) DO UPDATE SET
              name=excluded.name, provider_type=excluded.provider_type,
              quoting_mode=excluded.quoting_mode
        """, (pid, p.get("name"), p.get("provider_type"), p.get("quoting_mode"),
              p.get("created_at") or utc_now_iso()))
    return pid


# ── Quotes ───────────────────────────────────────────────────────────────────

def insert_quote(q: dict) -> str:
    qid = q.get("id") or new_id()
    row = {
        "id": qid,
        "created_at": q.get("created_at") or utc_now_iso(),
        "status": q.get("status", "submitted"),
        "customer_id": q.get("customer_id"),
        "customer_email": q.get("customer_email"),
        "title": q.get("title"),
    }
    for col in ("awarded_bid_id", "awarded_supplier_id", "awarded_at",
                "awarded_by_user_id", "awarded_by_role", "awarded_provider_id",
                "awarded_offer_id", "award_notes"):
        if col in q:
            row[col] = q[col]
    cols = list(row.keys())
    with get_db() as conn:
        conn.execute(
            f"INSERT INTO quotes ({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))})",
            [row[c] for c in cols])
    return qid


def fetch_quote(conn, quote_id: str, columns=None):
    cols = ", ".join(columns) if columns else "*"
    row = conn.execute(f"SELECT {cols} FROM quotes WHERE id=?", (quote_id,)).fetchone()
    return _row_to_dict(row)


def get_quote(quote_id: str):
    with get_db() as conn:
        return fetch_quote(conn, quote_id)


def update_quote(conn, quote_id: str, fields: dict, require_any_not_null=None) -> int:
    """Update one quote row. Returns the affected row count.

    require_any_not_null turns the write into a conditional update: it only
    applies while at least one of those columns is still non-empty.
    """
    clause, params = _set_clause(fields)
    sql = f"UPDATE quotes SET {clause} WHERE id=?"
    params.append(quote_id)
    if require_any_not_null:
        guards = " OR ".join(f"COALESCE(TRIM({c}), '') <> ''" for c in require_any_not_null)
        sql += f" AND ({guards})"
    return conn.execute(sql, params).rowcount


# ── Bids ─────────────────────────────────────────────────────────────────────

def insert_bid(b: dict) -> str:
    bid = b.get("id") or new_id()
    with get_db() as conn:
        conn.execute("""
            INSERT INTO supplier_bids
              (id, quote_id, supplier_id, status, amount, currency, lead_time_days, created_at)
            VALUES (?,?,?,?,?,?,?,?)
        """, (bid, b["quote_id"], b.get("supplier_id"), b.get("status", "submitted"),
              b.get("amount"), b.get("currency", "USD"), b.get("lead_time_days"),
              b.get("created_at") or utc_now_iso()))
    return bid


def fetch_bid(conn, bid_id: str):
    row = conn.execute(
        "SELECT id, quote_id, supplier_id, status FROM supplier_bids WHERE id=?",
        (bid_id,)).fetchone()
    return _row_to_dict(row)


def fetch_bids_for_quote(conn, quote_id: str) -> list:
    rows = conn.execute(
        "SELECT id, quote_id, supplier_id, status FROM supplier_bids "
        "WHERE quote_id=? ORDER BY created_at",
        (quote_id,)).fetchall()
    return [dict(r) for r in rows]


def get_bids_for_quote(quote_id: str) -> list:
    with get_db() as conn:
        return fetch_bids_for_quote(conn, quote_id)


def quote_has_bids(conn, quote_id: str) -> bool:
    row = conn.execute("SELECT id FROM supplier_bids WHERE quote_id=? LIMIT 1",
                       (quote_id,)).fetchone()
    return row is not None


def update_bid_status(conn, bid_id: str, status: str) -> int:
    return conn.execute(
        "UPDATE supplier_bids SET status=?, updated_at=? WHERE id=?",
        (status, utc_now_iso(), bid_id)).rowcount


def update_bid_statuses_for_quote(conn, quote_id: str, status: str,
                                  only_statuses=None, skip_statuses=None,
                                  exclude_bid_id: str = None) -> int:
    """Bulk status write for one quote's bids, filtered by current status."""
    sql = "UPDATE supplier_bids SET status=?, updated_at=? WHERE quote_id=?"
    params = [status, utc_now_iso(), quote_id]
    if only_statuses:
        only = sorted(str(s.value if hasattr(s, "value") else s) for s in only_statuses)
        sql += f" AND LOWER(TRIM(COALESCE(status, ''))) IN ({', '.join('?' * len(only))})"
        params += only
    if skip_statuses:
        skip = sorted(str(s.value if hasattr(s, "value") else s) for s in skip_statuses)
        sql += f" AND LOWER(TRIM(COALESCE(status, ''))) NOT IN ({', '.join('?' * len(skip))})"
        params += skip
    if exclude_bid_id:
        sql += " AND id <> ?"
        params.append(exclude_bid_id)
    return conn.execute(sql, params).rowcount


# ── Offers ───────────────────────────────────────────────────────────────────

_OFFER_SELECT = """
    SELECT o.*, p.name AS provider_name, p.provider_type AS provider_type,
           p.quoting_mode AS provider_quoting_mode
    FROM rfq_offers o
    LEFT JOIN providers p ON p.id = o.provider_id
"""


def _offer_from_row(row) -> dict:
    d = dict(row)
    d["quality_risk_flags"] = _jl(d.get("quality_risk_flags"), [])
    name = d.pop("provider_name", None)
    ptype = d.pop("provider_type", None)
    mode = d.pop("provider_quoting_mode", None)
    d["provider"] = ({"name": name, "provider_type": ptype, "quoting_mode": mode}
                     if (name or ptype or mode) else None)
    return d


def get_offers_for_rfq(rfq_id: str) -> list:
    with get_db() as conn:
        rows = conn.execute(_OFFER_SELECT + " WHERE o.rfq_id=? ORDER BY o.created_at",
                            (rfq_id,)).fetchall()
    return [_offer_from_row(r) for r in rows]


def fetch_offer_by_provider(conn, rfq_id: str, provider_id: str):
    row = conn.execute("SELECT id, status FROM rfq_offers WHERE rfq_id=? AND provider_id=?",
                       (rfq_id, provider_id)).fetchone()
    return _row_to_dict(row)


def upsert_offer(conn, o: dict) -> str:
    """Insert an offer, replacing the priced fields on (rfq_id, provider_id) conflict."""
    oid = o.get("id") or new_id()
    now = utc_now_iso()
    conn.execute("""
        INSERT INTO rfq_offers
          (id, rfq_id, provider_id, destination_id, currency, total_price, unit_price,
           tooling_price, shipping_price, lead_time_days_min, lead_time_days_max,
           assumptions, notes, confidence_score, quality_risk_flags, status,
           source_type, source_name, received_at, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        ON CONFLICT(rfq_id, provider_id) DO UPDATE SET
          destination_id=COALESCE(excluded.destination_id, rfq_offers.destination_id),
          currency=excluded.currency, total_price=excluded.total_price,
          unit_price=excluded.unit_price, tooling_price=excluded.tooling_price,
          shipping_price=excluded.shipping_price,
          lead_time_days_min=excluded.lead_time_days_min,
          lead_time_days_max=excluded.lead_time_days_max,
          assumptions=excluded.assumptions, notes=excluded.notes,
          confidence_score=excluded.confidence_score,
          quality_risk_flags=excluded.quality_risk_flags,
          status=excluded.status, received_at=excluded.received_at,
          updated_at=excluded.updated_at
    """, (
        oid, o["rfq_id"], o.get("provider_id"), o.get("destination_id"),
        o.get("currency") or "USD",
        _num_text(o.get("total_price")), _num_text(o.get("unit_price")),
        _num_text(o.get("tooling_price")), _num_text(o.get("shipping_price")),
        o.get("lead_time_days_min"), o.get("lead_time_days_max"),
        o.get("assumptions"), o.get("notes"), o.get("confidence_score"),
        _jd(o.get("quality_risk_flags") or []), o.get("status", "received"),
        o.get("source_type"), o.get("source_name"),
        o.get("received_at") or now, o.get("created_at") or now, now,
    ))
    if o.get("provider_id"):
        existing = fetch_offer_by_provider(conn, o["rfq_id"], o["provider_id"])
        return existing["id"] if existing else oid
    return oid


def _num_text(value):
    """Store numeric-or-string prices as TEXT without float noise."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def update_offer_status(offer_id: str, status: str) -> int:
    with get_db() as conn:
        return conn.execute(
            "UPDATE rfq_offers SET status=?, updated_at=? WHERE id=?",
            (status, utc_now_iso(), offer_id)).rowcount


# ── Destinations ─────────────────────────────────────────────────────────────

def insert_destination(d: dict) -> str:
    did = d.get("id") or new_id()
    now = utc_now_iso()
    with get_db() as conn:
        conn.execute("""
            INSERT INTO rfq_destinations
              (id, rfq_id, provider_id, status, created_at, sent_at, last_status_at, error_message)
            VALUES (?,?,?,?,?,?,?,?)
        """, (did, d["rfq_id"], d.get("provider_id"), d.get("status", "draft"),
              d.get("created_at") or now, d.get("sent_at"),
              d.get("last_status_at") or d.get("created_at") or now,
              d.get("error_message")))
    return did


def get_destinations_for_rfq(rfq_id: str) -> list:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM rfq_destinations WHERE rfq_id=? ORDER BY created_at",
            (rfq_id,)).fetchall()
    return [dict(r) for r in rows]


def update_destination_status(conn, destination_id: str, status: str) -> int:
    return conn.execute(
        "UPDATE rfq_destinations SET status=?, last_status_at=? WHERE id=?",
        (status, utc_now_iso(), destination_id)).rowcount


# ── Messages ─────────────────────────────────────────────────────────────────

def insert_message(m: dict) -> str:
    mid = m.get("id") or new_id()
    with get_db() as conn:
        conn.execute("""
            INSERT INTO quote_messages (id, quote_id, sender_role, sender_id, body, created_at)
            VALUES (?,?,?,?,?,?)
        """, (mid, m["quote_id"], m["sender_role"], m.get("sender_id"), m.get("body"),
              m.get("created_at") or utc_now_iso()))
    return mid


def get_messages_for_quote(quote_id: str) -> list:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT id, quote_id, sender_role, sender_id, body, created_at "
            "FROM quote_messages WHERE quote_id=? ORDER BY created_at",
            (quote_id,)).fetchall()
    return [dict(r) for r in rows]


# ── Events ───────────────────────────────────────────────────────────────────

def insert_event(e: dict) -> str:
    eid = e.get("id") or new_id()
    with get_db() as conn:
        conn.execute("""
            INSERT INTO quote_events (id, quote_id, event_type, actor_role, actor_user_id,
                                      metadata, created_at)
            VALUES (?,?,?,?,?,?,?)
        """, (eid, e["quote_id"], e["event_type"], e.get("actor_role") or "system",
              e.get("actor_user_id"), _jd(e.get("metadata") or {}),
              e.get("created_at") or utc_now_iso()))
    return eid


def list_events(quote_id: str, limit: int = 75) -> list:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM quote_events WHERE quote_id=? "
            "ORDER BY created_at DESC LIMIT ?",
            (quote_id, limit)).fetchall()
    out = []
    for r in rows:
        d = dict(r)
        d["metadata"] = _jl(d.get("metadata"), {})
        out.append(d)
    return out


def get_db_stats() -> dict:
    stats = {}
    with get_db() as conn:
        for table in ("quotes", "supplier_bids", "rfq_offers", "rfq_destinations",
                      "quote_messages", "quote_events"):
            stats[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    return stats


def startup() -> dict:
    """Init schema and report counts. Called from create_app()."""
    init_db()
    return {"db_path": DB_PATH, "stats": get_db_stats()}
