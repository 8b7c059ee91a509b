"""
Shared pytest fixtures for the RFQ marketplace engine test suite.

Every test gets its own SQLite file (db.DB_PATH is monkeypatched) and
synchronous, webhook-free event emission.
"""
import os
import base64
import pytest

from rfq_market.core import config, db


# ── Temp database (per-test isolation) ────────────────────────────────────────

@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    """Point the persistence layer at an isolated tmp database."""
    data = str(tmp_path / "data")
    os.makedirs(data, exist_ok=True)
    path = os.path.join(data, "rfq_market.db")

    monkeypatch.setattr(db, "DB_PATH", path)
    monkeypatch.setattr(config, "EVENTS_ASYNC", False)
    monkeypatch.setattr(config, "EVENT_WEBHOOK_URL", "")
    monkeypatch.setattr(config, "REVALIDATE_URL", "")
    monkeypatch.setattr(config, "API_USER", "rfq")
    monkeypatch.setattr(config, "API_PASS", "changeme")
    db.init_db()
    return path


@pytest.fixture
def caps():
    return config.Capabilities()


# ── Collaborator doubles ──────────────────────────────────────────────────────

class EventRecorder:
    """Stands in for emit_quote_event and remembers every call."""
    def __init__(self):
        self.events = []

    def __call__(self, quote_id, event_type, actor_role="system", actor_user_id=None,
                 metadata=None, **kwargs):
        self.events.append({"quote_id": quote_id, "event_type": event_type,
                            "actor_role": actor_role, "actor_user_id": actor_user_id,
                            "metadata": metadata or {}})
        return {"ok": True, "async": False}

    def types(self):
        return [e["event_type"] for e in self.events]


@pytest.fixture
def recorded_events():
    return EventRecorder()


@pytest.fixture
def invalidated():
    """List of quote ids passed to the cache-invalidation hook."""
    return []


@pytest.fixture
def coordinator(caps, recorded_events, invalidated):
    from rfq_market.quotes.award import AwardCoordinator
    return AwardCoordinator(capabilities=caps, emit_event=recorded_events,
                            invalidate=invalidated.append)


# ── Actors ────────────────────────────────────────────────────────────────────

@pytest.fixture
def admin_actor():
    return {"role": "admin", "user_id": "admin-1", "email": "ops@rfq-market.app",
            "customer_id": None, "supplier_id": None}


@pytest.fixture
def customer_actor():
    return {"role": "customer", "user_id": "cust-user-1", "email": "buyer@acme.test",
            "customer_id": "cust-1", "supplier_id": None}


def actor_headers(role, user_id, email=None, customer_id=None, supplier_id=None):
    headers = {"X-Actor-Role": role, "X-Actor-User-Id": user_id}
    if email:
        headers["X-Actor-Email"] = email
    if customer_id:
        headers["X-Customer-Id"] = customer_id
    if supplier_id:
        headers["X-Supplier-Id"] = supplier_id
    return headers


@pytest.fixture
def headers_for():
    """actor_headers() as a fixture, for ad-hoc actors."""
    return actor_headers


@pytest.fixture
def admin_headers():
    return actor_headers("admin", "admin-1")


@pytest.fixture
def customer_headers():
    return actor_headers("customer", "cust-user-1", email="buyer@acme.test",
                         customer_id="cust-1")


# ── Seed factories ────────────────────────────────────────────────────────────

@pytest.fixture
def make_quote():
    def _make(**fields):
        fields.setdefault("status", "submitted")
        fields.setdefault("customer_id", "cust-1")
        fields.setdefault("customer_email", "buyer@acme.test")
        fields.setdefault("title", "CNC bracket, 6061-T6, qty 250")
        return db.insert_quote(fields)
    return _make


@pytest.fixture
def make_bid():
    def _make(quote_id, supplier_id="sup-1", status="submitted", **fields):
        return db.insert_bid({"quote_id": quote_id, "supplier_id": supplier_id,
                              "status": status, **fields})
    return _make


@pytest.fixture
def make_provider():
    def _make(name, **fields):
        return db.upsert_provider({"name": name, **fields})
    return _make


@pytest.fixture
def make_destination():
    def _make(rfq_id, provider_id=None, status="sent", **fields):
        return db.insert_destination({"rfq_id": rfq_id, "provider_id": provider_id,
                                      "status": status, **fields})
    return _make


@pytest.fixture
def awarded_quote(make_quote, make_bid):
    """A won quote with one winning and one losing bid. Returns (quote_id, win_id, lose_id)."""
    qid = make_quote(status="quoted")
    win = make_bid(qid, supplier_id="sup-win", status="won")
    lose = make_bid(qid, supplier_id="sup-lose", status="lost")
    with db.get_db() as conn:
        db.update_quote(conn, qid, {
            "status": "won", "awarded_bid_id": win, "awarded_supplier_id": "sup-win",
            "awarded_at": "2026-10-01T12:00:00+00:00", "awarded_by_user_id": "admin-1",
            "awarded_by_role": "admin",
        })
    return qid, win, lose


# ── Flask test client ─────────────────────────────────────────────────────────

def _basic_auth_header(user="rfq", pw="changeme"):
    creds = base64.b64encode(f"{user}:{pw}".encode()).decode()
    return {"Authorization": f"Basic {creds}"}


class AuthenticatedClient:
    """Wraps Flask test client to add Basic Auth headers to every request."""
    def __init__(self, client, headers):
        self._client = client
        self._headers = headers

    def get(self, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return self._client.get(*args, **kwargs)

    def post(self, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return self._client.post(*args, **kwargs)


@pytest.fixture
def app(temp_db, caps, coordinator):
    """Flask app wired to the tmp database and the recording coordinator."""
    from app import create_app
    application = create_app(capabilities=caps, coordinator=coordinator,
                             configure_logging=False)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Authenticated Flask test client (HTTP Basic Auth on every request)."""
    with app.test_client() as c:
        yield AuthenticatedClient(c, _basic_auth_header())


@pytest.fixture
def anon_client(app):
    """Unauthenticated test client."""
    with app.test_client() as c:
        yield c
