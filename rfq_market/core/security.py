"""
Security: HTTP Basic gate + actor resolution
=============================================
Session management lives in the upstream portal. By the time a request
reaches this service the gateway has authenticated the user and forwards:

    X-Actor-Role      admin | customer | supplier
    X-Actor-User-Id   the portal user id
    X-Actor-Email     optional, used for customer ownership checks
    X-Customer-Id     optional, used for customer ownership checks

The service itself is protected with HTTP Basic credentials shared with the
gateway (API_USER / API_PASS).
"""

import functools
import hmac
import logging

from flask import request, Response

from rfq_market.core import config

log = logging.getLogger("rfq_market.security")

ACTOR_ROLES = ("admin", "customer", "supplier")


class UnauthorizedError(Exception):
    """Caller is not allowed to perform the operation."""


def check_auth(username, password) -> bool:
    return (hmac.compare_digest((username or "").encode(), config.API_USER.encode())
            and hmac.compare_digest((password or "").encode(), config.API_PASS.encode()))


def auth_required(f):
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        auth = request.authorization
        if not auth or not check_auth(auth.username, auth.password):
            log.warning("Basic auth rejected for %s %s", request.method, request.path,
                        extra={"route": request.path, "method": request.method})
            return Response(
                '{"ok": false, "error": "unauthorized"}', 401,
                {"WWW-Authenticate": 'Basic realm="RFQ Engine"',
                 "Content-Type": "application/json"})
        return f(*args, **kwargs)
    return decorated


def resolve_actor(headers=None) -> dict | None:
    """Actor forwarded by the gateway, or None when absent/invalid."""
    headers = headers if headers is not None else request.headers
    role = (headers.get("X-Actor-Role") or "").strip().lower()
    user_id = (headers.get("X-Actor-User-Id") or "").strip()
    if role not in ACTOR_ROLES or not user_id:
        return None
    return {
        "role": role,
        "user_id": user_id,
        "email": (headers.get("X-Actor-Email") or "").strip().lower() or None,
        "customer_id": (headers.get("X-Customer-Id") or "").strip() or None,
        "supplier_id": (headers.get("X-Supplier-Id") or "").strip() or None,
    }


def require_admin(actor) -> dict:
    """Return the actor if it is an admin, else raise UnauthorizedError."""
    if not actor or actor.get("role") != "admin" or not actor.get("user_id"):
        raise UnauthorizedError("admin role required")
    return actor
