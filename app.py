#!/usr/bin/env python3
"""
RFQ Marketplace Engine: Application Entry Point
Creates the Flask app and registers the quote + RFQ blueprints.

    gunicorn "app:create_app()"
"""

import os
import time
import logging

from flask import Flask, request, jsonify

import rfq_market
from rfq_market.core import config
from rfq_market.core.logging_config import setup_logging
from rfq_market.quotes.award import AwardCoordinator

log = logging.getLogger("rfq_market")


def create_app(capabilities=None, coordinator=None, configure_logging=True):
    """Application factory."""
    if configure_logging:
        setup_logging()

    app = Flask(__name__)
    app.secret_key = config.SECRET_KEY

    caps = capabilities or config.load_capabilities()
    app.config["CAPABILITIES"] = caps
    app.extensions["award_coordinator"] = coordinator or AwardCoordinator(capabilities=caps)
    log.info("Capabilities: provider_columns=%s award_notes=%s quote_events=%s",
             caps.award_provider_columns, caps.award_notes, caps.quote_events)

    # ── Persistent database init ──────────────────────────────────────────────
    try:
        from rfq_market.core.db import startup as db_startup
        result = db_startup()
        log.info("DB: %s | quotes=%d bids=%d offers=%d",
                 result["db_path"],
                 result["stats"].get("quotes", 0),
                 result["stats"].get("supplier_bids", 0),
                 result["stats"].get("rfq_offers", 0))
    except Exception as e:
        log.error("DB init failed: %s", e)
        raise

    from rfq_market.api.routes_quotes import bp as quotes_bp
    from rfq_market.api.routes_rfq import bp as rfq_bp
    app.register_blueprint(quotes_bp)
    app.register_blueprint(rfq_bp)

    # ── Request-level structured logging ──────────────────────────────────────
    @app.before_request
    def _log_request_start():
        request._start_time = time.time()

    @app.after_request
    def _log_request_end(response):
        if hasattr(request, "_start_time"):
            duration_ms = round((time.time() - request._start_time) * 1000, 1)
            if request.path != "/api/health":
                log.info("%s %s → %d (%.0fms)",
                         request.method, request.path, response.status_code, duration_ms,
                         extra={"route": request.path, "method": request.method,
                                "status": response.status_code, "duration_ms": duration_ms})
        return response

    @app.route("/api/health")
    def health():
        return jsonify({"ok": True, "version": rfq_market.__version__})

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, debug=False)
