"""
RFQ Marketplace: Offer Ranking & Quote Lifecycle Engine

Packages:
    core/       Configuration, logging, status taxonomy, SQLite persistence, auth
    rfqs/       Offer rows, offer scoring, destinations, search-state aggregation
    quotes/     Award coordinator, primary action, reply obligations, timeline
    api/        Flask blueprint exposing the engine as JSON endpoints
"""

__version__ = "1.4.0"
