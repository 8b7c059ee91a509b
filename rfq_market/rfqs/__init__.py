"""RFQ-side logic.

Modules:
    offers           offer row normalization + canonical offer write path
    scoring          offer ranking, comparison badges, completeness score
    destinations     outreach destinations + destination SLA checks
    search_state     destination/offer aggregation into a progress label
"""
