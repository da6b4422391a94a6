"""
Prometheus metrics for front-desk derivations and mutations.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from frontdesk.metrics import derivation_duration, room_charges_total
    >>> with derivation_duration.labels(view="folio").time():
    ...     folio = build_folio(stay, orders)
    >>> room_charges_total.labels(outcome="created").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Mutation Metrics
# =============================================================================

room_charges_total = Counter(
    "frontdesk_room_charges_total",
    "Nightly room charges handled by the poster",
    ["outcome"],
)
"""
Counter for nightly room charges.

Labels:
    outcome: created, skipped, held, reclaimed or failed
"""

transitions_total = Counter(
    "frontdesk_transitions_total",
    "Stay transitions attempted",
    ["transition", "status"],
)
"""
Counter for stay transitions.

Labels:
    transition: check_in, check_out, cancel, book, settle
    status: allowed, blocked or failed
"""

# =============================================================================
# Derivation Metrics
# =============================================================================

derivation_duration = Histogram(
    "frontdesk_derivation_duration_seconds",
    "Time spent deriving read views from a snapshot",
    ["view"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, float("inf")),
)
"""
Histogram for view derivation.

Labels:
    view: stays or folio
"""
