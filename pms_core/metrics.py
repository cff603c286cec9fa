"""
Prometheus metrics for reservation lifecycle operations, ledger postings and
post-commit side effects.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from pms_core.metrics import operation_duration, operations_total
    >>> with operation_duration.labels(operation="check_in").time():
    ...     ...
    >>> operations_total.labels(operation="check_in", outcome="committed").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Operation Metrics
# =============================================================================

operations_total = Counter(
    "pms_operations_total",
    "Total number of reservation/folio operations by outcome",
    ["operation", "outcome"],
)
"""
Counter for units of work.

Labels:
    operation: Operation name (check_in, cancel, amend_stay, ...)
    outcome: committed, rejected (typed domain error) or failed (unexpected error)
"""

operation_duration = Histogram(
    "pms_operation_duration_seconds",
    "Duration of a unit of work from begin to commit or rollback",
    ["operation"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)
"""
Histogram for unit-of-work duration.

Buckets: 10ms, 25ms, 50ms, 100ms, 250ms, 500ms, 1s, 2.5s, 5s, +Inf
"""

# =============================================================================
# Ledger Metrics
# =============================================================================

folio_transactions_posted = Counter(
    "pms_folio_transactions_posted_total",
    "Total number of folio transactions posted",
    ["transaction_type"],
)

folio_transactions_voided = Counter(
    "pms_folio_transactions_voided_total",
    "Total number of folio transactions voided",
)

room_charges_deleted = Counter(
    "pms_room_charges_deleted_total",
    "Room-charge transactions retracted by stay amendments",
)

# =============================================================================
# Side Effect Metrics
# =============================================================================

side_effects_total = Counter(
    "pms_side_effects_total",
    "Post-commit side effects executed",
    ["effect", "outcome"],
)
"""
Counter for post-commit effects.

Labels:
    effect: notification, guest_summary or folio_creation
    outcome: success or failure
"""
