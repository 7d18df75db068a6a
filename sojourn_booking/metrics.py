"""
Prometheus metrics for the reservation lifecycle, gateway calls and the expiry sweep.

All metrics are module-level singletons registered on the default registry and
exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from sojourn_booking.metrics import reservation_transitions
    >>> reservation_transitions.labels(from_status="PENDING", to_status="CONFIRMED").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Reservation Metrics
# =============================================================================

reservations_created = Counter(
    "sojourn_reservations_created_total",
    "Total number of reservations created in DRAFT",
)
"""Counter for reservations created."""

reservation_transitions = Counter(
    "sojourn_reservation_transitions_total",
    "Total number of reservation status transitions",
    ["from_status", "to_status"],
)
"""
Counter for reservation state machine transitions.

Labels:
    from_status: Status before the transition (DRAFT, PENDING, CONFIRMED)
    to_status: Status after the transition
"""

availability_conflicts = Counter(
    "sojourn_availability_conflicts_total",
    "Requests rejected because the room is held for overlapping dates",
    ["stage"],
)
"""
Counter for availability conflicts.

Labels:
    stage: Where the conflict was detected (create, initiate, settle)
"""

transaction_timeouts = Counter(
    "sojourn_transaction_timeouts_total",
    "Transactions rolled back after exhausting the lock wait or statement timeout",
)
"""Counter for lock and statement timeouts."""

# =============================================================================
# Payment Metrics
# =============================================================================

payment_verifications = Counter(
    "sojourn_payment_verifications_total",
    "Payment verification attempts by source and result",
    ["source", "result"],
)
"""
Counter for payment verifications.

Labels:
    source: callback or webhook
    result: success, failed, duplicate
"""

webhook_events = Counter(
    "sojourn_webhook_events_total",
    "Gateway webhook deliveries by event type and outcome",
    ["event", "outcome"],
)
"""
Counter for webhook deliveries.

Labels:
    event: Gateway event name (payment.captured, payment.failed, ...)
    outcome: Handler outcome (confirmed, failed, refunded, ignored, duplicate, rejected)
"""

refunds = Counter(
    "sojourn_refunds_total",
    "Refund attempts by result",
    ["result"],
)
"""
Counter for refunds.

Labels:
    result: success or failure
"""

# =============================================================================
# Gateway API Metrics
# =============================================================================

gateway_requests = Counter(
    "sojourn_gateway_requests_total",
    "Total payment gateway API requests made",
    ["endpoint", "status_code"],
)
"""
Counter for API requests to the payment gateway.

Labels:
    endpoint: API endpoint (orders, payments/refund)
    status_code: HTTP status code, or "error" when no response was received
"""

gateway_latency = Histogram(
    "sojourn_gateway_latency_seconds",
    "Payment gateway request latency in seconds",
    ["endpoint"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
"""
Histogram for gateway request latency.

Buckets: 0.1s, 0.25s, 0.5s, 1s, 2.5s, 5s, 10s, +Inf
"""

# =============================================================================
# Expiry Sweep Metrics
# =============================================================================

sweep_runs = Counter(
    "sojourn_sweep_runs_total",
    "Abandoned reservation sweeps by status",
    ["status"],
)
"""
Counter for sweep runs.

Labels:
    status: success, failure or dry_run
"""

sweep_removed = Counter(
    "sojourn_sweep_removed_total",
    "Reservations removed by the abandoned reservation sweep",
    ["kind"],
)
"""
Counter for reservations removed.

Labels:
    kind: draft or pending
"""

sweep_duration = Histogram(
    "sojourn_sweep_duration_seconds",
    "Duration of abandoned reservation sweeps in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)
"""Histogram for sweep duration."""
