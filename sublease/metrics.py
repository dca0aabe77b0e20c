"""Prometheus metric definitions for registrar calls and rental lifecycle."""

from __future__ import annotations

from prometheus_client import Counter

# --- Registrar API ---

registrar_calls_total = Counter(
    "sublease_registrar_calls_total",
    "Registrar API operations by outcome",
    labelnames=["registrar", "operation", "outcome"],
)

# --- Lifecycle ---

lifecycle_events_total = Counter(
    "sublease_lifecycle_events_total",
    "Billing lifecycle events processed",
    labelnames=["event_type", "outcome"],
)

# --- Availability ---

availability_checks_total = Counter(
    "sublease_availability_checks_total",
    "Subdomain availability checks",
    labelnames=["outcome"],
)
