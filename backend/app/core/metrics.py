"""Prometheus counters and histograms for booking lifecycle and completion sweeps."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Custom registry to avoid conflicts with default process metrics
REGISTRY = CollectorRegistry()


# Sweep executions by outcome (ok, aborted, skipped_overlap).
LESSON_COMPLETION_SWEEPS_TOTAL = Counter(
    "tutorly_lesson_completion_sweeps_total",
    "Automatic lesson completion sweeps",
    ["outcome"],
    registry=REGISTRY,
)


# Per-candidate results (completed, skipped_guard, failed).
LESSON_COMPLETION_BOOKINGS_TOTAL = Counter(
    "tutorly_lesson_completion_bookings_total",
    "Bookings processed by the completion sweep",
    ["result"],
    registry=REGISTRY,
)


LESSON_COMPLETION_NOTIFICATION_FAILURES_TOTAL = Counter(
    "tutorly_lesson_completion_notification_failures_total",
    "Tutor notifications that could not be recorded after auto-completion",
    registry=REGISTRY,
)


# Cross-process sweep mutex operations (acquire|release x success|blocked|error|redis_unavailable).
SWEEP_LOCK_OPERATIONS_TOTAL = Counter(
    "tutorly_sweep_lock_operations_total",
    "Redis sweep lock operations",
    ["operation", "outcome"],
    registry=REGISTRY,
)


LESSON_COMPLETION_SWEEP_DURATION_SECONDS = Histogram(
    "tutorly_lesson_completion_sweep_duration_seconds",
    "Duration of one completion sweep",
    registry=REGISTRY,
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)


service_operation_duration_seconds = Histogram(
    "tutorly_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation", "status"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)


def render_latest() -> bytes:
    """Serialize the registry in Prometheus text format."""
    return generate_latest(REGISTRY)


__all__ = [
    "REGISTRY",
    "LESSON_COMPLETION_SWEEPS_TOTAL",
    "LESSON_COMPLETION_BOOKINGS_TOTAL",
    "LESSON_COMPLETION_NOTIFICATION_FAILURES_TOTAL",
    "LESSON_COMPLETION_SWEEP_DURATION_SECONDS",
    "SWEEP_LOCK_OPERATIONS_TOTAL",
    "service_operation_duration_seconds",
    "render_latest",
]
