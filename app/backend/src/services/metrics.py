"""Prometheus metric definitions for the invoice pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

compliance_render_total = Counter(
    "compliance_render_total",
    "Compliance document renders by outcome.",
    labelnames=["outcome"],
)

invoice_delivery_total = Counter(
    "invoice_delivery_total",
    "Invoice deliveries by channel and outcome.",
    labelnames=["channel", "outcome"],
)

invoice_operations_total = Counter(
    "invoice_operations_total",
    "Invoice lifecycle operations by kind.",
    labelnames=["operation"],
)

render_task_duration_seconds = Histogram(
    "render_task_duration_seconds",
    "Duration of background document render tasks.",
    labelnames=["outcome"],
)

__all__ = [
    "compliance_render_total",
    "invoice_delivery_total",
    "invoice_operations_total",
    "render_task_duration_seconds",
]
