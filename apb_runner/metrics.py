"""Prometheus metrics for APB actions."""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, generate_latest


class PrometheusMetrics:
    """Action metrics recorded on a Prometheus registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.actions_started = Counter(
            "apb_action_started_total",
            "Total number of APB actions started",
            ["action"],
            registry=self.registry,
        )
        self.sandbox_cleanup_failures = Counter(
            "apb_sandbox_cleanup_failures_total",
            "Total number of APB sandboxes that could not be destroyed",
            ["action"],
            registry=self.registry,
        )

    def action_started(self, action: str) -> None:
        self.actions_started.labels(action=action).inc()

    def sandbox_cleanup_failed(self, action: str) -> None:
        self.sandbox_cleanup_failures.labels(action=action).inc()

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)
