"""
Prometheus metrics for the payment settlement backend.

Service timings come from the @measure_operation decorator; the domain
counters track settlement, webhook and withdrawal outcomes.
"""

from typing import Optional, cast

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "coursepay_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0),
)

service_operations_total = Counter(
    "coursepay_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "coursepay_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

settlements_total = Counter(
    "coursepay_settlements_total",
    "Settlement attempts by confirmation source and outcome",
    ["source", "outcome"],  # webhook | verification ; settled | already_settled | not_found | reconciliation_required
    registry=REGISTRY,
)

webhook_deliveries_total = Counter(
    "coursepay_webhook_deliveries_total",
    "Inbound processor webhooks by result",
    ["result"],
    registry=REGISTRY,
)

withdrawals_total = Counter(
    "coursepay_withdrawals_total",
    "Withdrawal requests by resulting status",
    ["status"],  # success | failed | pending | rejected
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'SettlementService')
            operation: Operation/method name (e.g., 'settle')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_settlement(source: str, outcome: str) -> None:
        settlements_total.labels(source=source, outcome=outcome).inc()

    @staticmethod
    def inc_webhook_delivery(result: str) -> None:
        webhook_deliveries_total.labels(result=result).inc()

    @staticmethod
    def inc_withdrawal(status: str) -> None:
        withdrawals_total.labels(status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
