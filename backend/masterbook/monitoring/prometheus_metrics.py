"""
Prometheus metrics module for MasterBook.

Service timings come from the @measure_operation decorator; the booking
and notification counters are incremented by the services that own them.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so tests can import the module repeatedly
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "masterbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "masterbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "masterbook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "masterbook_booking_conflicts_total",
    "Booking requests rejected because of an overlapping appointment",
    ["reason"],  # exact_overlap | spans_into_slot
    registry=REGISTRY,
)

booking_lock_contention_total = Counter(
    "masterbook_booking_lock_contention_total",
    "Booking requests that could not obtain the provider lock in time",
    registry=REGISTRY,
)

notifications_total = Counter(
    "masterbook_notifications_total",
    "Notification dispatch outcomes",
    ["kind", "status"],  # status: sent | failed | timeout
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade over the module-level collectors."""

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
            service: Service name (e.g., 'AppointmentService')
            operation: Operation/method name (e.g., 'create_appointment')
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
    def inc_booking_conflict(reason: str) -> None:
        booking_conflicts_total.labels(reason=reason).inc()

    @staticmethod
    def inc_lock_contention() -> None:
        booking_lock_contention_total.inc()

    @staticmethod
    def record_notification(kind: str, status: str) -> None:
        notifications_total.labels(kind=kind, status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
