"""
Prometheus metrics for the scheduling core.

Counters are labelled by outcome so rejected commands (validation, conflict)
can be told apart from successful ones on the same dashboard.
"""
import time
from functools import wraps

from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        self._setup_metrics()

    def _setup_metrics(self):

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = Counter(
            'clinic_http_requests_total',
            'Total HTTP requests',
            ['method', 'status']
        )

        self.http_request_duration_seconds = Histogram(
            'clinic_http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method'],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
        )

        self.exceptions_total = Counter(
            'clinic_exceptions_total',
            'Unhandled exceptions raised by views',
            ['exception_type']
        )

        # ===================================================================
        # Scheduling Metrics
        # ===================================================================
        self.appointment_booking_total = Counter(
            'appointment_booking_total',
            'Booking commands',
            ['result']  # success, validation_error, conflict, not_found, forbidden
        )

        self.appointment_transition_total = Counter(
            'appointment_transition_total',
            'Appointment status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.availability_queries_total = Counter(
            'availability_queries_total',
            'Availability lookups',
            ['scope']  # doctor, preview
        )

        self.availability_query_duration_seconds = Histogram(
            'availability_query_duration_seconds',
            'Availability computation duration',
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25]
        )

        # ===================================================================
        # Report Metrics
        # ===================================================================
        self.report_operation_total = Counter(
            'report_operation_total',
            'Report lifecycle commands',
            ['operation', 'result']  # operation: upload|edit_note|archive|delete
        )

        # ===================================================================
        # Notification Metrics
        # ===================================================================
        self.notification_trigger_total = Counter(
            'notification_trigger_total',
            'Notifications requested by the scheduling core',
            ['channel', 'kind', 'result']  # result: queued|failed|sent
        )

        # ===================================================================
        # Audit Metrics
        # ===================================================================
        self.clinical_auditlog_created_total = Counter(
            'clinical_auditlog_created_total',
            'Clinical audit logs created',
            ['model', 'action']
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.availability_query_duration_seconds)
            def free_slots(...):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    histogram_metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
