"""
Observability for the clinic booking backend.

Provides structured logging, metrics and health checks with protection of
patient data in logs.
"""
from .metrics import metrics
from .events import log_domain_event
from .logging import get_sanitized_logger

__all__ = ['metrics', 'log_domain_event', 'get_sanitized_logger']
