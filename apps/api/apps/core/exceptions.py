"""
Typed failures raised by the scheduling core, and their HTTP rendering.

Gateway handlers raise these instead of returning error tuples; the DRF
exception handler below maps each type to a status code and a stable
``error_type`` tag that clients switch on.
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.core.observability.logging import get_sanitized_logger

logger = get_sanitized_logger(__name__)


class SchedulingError(Exception):
    """Base class for every failure the scheduling core reports to a caller."""
    error_type = 'error'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def as_dict(self):
        return {
            'error': self.message,
            'error_type': self.error_type,
            'details': self.details,
        }


class SchedulingValidationError(SchedulingError):
    """A precondition of the command does not hold (bad input or illegal transition)."""
    error_type = 'validation_error'
    status_code = status.HTTP_400_BAD_REQUEST


class SchedulingPermissionError(SchedulingError):
    """The acting user's role may not run this command on this entity."""
    error_type = 'forbidden'
    status_code = status.HTTP_403_FORBIDDEN


class SchedulingNotFoundError(SchedulingError):
    """The referenced appointment, report, doctor or specialty does not exist."""
    error_type = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND


class SchedulingConflictError(SchedulingError):
    """The command lost against concurrent state (slot taken, already archived)."""
    error_type = 'conflict'
    status_code = status.HTTP_409_CONFLICT


class SchedulingDependencyError(SchedulingError):
    """An external collaborator (object storage) failed."""
    error_type = 'dependency_error'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def scheduling_exception_handler(exc, context):
    """
    DRF exception handler.

    SchedulingError subclasses are rendered as
    ``{"error": ..., "error_type": ..., "details": {...}}``; everything else
    falls through to DRF's default handling.
    """
    if isinstance(exc, SchedulingError):
        view = context.get('view')
        logger.info(
            'Scheduling command rejected',
            extra={
                'event': 'scheduling_command_rejected',
                'error_type': exc.error_type,
                'view': view.__class__.__name__ if view else None,
            }
        )
        return Response(exc.as_dict(), status=exc.status_code)

    return exception_handler(exc, context)
