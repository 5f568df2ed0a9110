"""
Notification trigger used by the scheduling gateway.

BUSINESS RULE: Notifications are fire-and-forget. They are enqueued only after
the surrounding transaction commits, and a failure to enqueue is logged and
counted but never undoes the status change that requested it.
"""
from django.db import transaction
from kombu.exceptions import OperationalError

from apps.core.exceptions import SchedulingValidationError
from apps.core.observability import get_sanitized_logger, metrics

from .models import NotificationChannelChoices, NotificationKindChoices
from .tasks import send_appointment_notification

logger = get_sanitized_logger(__name__)


class NotificationTrigger:
    """Request a reminder or cancellation notice for an appointment."""

    def notify(self, appointment, channel, kind):
        """
        Schedule delivery of a ``kind`` notice over ``channel``.

        Returns:
            Acknowledgement dict; ``status`` is always 'queued' because
            delivery happens after commit.

        Raises:
            SchedulingValidationError: unknown channel or kind
        """
        if channel not in NotificationChannelChoices.values:
            raise SchedulingValidationError(
                f'Unknown notification channel: {channel}',
                details={'field': 'channel', 'allowed': NotificationChannelChoices.values},
            )
        if kind not in NotificationKindChoices.values:
            raise SchedulingValidationError(
                f'Unknown notification kind: {kind}',
                details={'field': 'kind', 'allowed': NotificationKindChoices.values},
            )

        appointment_id = str(appointment.id)
        transaction.on_commit(lambda: self._enqueue(appointment_id, channel, kind))

        return {
            'appointment_id': appointment_id,
            'channel': channel,
            'kind': kind,
            'status': 'queued',
        }

    def _enqueue(self, appointment_id, channel, kind):
        try:
            send_appointment_notification.delay(appointment_id, channel, kind)
        except (OperationalError, ConnectionError) as e:
            metrics.notification_trigger_total.labels(channel=channel, kind=kind, result='failed').inc()
            logger.error(
                'Failed to enqueue notification',
                extra={
                    'event': 'notification_enqueue_failed',
                    'appointment_id': appointment_id,
                    'channel': channel,
                    'kind': kind,
                    'error': str(e),
                }
            )
            return

        metrics.notification_trigger_total.labels(channel=channel, kind=kind, result='queued').inc()
        logger.info(
            'Notification queued',
            extra={
                'event': 'notification_queued',
                'appointment_id': appointment_id,
                'channel': channel,
                'kind': kind,
            }
        )
