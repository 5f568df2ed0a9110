"""
Celery tasks for appointment notifications.

Delivery is best effort: failures are logged and counted, never retried into
the caller. Email goes through Django's mail backend, SMS through the Twilio
REST API when credentials are configured.
"""
import smtplib

import httpx
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from apps.core.observability import get_sanitized_logger, metrics

logger = get_sanitized_logger(__name__)

TWILIO_MESSAGES_URL = 'https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json'


def build_notification_message(appointment, kind):
    """Return (subject, body) for a reminder or cancellation notice."""
    from .calendar import to_clinic_time
    from .models import NotificationKindChoices

    local = to_clinic_time(appointment.scheduled_at)
    when = local.strftime('%d/%m/%Y %H:%M')
    doctor = appointment.doctor.display_name

    if kind == NotificationKindChoices.CANCELLATION:
        subject = 'Appointment cancelled'
        body = (
            f'Your appointment with {doctor} on {when} has been cancelled. '
            f'Please book a new slot from the portal.'
        )
    else:
        subject = 'Appointment reminder'
        body = f'Reminder: you have an appointment with {doctor} on {when}.'

    return subject, body


def send_sms(to_phone, body):
    """
    Send an SMS through Twilio.

    Returns:
        True when Twilio accepted the message, False when SMS is not
        configured or the number is unusable

    Raises:
        httpx.HTTPError: Twilio unreachable or returned an error status
    """
    account_sid = settings.TWILIO_ACCOUNT_SID
    if not account_sid:
        logger.info('SMS delivery not configured', extra={'event': 'sms_not_configured'})
        return False

    if not to_phone or not to_phone.startswith('+'):
        logger.warning('Phone number missing or not in E.164 format', extra={'event': 'sms_invalid_phone'})
        return False

    response = httpx.post(
        TWILIO_MESSAGES_URL.format(account_sid=account_sid),
        auth=(account_sid, settings.TWILIO_AUTH_TOKEN),
        data={
            'To': to_phone,
            'From': settings.TWILIO_FROM_NUMBER,
            'Body': body,
        },
        timeout=10.0,
    )
    response.raise_for_status()

    logger.info(
        'SMS accepted by Twilio',
        extra={'event': 'sms_sent', 'message_sid': response.json().get('sid')}
    )
    return True


@shared_task(name='apps.clinical.tasks.send_appointment_notification')
def send_appointment_notification(appointment_id, channel, kind):
    """
    Deliver a reminder or cancellation notice to the appointment's patient.

    Args:
        appointment_id: Appointment UUID (string)
        channel: 'email' | 'sms'
        kind: 'reminder' | 'cancellation'
    """
    from .models import Appointment, NotificationChannelChoices

    try:
        appointment = Appointment.objects.select_related('patient', 'doctor').get(id=appointment_id)
    except Appointment.DoesNotExist:
        logger.warning(
            'Notification target no longer exists',
            extra={'event': 'notification_skipped', 'appointment_id': appointment_id}
        )
        return f"Appointment {appointment_id} not found"

    subject, body = build_notification_message(appointment, kind)
    patient = appointment.patient

    try:
        if channel == NotificationChannelChoices.SMS:
            delivered = send_sms(patient.phone, body)
        else:
            delivered = send_mail(
                subject,
                body,
                settings.DEFAULT_FROM_EMAIL,
                [patient.email],
                fail_silently=False,
            ) > 0
    except (httpx.HTTPError, smtplib.SMTPException, OSError) as e:
        metrics.notification_trigger_total.labels(channel=channel, kind=kind, result='failed').inc()
        logger.error(
            'Notification delivery failed',
            extra={
                'event': 'notification_failed',
                'appointment_id': appointment_id,
                'channel': channel,
                'kind': kind,
                'error': str(e),
            }
        )
        return f"Notification {kind} via {channel} failed for appointment {appointment_id}"

    result = 'sent' if delivered else 'skipped'
    metrics.notification_trigger_total.labels(channel=channel, kind=kind, result=result).inc()
    logger.info(
        'Notification delivered' if delivered else 'Notification skipped',
        extra={
            'event': f'notification_{result}',
            'appointment_id': appointment_id,
            'channel': channel,
            'kind': kind,
        }
    )
    return f"Notification {kind} via {channel} {result} for appointment {appointment_id}"
