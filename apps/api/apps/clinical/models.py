"""
Clinical models: appointment, clinical_audit_log

The appointment status machine is table-driven: Appointment.TRANSITIONS maps
every legal (from, to) pair to the roles allowed to perform it. Anything not in
the table is an illegal transition.
"""
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.authz.models import RoleChoices
from apps.core.exceptions import (
    SchedulingPermissionError,
    SchedulingValidationError,
)


# ============================================================================
# Enums
# ============================================================================

class AppointmentStatusChoices(models.TextChoices):
    """
    Appointment status with allowed transitions:
    - requested -> confirmed | rejected
    - confirmed -> cancelled | completed
    - confirmed -> confirmed only sends a reminder
    - rejected, cancelled, completed are terminal states
    """
    REQUESTED = 'requested', 'Requested'
    CONFIRMED = 'confirmed', 'Confirmed'
    REJECTED = 'rejected', 'Rejected'
    CANCELLED = 'cancelled', 'Cancelled'
    COMPLETED = 'completed', 'Completed'


class NotificationChannelChoices(models.TextChoices):
    EMAIL = 'email', 'Email'
    SMS = 'sms', 'SMS'


class NotificationKindChoices(models.TextChoices):
    REMINDER = 'reminder', 'Reminder'
    CANCELLATION = 'cancellation', 'Cancellation'


class ReportStateChoices(models.TextChoices):
    """Report state of an appointment, derived from its latest active report."""
    NONE = 'none', 'None'
    PRESENT = 'present', 'Present'
    ARCHIVED = 'archived', 'Archived'


class AuditActionChoices(models.TextChoices):
    """Clinical audit log action types"""
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'


class AuditEntityTypeChoices(models.TextChoices):
    """Clinical entity types for audit logging"""
    APPOINTMENT = 'Appointment', 'Appointment'
    REPORT_DOCUMENT = 'ReportDocument', 'Report Document'


_STATUS = AppointmentStatusChoices
_DOCTOR_OR_STAFF = frozenset({RoleChoices.DOCTOR, RoleChoices.SECRETARY, RoleChoices.ADMIN})
_STAFF = frozenset({RoleChoices.SECRETARY, RoleChoices.ADMIN})


# ============================================================================
# Models
# ============================================================================

class Appointment(models.Model):
    """
    One-hour visit of a patient with a doctor.

    - patient_id: FK -> auth_user (the booking patient)
    - doctor_id: FK -> doctor
    - specialty_id: FK -> specialty nullable
    - scheduled_at: slot start (aware, stored UTC, read in clinic time)
    - status: enum (see AppointmentStatusChoices)
    - note: patient's free-text request note
    - rejection_note: reason given when a request is rejected
    - price_cents: indicative price copied from the specialty at booking time

    BUSINESS RULES:
    - At most one non-cancelled appointment per (doctor, scheduled_at),
      enforced by the database so concurrent bookings cannot both win
    - scheduled_at is validated against the calendar only at creation
    - Status changes only through transition_status()
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    specialty = models.ForeignKey(
        'authz.Specialty',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='appointments'
    )

    scheduled_at = models.DateTimeField()
    status = models.CharField(
        max_length=20,
        choices=AppointmentStatusChoices.choices,
        default=AppointmentStatusChoices.REQUESTED
    )
    note = models.TextField(blank=True, null=True)
    rejection_note = models.TextField(blank=True, null=True)
    price_cents = models.PositiveIntegerField(blank=True, null=True)

    # Audit
    created_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='created_appointments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointment'
        verbose_name = 'Appointment'
        verbose_name_plural = 'Appointments'
        indexes = [
            models.Index(fields=['patient'], name='idx_appointment_patient'),
            models.Index(fields=['doctor', 'scheduled_at'], name='idx_appointment_doctor_slot'),
            models.Index(fields=['scheduled_at'], name='idx_appointment_scheduled'),
            models.Index(fields=['status'], name='idx_appointment_status'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'scheduled_at'],
                condition=~Q(status='cancelled'),
                name='uniq_appointment_doctor_slot_active',
            ),
        ]

    # BUSINESS RULE: (from, to) -> roles allowed to perform the transition
    TRANSITIONS = {
        (_STATUS.REQUESTED, _STATUS.CONFIRMED): _DOCTOR_OR_STAFF,
        (_STATUS.REQUESTED, _STATUS.REJECTED): _DOCTOR_OR_STAFF,
        (_STATUS.CONFIRMED, _STATUS.CANCELLED): _DOCTOR_OR_STAFF,
        (_STATUS.CONFIRMED, _STATUS.COMPLETED): _STAFF,
        # No status change; only used to send a reminder
        (_STATUS.CONFIRMED, _STATUS.CONFIRMED): _DOCTOR_OR_STAFF,
    }

    # BUSINESS RULE: (from, to) -> notification kind sent when a channel is given
    TRANSITION_NOTIFICATIONS = {
        (_STATUS.CONFIRMED, _STATUS.CANCELLED): NotificationKindChoices.CANCELLATION,
        (_STATUS.CONFIRMED, _STATUS.CONFIRMED): NotificationKindChoices.REMINDER,
    }

    # BUSINESS RULE: notification kind -> status the appointment must be in
    NOTIFICATION_STATUS = {
        NotificationKindChoices.REMINDER: _STATUS.CONFIRMED,
        NotificationKindChoices.CANCELLATION: _STATUS.CANCELLED,
    }

    # BUSINESS RULE: statuses that allow attaching a report
    REPORTABLE_STATUSES = (_STATUS.CONFIRMED, _STATUS.COMPLETED)

    def __str__(self):
        return f"Appointment {self.scheduled_at:%Y-%m-%d %H:%M} - {self.doctor_id} ({self.status})"

    @property
    def scheduled_end(self):
        return self.scheduled_at + timedelta(hours=1)

    def clean(self):
        """
        Calendar validation for appointments created outside the gateway
        (Django admin). Raises Django's ValidationError for form display.
        """
        from django.core.exceptions import ValidationError
        from apps.clinical.calendar import is_bookable_day, is_grid_slot, to_clinic_time

        if not self.scheduled_at:
            return

        local = to_clinic_time(self.scheduled_at)
        if not is_bookable_day(local.date()):
            raise ValidationError({'scheduled_at': 'The clinic is closed on this day'})
        if not is_grid_slot(local.time()):
            raise ValidationError({'scheduled_at': 'Appointments start on the hour within opening hours'})

    def transition_status(self, new_status, roles, note=None, now=None):
        """
        Move the appointment to ``new_status`` after checking the transition table.

        BUSINESS RULES:
        1. Only (from, to) pairs in TRANSITIONS are legal
        2. The acting roles must intersect the roles allowed for the pair
        3. Rejection requires a non-empty note, kept for the patient
        4. Completion requires scheduled_at to have elapsed

        Args:
            new_status: Target status value
            roles: Role names held by the acting user
            note: Rejection note (required for rejected)
            now: Reference time (defaults to timezone.now())

        Returns:
            The previous status

        Raises:
            SchedulingValidationError: illegal pair or unmet precondition
            SchedulingPermissionError: acting roles may not perform the pair
        """
        key = (self.status, new_status)
        allowed_roles = self.TRANSITIONS.get(key)
        if allowed_roles is None:
            raise SchedulingValidationError(
                f'Illegal transition: {self.status} -> {new_status}',
                details={'from_status': self.status, 'to_status': new_status},
            )

        if not set(roles) & allowed_roles:
            raise SchedulingPermissionError(
                f'Role not allowed to move appointment from {self.status} to {new_status}',
                details={'from_status': self.status, 'to_status': new_status},
            )

        if new_status == _STATUS.REJECTED:
            if not note or not note.strip():
                raise SchedulingValidationError('note required', details={'field': 'note'})
            self.rejection_note = note.strip()

        if new_status == _STATUS.COMPLETED:
            now = now or timezone.now()
            if self.scheduled_at > now:
                raise SchedulingValidationError(
                    'appointment not yet occurred',
                    details={'scheduled_at': self.scheduled_at.isoformat()},
                )

        old_status = self.status
        self.status = new_status
        return old_status

    # ------------------------------------------------------------------------
    # Report helpers
    # ------------------------------------------------------------------------

    def active_reports(self):
        """Reports attached to this appointment that are not soft-deleted."""
        return self.reports.filter(deleted_at__isnull=True)

    @property
    def has_report(self):
        return self.active_reports().exists()

    @property
    def report_state(self):
        latest = self.active_reports().order_by('-uploaded_at').first()
        if latest is None:
            return ReportStateChoices.NONE
        if latest.archived_at is not None:
            return ReportStateChoices.ARCHIVED
        return ReportStateChoices.PRESENT

    def check_report_upload_allowed(self, now=None):
        """
        Raise SchedulingValidationError unless a report may be attached now.

        BUSINESS RULES:
        - Status must be confirmed or completed
        - The visit must have started (scheduled_at <= now)
        """
        if self.status not in self.REPORTABLE_STATUSES:
            raise SchedulingValidationError(
                'appointment not confirmed',
                details={'status': self.status},
            )

        now = now or timezone.now()
        if self.scheduled_at > now:
            raise SchedulingValidationError(
                'appointment not yet occurred',
                details={'scheduled_at': self.scheduled_at.isoformat()},
            )


class ClinicalAuditLog(models.Model):
    """
    Lightweight audit trail for scheduling commands.

    BUSINESS RULE: Every successful command that changes an appointment or a
    report writes one row. Rows survive the deletion of the appointment
    (entity_id is kept, the FK is nulled).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='clinical_audit_logs',
        help_text='User who performed the action (null for system actions)'
    )

    action = models.CharField(
        max_length=10,
        choices=AuditActionChoices.choices
    )

    entity_type = models.CharField(
        max_length=50,
        choices=AuditEntityTypeChoices.choices
    )

    entity_id = models.UUIDField(
        help_text='UUID of the entity that was changed'
    )

    appointment = models.ForeignKey(
        'Appointment',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='audit_logs'
    )

    metadata = models.JSONField(
        default=dict,
        help_text='Command name, before/after snapshots, request metadata'
    )

    class Meta:
        db_table = 'clinical_audit_log'
        verbose_name = 'Clinical Audit Log'
        verbose_name_plural = 'Clinical Audit Logs'
        indexes = [
            models.Index(fields=['created_at'], name='idx_audit_created_at'),
            models.Index(fields=['actor_user'], name='idx_audit_actor'),
            models.Index(fields=['entity_type', 'entity_id'], name='idx_audit_entity'),
            models.Index(fields=['action'], name='idx_audit_action'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        actor = self.actor_user.email if self.actor_user else 'system'
        return f"{self.action} on {self.entity_type}[{str(self.entity_id)[:8]}] by {actor}"


# ============================================================================
# Audit Helper Functions
# ============================================================================

def log_clinical_audit(
    actor,
    instance,
    action,
    command,
    before=None,
    after=None,
    appointment=None,
    request=None
):
    """
    Helper function to create clinical audit log entries.

    Args:
        actor: User instance or None for system actions
        instance: The Appointment or ReportDocument being audited
        action: 'create'|'update'|'delete'
        command: Gateway command name (e.g. 'confirm_appointment')
        before: Dict of field values before the change
        after: Dict of field values after the change
        appointment: Related appointment (None when it is being deleted)
        request: Django request object (to capture IP/user-agent)

    Returns:
        ClinicalAuditLog instance
    """
    from apps.core.observability import metrics

    entity_type = instance.__class__.__name__

    metadata = {'command': command}

    if before:
        metadata['before'] = before

    if after:
        metadata['after'] = after

    if request:
        metadata['request'] = {
            'ip': request.META.get('REMOTE_ADDR'),
            'user_agent': request.META.get('HTTP_USER_AGENT', '')[:200],
        }

    audit_log = ClinicalAuditLog.objects.create(
        actor_user=actor,
        action=action,
        entity_type=entity_type,
        entity_id=instance.pk,
        appointment=appointment,
        metadata=metadata
    )

    metrics.clinical_auditlog_created_total.labels(model=entity_type, action=action).inc()

    return audit_log
