"""
Scheduling services.

- AvailabilityService: free slots of a doctor on a date (read-only)
- SchedulingGateway: the only writer of appointments and reports; every
  command re-validates its preconditions against live database state
"""
from datetime import datetime, timedelta

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Exists, OuterRef, Subquery
from django.utils import timezone

from apps.authz.models import Doctor, RoleChoices, Specialty
from apps.authz.permissions import CLINICAL_ROLES, STAFF_ROLES, get_user_roles
from apps.core.exceptions import (
    SchedulingConflictError,
    SchedulingError,
    SchedulingNotFoundError,
    SchedulingPermissionError,
    SchedulingValidationError,
)
from apps.core.observability import get_sanitized_logger, log_domain_event, metrics
from apps.core.observability.events import log_appointment_transition, log_report_event
from apps.clinical import calendar
from apps.clinical.models import (
    Appointment,
    AppointmentStatusChoices,
    AuditActionChoices,
    NotificationKindChoices,
    log_clinical_audit,
)
from apps.clinical.notifications import NotificationTrigger
from apps.clinical.pricing import get_indicative_price_cents
from apps.documents import storage
from apps.documents.models import ReportDocument

logger = get_sanitized_logger(__name__)

_STATUS = AppointmentStatusChoices


# ============================================================================
# Availability
# ============================================================================

class AvailabilityService:
    """
    Free one-hour slots per doctor and day.

    BUSINESS RULES:
    - Closed days (Sundays, public holidays) have no slots; this is not an error
    - A slot is taken by any appointment of the doctor at that time that is
      not cancelled (rejected requests keep their slot)
    - Today, a slot is offered only if its hour is later than the current
      hour, or equal to it with zero minutes elapsed
    - Without a doctor no conflict filtering happens (preview mode)
    """

    @staticmethod
    def free_slots(doctor_id, target_date, existing_appointments=None, now=None):
        """
        Ascending list of free slot start times (datetime.time).

        Args:
            doctor_id: Doctor UUID, or None for a doctor-independent preview
            target_date: Date in the clinic time zone
            existing_appointments: Appointments to check against; loaded from
                the database when omitted
            now: Reference time (defaults to timezone.now())
        """
        if not calendar.is_bookable_day(target_date):
            return []

        slots = calendar.daily_slot_grid()

        if doctor_id is not None:
            if existing_appointments is None:
                existing_appointments = AvailabilityService._day_appointments(doctor_id, target_date)
            occupied = AvailabilityService._occupied_slots(doctor_id, target_date, existing_appointments)
            slots = [slot for slot in slots if (slot.hour, slot.minute) not in occupied]

        now_local = calendar.to_clinic_time(now) if now else calendar.clinic_now()
        if target_date == now_local.date():
            slots = [slot for slot in slots if AvailabilityService._is_after_cutoff(slot, now_local)]

        return slots

    @staticmethod
    @metrics.track_duration(metrics.availability_query_duration_seconds)
    def calculate_availability(doctor_id, date_from, date_to, now=None):
        """
        Free slots for every day of an inclusive date range.

        Returns:
            {
                "doctor_id": "<uuid>" | None,
                "date_from": "YYYY-MM-DD",
                "date_to": "YYYY-MM-DD",
                "timezone": "Europe/Rome",
                "availability": [
                    {"date": "YYYY-MM-DD", "is_bookable": true,
                     "slots": [{"start": "09:00", "end": "10:00"}, ...]}
                ]
            }
        """
        if date_to < date_from:
            raise SchedulingValidationError(
                'date_to must not be before date_from',
                details={'date_from': date_from.isoformat(), 'date_to': date_to.isoformat()},
            )

        max_days = settings.AVAILABILITY_MAX_RANGE_DAYS
        if (date_to - date_from).days + 1 > max_days:
            raise SchedulingValidationError(
                f'Date range cannot exceed {max_days} days',
                details={'max_days': max_days},
            )

        metrics.availability_queries_total.labels(scope='doctor' if doctor_id else 'preview').inc()

        appointments = []
        if doctor_id is not None:
            appointments = list(AvailabilityService._range_appointments(doctor_id, date_from, date_to))

        availability = []
        current = date_from
        while current <= date_to:
            slots = AvailabilityService.free_slots(
                doctor_id,
                current,
                existing_appointments=appointments,
                now=now,
            )
            availability.append({
                'date': current.isoformat(),
                'is_bookable': calendar.is_bookable_day(current),
                'slots': [
                    {
                        'start': slot.strftime('%H:%M'),
                        'end': (datetime.combine(current, slot) + timedelta(hours=1)).strftime('%H:%M'),
                    }
                    for slot in slots
                ],
            })
            current += timedelta(days=1)

        return {
            'doctor_id': str(doctor_id) if doctor_id else None,
            'date_from': date_from.isoformat(),
            'date_to': date_to.isoformat(),
            'timezone': settings.CLINIC_TIME_ZONE,
            'availability': availability,
        }

    @staticmethod
    def _is_after_cutoff(slot, now_local):
        if slot.hour > now_local.hour:
            return True
        return slot.hour == now_local.hour and now_local.minute == 0

    @staticmethod
    def _occupied_slots(doctor_id, target_date, appointments):
        occupied = set()
        for appointment in appointments:
            if appointment.status == _STATUS.CANCELLED:
                continue
            if str(appointment.doctor_id) != str(doctor_id):
                continue
            local = calendar.to_clinic_time(appointment.scheduled_at)
            if local.date() != target_date:
                continue
            occupied.add((local.hour, local.minute))
        return occupied

    @staticmethod
    def _range_appointments(doctor_id, date_from, date_to):
        start = calendar.slot_datetime(date_from, datetime.min.time())
        end = calendar.slot_datetime(date_to + timedelta(days=1), datetime.min.time())
        return Appointment.objects.filter(
            doctor_id=doctor_id,
            scheduled_at__gte=start,
            scheduled_at__lt=end,
        ).exclude(status=_STATUS.CANCELLED)

    @staticmethod
    def _day_appointments(doctor_id, target_date):
        return AvailabilityService._range_appointments(doctor_id, target_date, target_date)


# ============================================================================
# Read helpers
# ============================================================================

def annotate_report_state(queryset):
    """
    Annotate appointments with has_active_report and latest_report_archived_at.

    The "latest" report is the most recently uploaded non-deleted one.
    """
    active_reports = ReportDocument.objects.filter(
        appointment=OuterRef('pk'),
        deleted_at__isnull=True,
    ).order_by('-uploaded_at')

    return queryset.annotate(
        has_active_report=Exists(active_reports),
        latest_report_archived_at=Subquery(active_reports.values('archived_at')[:1]),
    )


def appointments_visible_to(user):
    """
    Appointments a user may see.

    - Admin, Secretary: all
    - Doctor: appointments assigned to their doctor profile
    - Patient: their own bookings
    """
    roles = get_user_roles(user)
    queryset = Appointment.objects.select_related('patient', 'doctor', 'specialty')

    if roles & STAFF_ROLES:
        return queryset

    if RoleChoices.DOCTOR in roles and RoleChoices.PATIENT in roles:
        return queryset.filter(doctor__user=user) | queryset.filter(patient=user)
    if RoleChoices.DOCTOR in roles:
        return queryset.filter(doctor__user=user)
    if RoleChoices.PATIENT in roles:
        return queryset.filter(patient=user)

    return queryset.none()


def reports_visible_to(user):
    """
    Reports a user may see, deleted ones included (callers filter).

    Patients only see reports of their own appointments.
    """
    visible_appointments = appointments_visible_to(user).values('pk')
    return ReportDocument.objects.select_related('appointment').filter(
        appointment__in=visible_appointments
    )


def appointment_stats(days, now=None):
    """
    Appointments created in the last ``days`` days, counted by status.

    The window starts at midnight (clinic time) ``days - 1`` days before
    today, so ``days=1`` means today only.

    Returns:
        {"window_days": 30, "since": "YYYY-MM-DD", "total": 12,
         "requested": 3, "confirmed": 5, "rejected": 1, "cancelled": 2,
         "completed": 1}
    """
    now_local = calendar.to_clinic_time(now) if now else calendar.clinic_now()
    since = now_local.date() - timedelta(days=days - 1)

    rows = (
        Appointment.objects
        .filter(created_at__gte=calendar.slot_datetime(since, datetime.min.time()))
        .values('status')
        .annotate(count=Count('id'))
        .order_by()
    )
    counts = {row['status']: row['count'] for row in rows}

    stats = {
        'window_days': days,
        'since': since.isoformat(),
        'total': sum(counts.values()),
    }
    for value in _STATUS.values:
        stats[value] = counts.get(value, 0)
    return stats


# ============================================================================
# Scheduling gateway
# ============================================================================

class SchedulingGateway:
    """
    Command handlers for every appointment and report state change.

    Each handler takes the acting user and the command payload, re-validates
    the preconditions inside a transaction with the affected rows locked, and
    returns the updated entity or raises a SchedulingError subclass. Handlers
    write one audit row per changed entity.
    """

    def __init__(self, notifier=None, request=None):
        self.notifier = notifier or NotificationTrigger()
        self.request = request

    # ------------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------------

    def _roles(self, actor):
        roles = get_user_roles(actor)
        if not roles:
            raise SchedulingPermissionError('User has no portal role')
        return roles

    def _require_roles(self, roles, allowed, action):
        if not roles & allowed:
            raise SchedulingPermissionError(
                f'Role not allowed to {action}',
                details={'allowed_roles': sorted(allowed)},
            )

    def _check_doctor_scope(self, actor, roles, appointment):
        """Doctors without a staff role may only act on their own appointments."""
        if roles & STAFF_ROLES or RoleChoices.DOCTOR not in roles:
            return
        if appointment.doctor.user_id != actor.id:
            raise SchedulingPermissionError(
                'Doctors may only act on their own appointments',
                details={'appointment_id': str(appointment.id)},
            )

    def _lock_appointment(self, appointment_id):
        try:
            return (
                Appointment.objects.select_for_update()
                .select_related('doctor')
                .get(pk=appointment_id)
            )
        except (Appointment.DoesNotExist, DjangoValidationError, ValueError):
            raise SchedulingNotFoundError(
                'Appointment not found',
                details={'appointment_id': str(appointment_id)},
            )

    def _lock_report(self, report_id):
        try:
            return (
                ReportDocument.objects.select_for_update()
                .select_related('appointment__doctor')
                .get(pk=report_id)
            )
        except (ReportDocument.DoesNotExist, DjangoValidationError, ValueError):
            raise SchedulingNotFoundError(
                'Report not found',
                details={'report_id': str(report_id)},
            )

    # ------------------------------------------------------------------------
    # Appointment commands
    # ------------------------------------------------------------------------

    def book_appointment(self, actor, doctor_id, scheduled_at, specialty_id=None, note=None, now=None):
        """
        Create a requested appointment for the acting patient.

        BUSINESS RULES:
        1. Only patients book
        2. The doctor must exist and be active; the specialty, if given, must
           be one the doctor practices
        3. scheduled_at must be a grid slot on a bookable day, not past the
           same-day cutoff, and free for the doctor
        4. The price is copied from the specialty at creation
        5. A concurrent booking of the same slot loses with a conflict
        """
        roles = self._roles(actor)
        try:
            if RoleChoices.PATIENT not in roles:
                raise SchedulingPermissionError('Only patients can request appointments')

            doctor = self._get_active_doctor(doctor_id)
            specialty = self._get_specialty(specialty_id, doctor) if specialty_id else None
            local = self._validate_requested_slot(scheduled_at, now)

            with transaction.atomic():
                free = AvailabilityService.free_slots(doctor.id, local.date(), now=now)
                if local.time() not in free:
                    raise SchedulingConflictError(
                        'slot already booked',
                        details={'doctor_id': str(doctor.id), 'scheduled_at': local.isoformat()},
                    )

                appointment = Appointment.objects.create(
                    patient=actor,
                    doctor=doctor,
                    specialty=specialty,
                    scheduled_at=local,
                    status=_STATUS.REQUESTED,
                    note=(note or '').strip() or None,
                    price_cents=get_indicative_price_cents(specialty),
                    created_by_user=actor,
                )
                log_clinical_audit(
                    actor,
                    appointment,
                    AuditActionChoices.CREATE,
                    'book_appointment',
                    after={'status': appointment.status, 'scheduled_at': local.isoformat()},
                    appointment=appointment,
                    request=self.request,
                )
        except IntegrityError as e:
            metrics.appointment_booking_total.labels(result=SchedulingConflictError.error_type).inc()
            raise SchedulingConflictError(
                'slot already booked',
                details={'doctor_id': str(doctor_id), 'scheduled_at': str(scheduled_at)},
            ) from e
        except SchedulingError as e:
            metrics.appointment_booking_total.labels(result=e.error_type).inc()
            raise

        metrics.appointment_booking_total.labels(result='success').inc()
        log_domain_event(
            'appointment_booked',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            entity_ids={'doctor_id': str(doctor.id)},
            scheduled_at=local.isoformat(),
            price_cents=appointment.price_cents,
        )
        return appointment

    def confirm_appointment(self, actor, appointment_id, notify_channel=None):
        """
        Confirm a requested appointment.

        On an already confirmed appointment nothing changes; with
        ``notify_channel`` a reminder is sent.
        """
        return self._transition(
            actor,
            appointment_id,
            _STATUS.CONFIRMED,
            'confirm_appointment',
            notify_channel=notify_channel,
        )

    def reject_appointment(self, actor, appointment_id, note):
        return self._transition(actor, appointment_id, _STATUS.REJECTED, 'reject_appointment', note=note)

    def cancel_appointment(self, actor, appointment_id, notify_channel=None):
        """
        Cancel a confirmed appointment, freeing its slot.

        With ``notify_channel`` a cancellation notice is sent after commit.
        """
        return self._transition(
            actor,
            appointment_id,
            _STATUS.CANCELLED,
            'cancel_appointment',
            notify_channel=notify_channel,
        )

    def complete_appointment(self, actor, appointment_id, now=None):
        return self._transition(actor, appointment_id, _STATUS.COMPLETED, 'complete_appointment', now=now)

    def transition_appointment(self, actor, appointment_id, new_status, note=None, notify_channel=None, now=None):
        """
        Dispatch a requested target status to its command handler.

        Targets without a handler still go through the transition table, so the
        caller gets the illegal (from, to) pair back.
        """
        if new_status == _STATUS.CONFIRMED:
            return self.confirm_appointment(actor, appointment_id, notify_channel=notify_channel)
        if new_status == _STATUS.REJECTED:
            return self.reject_appointment(actor, appointment_id, note)
        if new_status == _STATUS.CANCELLED:
            return self.cancel_appointment(actor, appointment_id, notify_channel=notify_channel)
        if new_status == _STATUS.COMPLETED:
            return self.complete_appointment(actor, appointment_id, now=now)
        return self._transition(actor, appointment_id, new_status, 'transition_appointment', now=now)

    def _transition(self, actor, appointment_id, new_status, command, note=None, now=None, notify_channel=None):
        roles = self._roles(actor)

        with transaction.atomic():
            appointment = self._lock_appointment(appointment_id)
            from_status = appointment.status
            try:
                self._check_doctor_scope(actor, roles, appointment)
                appointment.transition_status(new_status, roles, note=note, now=now)
            except SchedulingError as e:
                metrics.appointment_transition_total.labels(
                    from_status=from_status, to_status=new_status, result=e.error_type
                ).inc()
                log_appointment_transition(appointment, from_status, new_status, result='rejected', reason=e.message)
                raise

            if appointment.status != from_status:
                appointment.save(update_fields=['status', 'rejection_note', 'updated_at'])
                log_clinical_audit(
                    actor,
                    appointment,
                    AuditActionChoices.UPDATE,
                    command,
                    before={'status': from_status},
                    after={'status': appointment.status},
                    appointment=appointment,
                    request=self.request,
                )

            notify_kind = Appointment.TRANSITION_NOTIFICATIONS.get((from_status, new_status))
            if notify_channel and notify_kind:
                self.notifier.notify(appointment, notify_channel, notify_kind)

        metrics.appointment_transition_total.labels(
            from_status=from_status, to_status=new_status, result='success'
        ).inc()
        log_appointment_transition(appointment, from_status, new_status, command=command)
        return appointment

    def notify_appointment(self, actor, appointment_id, channel, kind):
        """
        Send a reminder (confirmed appointments) or a cancellation notice
        (cancelled appointments) without changing the status.
        """
        roles = self._roles(actor)
        self._require_roles(roles, CLINICAL_ROLES, 'send notifications')

        with transaction.atomic():
            appointment = self._lock_appointment(appointment_id)
            self._check_doctor_scope(actor, roles, appointment)

            required_status = Appointment.NOTIFICATION_STATUS.get(kind)
            if required_status is None:
                raise SchedulingValidationError(
                    f'Unknown notification kind: {kind}',
                    details={'field': 'kind', 'allowed': NotificationKindChoices.values},
                )
            if appointment.status != required_status:
                raise SchedulingValidationError(
                    f'A {kind} notification requires status {required_status}',
                    details={'status': appointment.status, 'required_status': required_status},
                )

            ack = self.notifier.notify(appointment, channel, kind)

        log_domain_event(
            'appointment_notification_requested',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            channel=channel,
            kind=kind,
        )
        return ack

    def delete_appointment(self, actor, appointment_id):
        """
        Hard-delete an appointment.

        BUSINESS RULE: Refused while any non-deleted report references it; the
        caller should cancel instead. Soft-deleted reports go with it.
        """
        roles = self._roles(actor)
        self._require_roles(roles, STAFF_ROLES, 'delete appointments')

        with transaction.atomic():
            appointment = self._lock_appointment(appointment_id)

            active_reports = appointment.active_reports().count()
            if active_reports:
                raise SchedulingValidationError(
                    'Appointment has active reports; cancel it instead of deleting it',
                    details={'active_reports': active_reports},
                )

            log_clinical_audit(
                actor,
                appointment,
                AuditActionChoices.DELETE,
                'delete_appointment',
                before={
                    'status': appointment.status,
                    'scheduled_at': appointment.scheduled_at.isoformat(),
                    'doctor_id': str(appointment.doctor_id),
                    'patient_id': str(appointment.patient_id),
                },
                request=self.request,
            )
            appointment_pk = appointment.pk
            appointment.delete()

        log_domain_event(
            'appointment_deleted',
            entity_type='Appointment',
            entity_id=str(appointment_pk),
        )

    # ------------------------------------------------------------------------
    # Report commands
    # ------------------------------------------------------------------------

    def upload_report(self, actor, appointment_id, note=None, file=None, now=None):
        """
        Attach a report (file, note or both) to an appointment.

        BUSINESS RULES:
        1. Doctors (own appointments), Secretary and Admin upload
        2. Appointment confirmed or completed, and already started
        3. A file or a non-empty note is required
        """
        roles = self._roles(actor)
        try:
            self._require_roles(roles, CLINICAL_ROLES, 'upload reports')

            with transaction.atomic():
                appointment = self._lock_appointment(appointment_id)
                self._check_doctor_scope(actor, roles, appointment)
                appointment.check_report_upload_allowed(now)

                cleaned_note = (note or '').strip() or None
                if file is None and cleaned_note is None:
                    raise SchedulingValidationError('file or note required', details={'fields': ['file', 'note']})

                binary = {}
                if file is not None:
                    storage.validate_report_file(file)
                    binary = storage.store_report_file(file, appointment.id)

                try:
                    report = ReportDocument.objects.create(
                        appointment=appointment,
                        note=cleaned_note,
                        uploaded_at=now or timezone.now(),
                        uploaded_by_user=actor,
                        **binary
                    )
                    log_clinical_audit(
                        actor,
                        report,
                        AuditActionChoices.CREATE,
                        'upload_report',
                        after={'has_file': report.has_file, 'has_note': bool(report.note)},
                        appointment=appointment,
                        request=self.request,
                    )
                except Exception:
                    # The stored object must not outlive a row that was never written
                    if binary:
                        storage.delete_report_file(binary['storage_bucket'], binary['object_key'])
                    raise
        except SchedulingError as e:
            metrics.report_operation_total.labels(operation='upload', result=e.error_type).inc()
            raise

        metrics.report_operation_total.labels(operation='upload', result='success').inc()
        log_report_event(report, 'uploaded', has_file=report.has_file, size_bytes=report.size_bytes)
        return report

    def update_report_note(self, actor, report_id, note):
        roles = self._roles(actor)
        try:
            self._require_roles(roles, CLINICAL_ROLES, 'edit reports')

            with transaction.atomic():
                report = self._lock_report(report_id)
                self._check_doctor_scope(actor, roles, report.appointment)
                had_note = bool(report.note)
                report.update_note(note)
                report.save(update_fields=['note', 'updated_at'])
                log_clinical_audit(
                    actor,
                    report,
                    AuditActionChoices.UPDATE,
                    'update_report_note',
                    before={'has_note': had_note},
                    after={'has_note': bool(report.note)},
                    appointment=report.appointment,
                    request=self.request,
                )
        except SchedulingError as e:
            metrics.report_operation_total.labels(operation='edit_note', result=e.error_type).inc()
            raise

        metrics.report_operation_total.labels(operation='edit_note', result='success').inc()
        log_report_event(report, 'note_updated')
        return report

    def archive_report(self, actor, report_id, now=None):
        roles = self._roles(actor)
        try:
            self._require_roles(roles, CLINICAL_ROLES, 'archive reports')

            with transaction.atomic():
                report = self._lock_report(report_id)
                self._check_doctor_scope(actor, roles, report.appointment)
                report.archive(now)
                report.save(update_fields=['archived_at', 'updated_at'])
                log_clinical_audit(
                    actor,
                    report,
                    AuditActionChoices.UPDATE,
                    'archive_report',
                    after={'archived_at': report.archived_at.isoformat()},
                    appointment=report.appointment,
                    request=self.request,
                )
        except SchedulingError as e:
            metrics.report_operation_total.labels(operation='archive', result=e.error_type).inc()
            raise

        metrics.report_operation_total.labels(operation='archive', result='success').inc()
        log_report_event(report, 'archived')
        return report

    def archive_appointment_reports(self, actor, appointment_id, now=None):
        """
        Archive every present report of an appointment.

        Returns:
            {"appointment_id": "<uuid>", "archived_reports": <count>}

        Raises:
            SchedulingConflictError: nothing left to archive
        """
        roles = self._roles(actor)
        try:
            self._require_roles(roles, CLINICAL_ROLES, 'archive reports')

            with transaction.atomic():
                appointment = self._lock_appointment(appointment_id)
                self._check_doctor_scope(actor, roles, appointment)

                reports = list(
                    appointment.active_reports()
                    .filter(archived_at__isnull=True)
                    .select_for_update()
                )
                if not reports:
                    raise SchedulingConflictError(
                        'no reports to archive',
                        details={'appointment_id': str(appointment.id)},
                    )

                archived_at = now or timezone.now()
                for report in reports:
                    report.archive(archived_at)
                    report.save(update_fields=['archived_at', 'updated_at'])
                    log_clinical_audit(
                        actor,
                        report,
                        AuditActionChoices.UPDATE,
                        'archive_appointment_reports',
                        after={'archived_at': archived_at.isoformat()},
                        appointment=appointment,
                        request=self.request,
                    )
        except SchedulingError as e:
            metrics.report_operation_total.labels(operation='archive', result=e.error_type).inc()
            raise

        metrics.report_operation_total.labels(operation='archive', result='success').inc(len(reports))
        log_domain_event(
            'appointment_reports_archived',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            archived_reports=len(reports),
        )
        return {'appointment_id': str(appointment.id), 'archived_reports': len(reports)}

    def delete_report(self, actor, report_id, note, now=None):
        """
        Soft-delete a report with a mandatory justification.

        BUSINESS RULE: deleted_at, deleted_note and deleted_by_user are set
        together; the report stops counting as active but stays listed for
        audit.
        """
        roles = self._roles(actor)
        try:
            self._require_roles(roles, CLINICAL_ROLES, 'delete reports')

            with transaction.atomic():
                report = self._lock_report(report_id)
                self._check_doctor_scope(actor, roles, report.appointment)
                report.soft_delete(actor, note, now)
                report.save(update_fields=['deleted_at', 'deleted_note', 'deleted_by_user', 'updated_at'])
                log_clinical_audit(
                    actor,
                    report,
                    AuditActionChoices.DELETE,
                    'delete_report',
                    after={'deleted_at': report.deleted_at.isoformat()},
                    appointment=report.appointment,
                    request=self.request,
                )
        except SchedulingError as e:
            metrics.report_operation_total.labels(operation='delete', result=e.error_type).inc()
            raise

        metrics.report_operation_total.labels(operation='delete', result='success').inc()
        log_report_event(report, 'deleted')
        return report

    # ------------------------------------------------------------------------
    # Booking validation
    # ------------------------------------------------------------------------

    def _get_active_doctor(self, doctor_id):
        try:
            return Doctor.objects.get(pk=doctor_id, is_active=True)
        except (Doctor.DoesNotExist, DjangoValidationError, ValueError):
            raise SchedulingNotFoundError('Doctor not found', details={'doctor_id': str(doctor_id)})

    def _get_specialty(self, specialty_id, doctor):
        try:
            specialty = Specialty.objects.get(pk=specialty_id)
        except (Specialty.DoesNotExist, DjangoValidationError, ValueError):
            raise SchedulingNotFoundError('Specialty not found', details={'specialty_id': str(specialty_id)})

        if not doctor.specialties.filter(pk=specialty.pk).exists():
            raise SchedulingValidationError(
                'Doctor does not practice this specialty',
                details={'doctor_id': str(doctor.id), 'specialty_id': str(specialty.id)},
            )
        return specialty

    def _validate_requested_slot(self, scheduled_at, now=None):
        """
        Return scheduled_at in clinic time after checking it against the calendar.

        Naive datetimes are read as clinic wall-clock time.
        """
        if timezone.is_naive(scheduled_at):
            scheduled_at = calendar.get_clinic_timezone().localize(scheduled_at)
        local = calendar.to_clinic_time(scheduled_at)

        if not calendar.is_bookable_day(local.date()):
            raise SchedulingValidationError(
                'slot not bookable',
                details={'reason': 'clinic closed', 'date': local.date().isoformat()},
            )

        if not calendar.is_grid_slot(local.time()):
            raise SchedulingValidationError(
                'slot not bookable',
                details={'reason': 'outside the slot grid', 'time': local.time().isoformat()},
            )

        now_local = calendar.to_clinic_time(now) if now else calendar.clinic_now()
        in_past = local.date() < now_local.date() or (
            local.date() == now_local.date()
            and not AvailabilityService._is_after_cutoff(local.time(), now_local)
        )
        if in_past:
            raise SchedulingValidationError(
                'slot in the past',
                details={'scheduled_at': local.isoformat()},
            )

        return local
