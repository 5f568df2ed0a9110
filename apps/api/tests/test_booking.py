"""
Tests for SchedulingGateway.book_appointment: calendar checks, conflicts,
specialty pricing and the double-booking race.
"""
from datetime import date, datetime, time
from unittest import mock

import pytest

from apps.clinical import calendar
from apps.clinical.models import Appointment, AppointmentStatusChoices, ClinicalAuditLog
from apps.clinical.services import AvailabilityService, SchedulingGateway
from apps.core.exceptions import (
    SchedulingConflictError,
    SchedulingNotFoundError,
    SchedulingPermissionError,
    SchedulingValidationError,
)
from tests.helpers import clinic_dt

TUESDAY = date(2025, 3, 4)
NOW = clinic_dt(date(2025, 3, 3), 8)


@pytest.fixture
def gateway():
    return SchedulingGateway(notifier=mock.Mock())


@pytest.mark.django_db
class TestBookAppointment:

    def test_patient_books_free_slot(self, gateway, patient_user, doctor, specialty):
        appointment = gateway.book_appointment(
            patient_user,
            doctor_id=doctor.id,
            scheduled_at=clinic_dt(TUESDAY, 10),
            specialty_id=specialty.id,
            note='Chest pain after exercise',
            now=NOW,
        )

        assert appointment.status == AppointmentStatusChoices.REQUESTED
        assert appointment.patient == patient_user
        assert appointment.created_by_user == patient_user
        assert appointment.note == 'Chest pain after exercise'
        assert calendar.to_clinic_time(appointment.scheduled_at).time() == time(10, 0)

    def test_price_copied_from_specialty(self, gateway, patient_user, doctor, specialty):
        appointment = gateway.book_appointment(
            patient_user, doctor.id, clinic_dt(TUESDAY, 10), specialty_id=specialty.id, now=NOW
        )

        assert appointment.price_cents == 13000

    def test_price_not_recomputed_when_table_changes(self, gateway, settings, patient_user, doctor, specialty):
        appointment = gateway.book_appointment(
            patient_user, doctor.id, clinic_dt(TUESDAY, 10), specialty_id=specialty.id, now=NOW
        )
        settings.SPECIALTY_PRICE_CENTS = {'Cardiologia': 99900}

        appointment.refresh_from_db()
        assert appointment.price_cents == 13000

    def test_no_specialty_no_price(self, gateway, patient_user, doctor):
        appointment = gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

        assert appointment.price_cents is None

    def test_audit_row_written(self, gateway, patient_user, doctor):
        appointment = gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

        audit = ClinicalAuditLog.objects.get(entity_id=appointment.id)
        assert audit.action == 'create'
        assert audit.metadata['command'] == 'book_appointment'

    def test_naive_datetime_read_as_clinic_time(self, gateway, patient_user, doctor):
        appointment = gateway.book_appointment(
            patient_user, doctor.id, datetime(2025, 3, 4, 11, 0), now=NOW
        )

        assert calendar.to_clinic_time(appointment.scheduled_at).hour == 11

    def test_sunday_rejected(self, gateway, patient_user, doctor):
        with pytest.raises(SchedulingValidationError, match='slot not bookable'):
            gateway.book_appointment(patient_user, doctor.id, clinic_dt(date(2025, 3, 9), 10), now=NOW)

    def test_easter_monday_rejected(self, gateway, patient_user, doctor):
        with pytest.raises(SchedulingValidationError, match='slot not bookable'):
            gateway.book_appointment(
                patient_user, doctor.id, clinic_dt(date(2025, 4, 21), 10), now=clinic_dt(date(2025, 4, 1), 8)
            )

    @pytest.mark.parametrize('hour,minute', [(8, 0), (20, 0), (10, 30)])
    def test_off_grid_rejected(self, gateway, patient_user, doctor, hour, minute):
        with pytest.raises(SchedulingValidationError, match='slot not bookable'):
            gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, hour, minute), now=NOW)

    def test_past_day_rejected(self, gateway, patient_user, doctor):
        with pytest.raises(SchedulingValidationError, match='slot in the past'):
            gateway.book_appointment(
                patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=clinic_dt(date(2025, 3, 5), 8)
            )

    def test_same_day_after_cutoff_rejected(self, gateway, patient_user, doctor):
        with pytest.raises(SchedulingValidationError, match='slot in the past'):
            gateway.book_appointment(
                patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=clinic_dt(TUESDAY, 10, 5)
            )

    def test_same_day_on_the_hour_allowed(self, gateway, patient_user, doctor):
        appointment = gateway.book_appointment(
            patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=clinic_dt(TUESDAY, 10, 0)
        )

        assert appointment.pk is not None

    def test_taken_slot_conflicts(self, gateway, patient_user, other_patient_user, doctor):
        gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

        with pytest.raises(SchedulingConflictError, match='slot already booked'):
            gateway.book_appointment(other_patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

    def test_slot_freed_by_cancellation_can_be_rebooked(self, gateway, patient_user, other_patient_user, doctor):
        first = gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)
        Appointment.objects.filter(pk=first.pk).update(status=AppointmentStatusChoices.CANCELLED)

        second = gateway.book_appointment(other_patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

        assert second.pk != first.pk

    def test_rejected_request_keeps_slot(self, gateway, patient_user, other_patient_user, doctor):
        first = gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)
        Appointment.objects.filter(pk=first.pk).update(status=AppointmentStatusChoices.REJECTED)

        with pytest.raises(SchedulingConflictError):
            gateway.book_appointment(other_patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

    def test_same_slot_with_other_doctor_allowed(self, gateway, patient_user, doctor, other_doctor):
        gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

        appointment = gateway.book_appointment(patient_user, other_doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

        assert appointment.doctor == other_doctor

    def test_concurrent_insert_surfaces_as_conflict(self, gateway, patient_user, other_patient_user, doctor):
        """The losing request passed the availability read; the unique constraint decides."""
        gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

        with mock.patch.object(AvailabilityService, 'free_slots', return_value=calendar.daily_slot_grid()):
            with pytest.raises(SchedulingConflictError, match='slot already booked'):
                gateway.book_appointment(other_patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

        assert Appointment.objects.filter(doctor=doctor).count() == 1

    def test_only_patients_book(self, gateway, secretary_user, doctor):
        with pytest.raises(SchedulingPermissionError):
            gateway.book_appointment(secretary_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

    def test_inactive_doctor_not_found(self, gateway, patient_user, doctor):
        doctor.is_active = False
        doctor.save()

        with pytest.raises(SchedulingNotFoundError):
            gateway.book_appointment(patient_user, doctor.id, clinic_dt(TUESDAY, 10), now=NOW)

    def test_specialty_must_belong_to_doctor(self, gateway, patient_user, doctor, other_specialty):
        with pytest.raises(SchedulingValidationError):
            gateway.book_appointment(
                patient_user, doctor.id, clinic_dt(TUESDAY, 10), specialty_id=other_specialty.id, now=NOW
            )
