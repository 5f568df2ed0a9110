"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Users by role and authenticated API clients
- Doctors, specialties and appointments
- Past and upcoming appointments (see tests/helpers.py for calendar helpers)
"""
from datetime import timedelta

import pytest
from rest_framework.test import APIClient

from apps.authz.models import Doctor, RoleChoices, Specialty
from apps.clinical import calendar
from apps.clinical.models import Appointment, AppointmentStatusChoices
from tests.helpers import authenticated_client, clinic_dt, make_user, next_bookable_day


# ============================================================================
# Users
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def patient_user(db):
    return make_user(
        'patient@test.com',
        RoleChoices.PATIENT,
        phone='+393331234567',
        first_name='Maria',
        last_name='Rossi',
    )


@pytest.fixture
def other_patient_user(db):
    return make_user('other.patient@test.com', RoleChoices.PATIENT)


@pytest.fixture
def secretary_user(db):
    return make_user('secretary@test.com', RoleChoices.SECRETARY)


@pytest.fixture
def admin_user(db):
    return make_user('admin@test.com', RoleChoices.ADMIN, is_staff=True)


@pytest.fixture
def specialty(db):
    return Specialty.objects.create(name='Cardiologia')


@pytest.fixture
def other_specialty(db):
    return Specialty.objects.create(name='Dermatologia')


@pytest.fixture
def doctor(db, specialty):
    user = make_user('doctor@test.com', RoleChoices.DOCTOR, first_name='Luca', last_name='Bianchi')
    doctor = Doctor.objects.create(user=user, display_name='Dr. Luca Bianchi', is_active=True)
    doctor.specialties.add(specialty)
    return doctor


@pytest.fixture
def other_doctor(db, specialty):
    user = make_user('doctor2@test.com', RoleChoices.DOCTOR)
    doctor = Doctor.objects.create(user=user, display_name='Dr. Anna Verdi', is_active=True)
    doctor.specialties.add(specialty)
    return doctor


@pytest.fixture
def doctor_user(doctor):
    return doctor.user


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def patient_client(patient_user):
    return authenticated_client(patient_user)


@pytest.fixture
def other_patient_client(other_patient_user):
    return authenticated_client(other_patient_user)


@pytest.fixture
def doctor_client(doctor_user):
    return authenticated_client(doctor_user)


@pytest.fixture
def other_doctor_client(other_doctor):
    return authenticated_client(other_doctor.user)


@pytest.fixture
def secretary_client(secretary_user):
    return authenticated_client(secretary_user)


@pytest.fixture
def admin_client(admin_user):
    return authenticated_client(admin_user)


# ============================================================================
# Appointments
# ============================================================================

@pytest.fixture
def appointment_factory(db, patient_user, doctor, specialty):
    """
    Create appointments directly through the ORM (no calendar checks).

    Defaults to a requested appointment at 10:00 on the next bookable day.
    """
    def create(status=AppointmentStatusChoices.REQUESTED, scheduled_at=None, **kwargs):
        defaults = {
            'patient': patient_user,
            'doctor': doctor,
            'specialty': specialty,
            'price_cents': 13000,
        }
        defaults.update(kwargs)
        return Appointment.objects.create(
            status=status,
            scheduled_at=scheduled_at or clinic_dt(next_bookable_day(), 10),
            **defaults
        )
    return create


@pytest.fixture
def appointment(appointment_factory):
    return appointment_factory()


@pytest.fixture
def confirmed_appointment(appointment_factory):
    return appointment_factory(status=AppointmentStatusChoices.CONFIRMED)


@pytest.fixture
def past_confirmed_appointment(appointment_factory):
    """Confirmed appointment whose visit already took place (reports allowed)."""
    day = calendar.clinic_today() - timedelta(days=3)
    return appointment_factory(status=AppointmentStatusChoices.CONFIRMED, scheduled_at=clinic_dt(day, 11))
