"""
Integration tests for Appointment API endpoints.

Tests booking, visibility by role, filtering, status transitions,
notifications, report archival and hard delete.
"""
from datetime import timedelta
from unittest import mock

import pytest
from django.utils import timezone
from rest_framework import status

from apps.clinical.models import Appointment, AppointmentStatusChoices
from apps.documents.models import ReportDocument
from tests.helpers import clinic_dt, next_bookable_day

ENDPOINT = '/api/v1/clinical/appointments/'


@pytest.mark.django_db
class TestAppointmentBooking:
    """POST /api/v1/clinical/appointments/"""

    def test_patient_books(self, patient_client, doctor, specialty):
        day = next_bookable_day()
        payload = {
            'doctor_id': str(doctor.id),
            'specialty_id': str(specialty.id),
            'scheduled_at': clinic_dt(day, 11).isoformat(),
            'note': 'First visit',
        }

        response = patient_client.post(ENDPOINT, payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == 'requested'
        assert response.data['doctor_id'] == str(doctor.id)
        assert response.data['specialty_name'] == 'Cardiologia'
        assert response.data['price_cents'] == 13000
        assert response.data['has_report'] is False
        assert response.data['report_state'] == 'none'

    def test_double_booking_409(self, patient_client, other_patient_client, doctor):
        payload = {
            'doctor_id': str(doctor.id),
            'scheduled_at': clinic_dt(next_bookable_day(), 11).isoformat(),
        }
        assert patient_client.post(ENDPOINT, payload, format='json').status_code == status.HTTP_201_CREATED

        response = other_patient_client.post(ENDPOINT, payload, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error_type'] == 'conflict'
        assert response.data['error'] == 'slot already booked'

    def test_off_grid_400(self, patient_client, doctor):
        payload = {
            'doctor_id': str(doctor.id),
            'scheduled_at': clinic_dt(next_bookable_day(), 11, 30).isoformat(),
        }

        response = patient_client.post(ENDPOINT, payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'slot not bookable'

    def test_secretary_cannot_book(self, secretary_client, doctor):
        payload = {
            'doctor_id': str(doctor.id),
            'scheduled_at': clinic_dt(next_bookable_day(), 11).isoformat(),
        }

        response = secretary_client.post(ENDPOINT, payload, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_fields_400(self, patient_client):
        response = patient_client.post(ENDPOINT, {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'doctor_id' in response.data


@pytest.mark.django_db
class TestAppointmentVisibility:
    """GET /api/v1/clinical/appointments/"""

    def test_patient_sees_only_own(self, patient_client, other_patient_user, appointment_factory):
        own = appointment_factory()
        appointment_factory(patient=other_patient_user, scheduled_at=own.scheduled_at + timedelta(hours=1))

        response = patient_client.get(ENDPOINT)

        assert response.status_code == status.HTTP_200_OK
        assert [row['id'] for row in response.data['results']] == [str(own.id)]

    def test_doctor_sees_only_assigned(self, doctor_client, other_doctor, appointment_factory):
        own = appointment_factory()
        appointment_factory(doctor=other_doctor)

        response = doctor_client.get(ENDPOINT)

        assert [row['id'] for row in response.data['results']] == [str(own.id)]

    def test_secretary_sees_all(self, secretary_client, other_doctor, appointment_factory):
        appointment_factory()
        appointment_factory(doctor=other_doctor)

        response = secretary_client.get(ENDPOINT)

        assert response.data['count'] == 2

    def test_patient_cannot_retrieve_others(self, other_patient_client, appointment):
        response = other_patient_client.get(f'{ENDPOINT}{appointment.id}/')

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestAppointmentFilters:

    def test_filter_status_list(self, secretary_client, appointment_factory):
        base = clinic_dt(next_bookable_day(), 9)
        appointment_factory(status=AppointmentStatusChoices.REQUESTED, scheduled_at=base)
        appointment_factory(status=AppointmentStatusChoices.CONFIRMED, scheduled_at=base + timedelta(hours=1))
        appointment_factory(status=AppointmentStatusChoices.CANCELLED, scheduled_at=base + timedelta(hours=2))

        response = secretary_client.get(ENDPOINT, {'status': 'requested,confirmed'})

        assert sorted(row['status'] for row in response.data['results']) == ['confirmed', 'requested']

    def test_filter_by_doctor(self, secretary_client, doctor, other_doctor, appointment_factory):
        appointment_factory()
        appointment_factory(doctor=other_doctor)

        response = secretary_client.get(ENDPOINT, {'doctor_id': str(other_doctor.id)})

        assert response.data['count'] == 1
        assert response.data['results'][0]['doctor_id'] == str(other_doctor.id)

    def test_filter_scheduled_range(self, secretary_client, appointment_factory):
        day = next_bookable_day()
        later_day = next_bookable_day(start=day, min_days_ahead=7)
        appointment_factory(scheduled_at=clinic_dt(day, 10))
        appointment_factory(scheduled_at=clinic_dt(later_day, 10))

        response = secretary_client.get(ENDPOINT, {
            'scheduled_from': day.isoformat(),
            'scheduled_to': day.isoformat(),
        })

        assert response.data['count'] == 1

    @pytest.mark.parametrize('params', [
        {'doctor_id': 'not-a-uuid'},
        {'patient_id': '42'},
        {'scheduled_from': 'yesterday'},
        {'scheduled_to': '2025-02-30'},
    ])
    def test_malformed_filter_400(self, secretary_client, appointment, params):
        response = secretary_client.get(ENDPOINT, params)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_type'] == 'validation_error'
        assert set(response.data['details']) == set(params)

    def test_empty_filter_ignored(self, secretary_client, appointment):
        response = secretary_client.get(ENDPOINT, {'doctor_id': '', 'scheduled_from': ''})

        assert response.data['count'] == 1

    def test_filter_report_state(self, secretary_client, appointment_factory):
        past = timezone.now() - timedelta(days=2)
        without_report = appointment_factory(status=AppointmentStatusChoices.CONFIRMED, scheduled_at=past)
        with_report = appointment_factory(
            status=AppointmentStatusChoices.CONFIRMED, scheduled_at=past + timedelta(hours=1)
        )
        archived = appointment_factory(
            status=AppointmentStatusChoices.COMPLETED, scheduled_at=past + timedelta(hours=2)
        )
        ReportDocument.objects.create(appointment=with_report, note='Findings')
        ReportDocument.objects.create(appointment=archived, note='Findings', archived_at=timezone.now())

        has_report = secretary_client.get(ENDPOINT, {'has_report': 'true'})
        no_report = secretary_client.get(ENDPOINT, {'has_report': 'false'})
        is_archived = secretary_client.get(ENDPOINT, {'report_archived': 'true'})
        not_archived = secretary_client.get(ENDPOINT, {'report_archived': 'false'})

        assert {row['id'] for row in has_report.data['results']} == {str(with_report.id), str(archived.id)}
        assert [row['id'] for row in no_report.data['results']] == [str(without_report.id)]
        assert [row['id'] for row in is_archived.data['results']] == [str(archived.id)]
        assert [row['id'] for row in not_archived.data['results']] == [str(with_report.id)]

    def test_deleted_report_does_not_count(self, secretary_client, secretary_user, past_confirmed_appointment):
        ReportDocument.objects.create(
            appointment=past_confirmed_appointment,
            note='Wrong file',
            deleted_at=timezone.now(),
            deleted_note='Uploaded by mistake',
            deleted_by_user=secretary_user,
        )

        response = secretary_client.get(f'{ENDPOINT}{past_confirmed_appointment.id}/')

        assert response.data['has_report'] is False
        assert response.data['report_state'] == 'none'


@pytest.mark.django_db
class TestAppointmentTransitionsApi:
    """POST /api/v1/clinical/appointments/{id}/transition/"""

    def test_doctor_confirms(self, doctor_client, appointment):
        response = doctor_client.post(
            f'{ENDPOINT}{appointment.id}/transition/', {'status': 'confirmed'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'confirmed'

    def test_reject_without_note_400(self, secretary_client, appointment):
        response = secretary_client.post(
            f'{ENDPOINT}{appointment.id}/transition/', {'status': 'rejected'}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'note required'

    def test_reject_note_visible_to_patient(self, secretary_client, patient_client, appointment):
        secretary_client.post(
            f'{ENDPOINT}{appointment.id}/transition/',
            {'status': 'rejected', 'note': 'Please book with another doctor'},
            format='json',
        )

        response = patient_client.get(f'{ENDPOINT}{appointment.id}/')

        assert response.data['status'] == 'rejected'
        assert response.data['rejection_note'] == 'Please book with another doctor'

    def test_illegal_transition_400(self, secretary_client, appointment):
        response = secretary_client.post(
            f'{ENDPOINT}{appointment.id}/transition/', {'status': 'cancelled'}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details'] == {'from_status': 'requested', 'to_status': 'cancelled'}

    def test_patient_cannot_transition(self, patient_client, appointment):
        response = patient_client.post(
            f'{ENDPOINT}{appointment.id}/transition/', {'status': 'confirmed'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_other_doctor_forbidden(self, other_doctor_client, appointment):
        response = other_doctor_client.post(
            f'{ENDPOINT}{appointment.id}/transition/', {'status': 'confirmed'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['error_type'] == 'forbidden'

    def test_cancel_with_notification(self, doctor_client, confirmed_appointment, django_capture_on_commit_callbacks):
        with mock.patch('apps.clinical.notifications.send_appointment_notification.delay') as delay:
            with django_capture_on_commit_callbacks(execute=True):
                response = doctor_client.post(
                    f'{ENDPOINT}{confirmed_appointment.id}/transition/',
                    {'status': 'cancelled', 'notify_channel': 'email'},
                    format='json',
                )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'cancelled'
        delay.assert_called_once_with(str(confirmed_appointment.id), 'email', 'cancellation')

    def test_unknown_appointment_404(self, secretary_client):
        response = secretary_client.post(
            f'{ENDPOINT}00000000-0000-0000-0000-000000000000/transition/',
            {'status': 'confirmed'},
            format='json',
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestNotifyAndArchiveApi:

    def test_notify_returns_202(self, secretary_client, confirmed_appointment):
        with mock.patch('apps.clinical.notifications.send_appointment_notification.delay'):
            response = secretary_client.post(
                f'{ENDPOINT}{confirmed_appointment.id}/notify/',
                {'channel': 'sms', 'kind': 'reminder'},
                format='json',
            )

        assert response.status_code == status.HTTP_202_ACCEPTED
        assert response.data['status'] == 'queued'
        assert response.data['kind'] == 'reminder'

    def test_archive_report_archives_all_present(self, doctor_client, past_confirmed_appointment):
        ReportDocument.objects.create(appointment=past_confirmed_appointment, note='First')
        ReportDocument.objects.create(appointment=past_confirmed_appointment, note='Second')

        response = doctor_client.post(f'{ENDPOINT}{past_confirmed_appointment.id}/archive-report/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['archived_reports'] == 2
        assert not past_confirmed_appointment.active_reports().filter(archived_at__isnull=True).exists()

    def test_archive_report_nothing_to_archive_409(self, doctor_client, past_confirmed_appointment):
        response = doctor_client.post(f'{ENDPOINT}{past_confirmed_appointment.id}/archive-report/')

        assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.django_db
class TestAppointmentDeleteApi:

    def test_secretary_deletes(self, secretary_client, appointment):
        response = secretary_client.delete(f'{ENDPOINT}{appointment.id}/')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Appointment.objects.filter(id=appointment.id).exists()

    def test_delete_with_active_report_400(self, secretary_client, past_confirmed_appointment):
        ReportDocument.objects.create(appointment=past_confirmed_appointment, note='Findings')

        response = secretary_client.delete(f'{ENDPOINT}{past_confirmed_appointment.id}/')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details'] == {'active_reports': 1}

    def test_doctor_cannot_delete(self, doctor_client, appointment):
        response = doctor_client.delete(f'{ENDPOINT}{appointment.id}/')

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestAppointmentStatsApi:
    """GET /api/v1/clinical/appointments/stats/"""

    STATS = f'{ENDPOINT}stats/'

    @pytest.fixture
    def booked(self, appointment_factory):
        base = clinic_dt(next_bookable_day(), 9)
        statuses = [
            AppointmentStatusChoices.REQUESTED,
            AppointmentStatusChoices.REQUESTED,
            AppointmentStatusChoices.CONFIRMED,
            AppointmentStatusChoices.REJECTED,
            AppointmentStatusChoices.CANCELLED,
        ]
        appointments = [
            appointment_factory(status=value, scheduled_at=base + timedelta(hours=offset))
            for offset, value in enumerate(statuses)
        ]
        old = appointment_factory(
            status=AppointmentStatusChoices.CONFIRMED, scheduled_at=base + timedelta(hours=len(statuses))
        )
        Appointment.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=40))
        return appointments

    def test_default_window_counts_by_status(self, secretary_client, booked):
        response = secretary_client.get(self.STATS)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['window_days'] == 30
        assert response.data['since'] == (timezone.localdate() - timedelta(days=29)).isoformat()
        assert response.data['total'] == 5
        assert response.data['requested'] == 2
        assert response.data['confirmed'] == 1
        assert response.data['rejected'] == 1
        assert response.data['cancelled'] == 1
        assert response.data['completed'] == 0

    def test_wider_window_includes_older_bookings(self, admin_client, booked):
        response = admin_client.get(self.STATS, {'days': 60})

        assert response.data['total'] == 6
        assert response.data['confirmed'] == 2

    def test_window_follows_settings(self, secretary_client, settings, booked):
        settings.APPOINTMENT_STATS_WINDOW_DAYS = 90

        response = secretary_client.get(self.STATS)

        assert response.data['window_days'] == 90
        assert response.data['total'] == 6

    @pytest.mark.parametrize('days', ['0', '-3', 'month'])
    def test_invalid_window_400(self, secretary_client, days):
        response = secretary_client.get(self.STATS, {'days': days})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_type'] == 'validation_error'

    def test_doctor_forbidden(self, doctor_client, booked):
        response = doctor_client.get(self.STATS)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['error_type'] == 'forbidden'

    def test_patient_forbidden(self, patient_client):
        response = patient_client.get(self.STATS)

        assert response.status_code == status.HTTP_403_FORBIDDEN
