"""
Clinical views: appointments and slot availability.

Views translate HTTP into gateway commands and never change state
themselves.
"""
from django.conf import settings
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.models import Doctor
from apps.authz.permissions import STAFF_ROLES, HasPortalRole, get_user_roles
from apps.core.exceptions import (
    SchedulingNotFoundError,
    SchedulingPermissionError,
    SchedulingValidationError,
)
from apps.core.observability.correlation import bind_user_context
from apps.clinical.permissions import AppointmentPermission
from apps.clinical.serializers import (
    AppointmentBookSerializer,
    AppointmentDetailSerializer,
    AppointmentFilterSerializer,
    AppointmentListSerializer,
    AppointmentNotifySerializer,
    AppointmentStatsQuerySerializer,
    AppointmentTransitionSerializer,
    AvailabilityQuerySerializer,
)
from apps.clinical.services import (
    AvailabilityService,
    SchedulingGateway,
    annotate_report_state,
    appointment_stats,
    appointments_visible_to,
)


def _parse_bool(value):
    return str(value).lower() in ('true', '1', 'yes')


def validated_query_params(serializer_class, params):
    """
    Parse query parameters with ``serializer_class``.

    Empty values count as absent. Malformed values raise
    SchedulingValidationError so they render like every other rejected command.
    """
    serializer = serializer_class(data={key: value for key, value in params.items() if value})
    if not serializer.is_valid():
        raise SchedulingValidationError('Invalid query parameters', details=serializer.errors)
    return serializer.validated_data


class CorrelatedViewMixin:
    """Bind the DRF-authenticated user to the logging context."""

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        bind_user_context(request.user)


class AppointmentViewSet(CorrelatedViewMixin,
                         mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         viewsets.GenericViewSet):
    """
    ViewSet for Appointment endpoints.

    Endpoints:
    - GET /api/v1/clinical/appointments/
    - POST /api/v1/clinical/appointments/ (Patient books)
    - GET /api/v1/clinical/appointments/{id}/
    - DELETE /api/v1/clinical/appointments/{id}/ (Secretary/Admin, no active reports)
    - POST /api/v1/clinical/appointments/{id}/transition/
    - POST /api/v1/clinical/appointments/{id}/notify/
    - POST /api/v1/clinical/appointments/{id}/archive-report/
    - GET /api/v1/clinical/appointments/stats/ (Secretary/Admin)
    """
    permission_classes = [AppointmentPermission]

    def get_gateway(self):
        return SchedulingGateway(request=self.request)

    def get_queryset(self):
        """
        Appointments visible to the user, filtered by query parameters.

        Filters:
        - status: one status or a comma-separated list
        - doctor_id, patient_id
        - scheduled_from / scheduled_to: inclusive dates (clinic time)
        - has_report: true|false
        - report_archived: true|false (latest active report archived)
        """
        queryset = annotate_report_state(appointments_visible_to(self.request.user))
        params = self.request.query_params
        filters = validated_query_params(AppointmentFilterSerializer, params)

        status_filter = params.get('status')
        if status_filter:
            statuses = [s.strip().lower() for s in status_filter.split(',') if s.strip()]
            queryset = queryset.filter(status__in=statuses)

        if 'doctor_id' in filters:
            queryset = queryset.filter(doctor_id=filters['doctor_id'])

        if 'patient_id' in filters:
            queryset = queryset.filter(patient_id=filters['patient_id'])

        if 'scheduled_from' in filters:
            queryset = queryset.filter(scheduled_at__date__gte=filters['scheduled_from'])

        if 'scheduled_to' in filters:
            queryset = queryset.filter(scheduled_at__date__lte=filters['scheduled_to'])

        has_report = params.get('has_report')
        if has_report is not None:
            queryset = queryset.filter(has_active_report=_parse_bool(has_report))

        report_archived = params.get('report_archived')
        if report_archived is not None:
            queryset = queryset.filter(
                has_active_report=True,
                latest_report_archived_at__isnull=not _parse_bool(report_archived),
            )

        return queryset.order_by('-scheduled_at')

    def get_serializer_class(self):
        if self.action == 'list':
            return AppointmentListSerializer
        return AppointmentDetailSerializer

    def create(self, request, *args, **kwargs):
        """
        POST /api/v1/clinical/appointments/

        Request body:
        {
            "doctor_id": "<uuid>",
            "specialty_id": "<uuid>",              # optional
            "scheduled_at": "2025-03-04T10:00:00+01:00",
            "note": "..."                         # optional
        }
        """
        serializer = AppointmentBookSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        appointment = self.get_gateway().book_appointment(
            request.user,
            doctor_id=data['doctor_id'],
            scheduled_at=data['scheduled_at'],
            specialty_id=data.get('specialty_id'),
            note=data.get('note'),
        )

        return Response(
            AppointmentDetailSerializer(appointment).data,
            status=status.HTTP_201_CREATED
        )

    def destroy(self, request, *args, **kwargs):
        """
        DELETE /api/v1/clinical/appointments/{id}/

        Hard delete; refused while the appointment has active reports.
        """
        self.get_gateway().delete_appointment(request.user, kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='transition')
    def transition_status(self, request, pk=None):
        """
        POST /api/v1/clinical/appointments/{id}/transition/

        Request body:
        {
            "status": "confirmed|rejected|cancelled|completed",
            "note": "...",                # required for rejected
            "notify_channel": "email|sms"  # optional: cancellation notice or reminder
        }

        Allowed transitions:
        - requested -> confirmed | rejected (Doctor, Secretary)
        - confirmed -> cancelled (Doctor, Secretary)
        - confirmed -> completed (Secretary, after the visit started)
        - confirmed -> confirmed (no change; sends a reminder with notify_channel)
        """
        serializer = AppointmentTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        appointment = self.get_gateway().transition_appointment(
            request.user,
            pk,
            data['status'],
            note=data.get('note'),
            notify_channel=data.get('notify_channel'),
        )

        return Response(AppointmentDetailSerializer(appointment).data)

    @action(detail=True, methods=['post'], url_path='notify')
    def notify(self, request, pk=None):
        """
        POST /api/v1/clinical/appointments/{id}/notify/

        Request body: {"channel": "email|sms", "kind": "reminder|cancellation"}

        Returns 202 with the acknowledgement; delivery is asynchronous.
        """
        serializer = AppointmentNotifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        ack = self.get_gateway().notify_appointment(
            request.user,
            pk,
            serializer.validated_data['channel'],
            serializer.validated_data['kind'],
        )
        return Response(ack, status=status.HTTP_202_ACCEPTED)

    @action(detail=True, methods=['post'], url_path='archive-report')
    def archive_report(self, request, pk=None):
        """
        POST /api/v1/clinical/appointments/{id}/archive-report/

        Archives every present report of the appointment.
        Returns {"appointment_id": "<uuid>", "archived_reports": <count>}.
        """
        result = self.get_gateway().archive_appointment_reports(request.user, pk)
        return Response(result)

    @action(detail=False, methods=['get'], url_path='stats')
    def stats(self, request):
        """
        GET /api/v1/clinical/appointments/stats/?days=30

        Secretary/Admin only. Appointments created in the last ``days`` days
        (clinic time, today included), counted by status.
        """
        if not get_user_roles(request.user) & STAFF_ROLES:
            raise SchedulingPermissionError(
                'Role not allowed to view appointment statistics',
                details={'allowed_roles': sorted(STAFF_ROLES)},
            )

        query = validated_query_params(AppointmentStatsQuerySerializer, request.query_params)
        return Response(appointment_stats(query.get('days', settings.APPOINTMENT_STATS_WINDOW_DAYS)))


class DoctorAvailabilityView(CorrelatedViewMixin, APIView):
    """
    GET /api/v1/clinical/doctors/{doctor_id}/availability/?date=YYYY-MM-DD
    GET /api/v1/clinical/doctors/{doctor_id}/availability/?date_from=...&date_to=...

    Free one-hour slots of a doctor. Closed days are returned with
    is_bookable=false and no slots.
    """
    permission_classes = [HasPortalRole]

    def get(self, request, doctor_id):
        query = validated_query_params(AvailabilityQuerySerializer, request.query_params)

        if not Doctor.objects.filter(pk=doctor_id, is_active=True).exists():
            raise SchedulingNotFoundError('Doctor not found', details={'doctor_id': str(doctor_id)})

        return Response(AvailabilityService.calculate_availability(
            doctor_id,
            query['date_from'],
            query['date_to'],
        ))


class AvailabilityPreviewView(CorrelatedViewMixin, APIView):
    """
    GET /api/v1/clinical/availability/?date=YYYY-MM-DD

    Slot grid of a day without any doctor-specific conflict filtering.
    """
    permission_classes = [HasPortalRole]

    def get(self, request):
        query = validated_query_params(AvailabilityQuerySerializer, request.query_params)

        return Response(AvailabilityService.calculate_availability(
            None,
            query['date_from'],
            query['date_to'],
        ))

