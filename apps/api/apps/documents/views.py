"""
Report document REST API endpoints.

Handles upload (multipart, streamed to MinIO), listing, note edits,
archival, soft delete and presigned downloads.
"""
from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from apps.authz.models import RoleChoices
from apps.authz.permissions import get_user_roles
from apps.clinical.permissions import ReportPermission
from apps.clinical.services import SchedulingGateway, reports_visible_to
from apps.clinical.views import CorrelatedViewMixin, _parse_bool, validated_query_params
from apps.core.exceptions import SchedulingValidationError
from apps.documents import storage
from apps.documents.serializers import (
    ReportDeleteSerializer,
    ReportDocumentSerializer,
    ReportFilterSerializer,
    ReportNoteSerializer,
    ReportUploadSerializer,
)


class ReportViewSet(CorrelatedViewMixin,
                    mixins.ListModelMixin,
                    mixins.RetrieveModelMixin,
                    viewsets.GenericViewSet):
    """
    ViewSet for medical reports.

    Endpoints:
    - GET /api/v1/clinical/reports/
    - POST /api/v1/clinical/reports/ (multipart: appointment_id, file, note)
    - GET /api/v1/clinical/reports/{id}/
    - PUT /api/v1/clinical/reports/{id}/note/
    - POST /api/v1/clinical/reports/{id}/archive/
    - POST /api/v1/clinical/reports/{id}/delete/
    - GET /api/v1/clinical/reports/{id}/download/
    """
    permission_classes = [ReportPermission]
    parser_classes = [MultiPartParser, FormParser, JSONParser]
    serializer_class = ReportDocumentSerializer

    def get_gateway(self):
        return SchedulingGateway(request=self.request)

    def get_queryset(self):
        """
        Reports visible to the user, newest first.

        Filters:
        - appointment_id
        - archived_only: true -> only archived reports
        - q: search in note and original filename
        - uploaded_from / uploaded_to: inclusive dates (clinic time)
        - include_deleted: true -> soft-deleted reports too (not for patients)
        """
        queryset = reports_visible_to(self.request.user)
        params = self.request.query_params
        filters = validated_query_params(ReportFilterSerializer, params)

        roles = get_user_roles(self.request.user)
        may_see_deleted = bool(roles - {RoleChoices.PATIENT})
        if not (may_see_deleted and _parse_bool(params.get('include_deleted', 'false'))):
            queryset = queryset.filter(deleted_at__isnull=True)

        if 'appointment_id' in filters:
            queryset = queryset.filter(appointment_id=filters['appointment_id'])

        if _parse_bool(params.get('archived_only', 'false')):
            queryset = queryset.filter(archived_at__isnull=False)

        search = params.get('q')
        if search:
            queryset = queryset.filter(
                Q(note__icontains=search) | Q(original_filename__icontains=search)
            )

        if 'uploaded_from' in filters:
            queryset = queryset.filter(uploaded_at__date__gte=filters['uploaded_from'])

        if 'uploaded_to' in filters:
            queryset = queryset.filter(uploaded_at__date__lte=filters['uploaded_to'])

        return queryset.order_by('-uploaded_at')

    def create(self, request, *args, **kwargs):
        serializer = ReportUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        report = self.get_gateway().upload_report(
            request.user,
            data['appointment_id'],
            note=data.get('note'),
            file=data.get('file'),
        )
        return Response(ReportDocumentSerializer(report).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['put'], url_path='note')
    def note(self, request, pk=None):
        serializer = ReportNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        report = self.get_gateway().update_report_note(request.user, pk, serializer.validated_data['note'])
        return Response(ReportDocumentSerializer(report).data)

    @action(detail=True, methods=['post'], url_path='archive')
    def archive(self, request, pk=None):
        report = self.get_gateway().archive_report(request.user, pk)
        return Response(ReportDocumentSerializer(report).data)

    @action(detail=True, methods=['post'], url_path='delete')
    def soft_delete(self, request, pk=None):
        """
        POST /api/v1/clinical/reports/{id}/delete/

        Request body: {"note": "reason for deletion"}
        """
        serializer = ReportDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        report = self.get_gateway().delete_report(request.user, pk, serializer.validated_data.get('note'))
        return Response(ReportDocumentSerializer(report).data)

    @action(detail=True, methods=['get'], url_path='download')
    def download(self, request, pk=None):
        """
        GET /api/v1/clinical/reports/{id}/download/

        Returns {"url": "<presigned GET>", "expires_in": 3600}.
        """
        report = self.get_object()
        if not report.has_file:
            raise SchedulingValidationError('report has no file', details={'report_id': str(report.id)})

        return Response({
            'url': storage.generate_report_download_url(report),
            'filename': report.original_filename,
            'expires_in': 3600,
        })
