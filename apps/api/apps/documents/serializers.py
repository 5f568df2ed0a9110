"""
Report document serializers.
"""
from rest_framework import serializers

from apps.documents.models import ReportDocument


class ReportDocumentSerializer(serializers.ModelSerializer):
    """
    Read representation of a report.

    deleted_at, deleted_note and deleted_by_user_id are null unless the report
    was soft-deleted; patients never receive deleted reports in the first place.
    """
    appointment_id = serializers.UUIDField(read_only=True)
    uploaded_by_user_id = serializers.UUIDField(read_only=True, allow_null=True)
    deleted_by_user_id = serializers.UUIDField(read_only=True, allow_null=True)
    has_file = serializers.BooleanField(read_only=True)
    state = serializers.CharField(read_only=True)

    class Meta:
        model = ReportDocument
        fields = [
            'id',
            'appointment_id',
            'state',
            'has_file',
            'original_filename',
            'content_type',
            'size_bytes',
            'sha256',
            'note',
            'uploaded_at',
            'uploaded_by_user_id',
            'archived_at',
            'deleted_at',
            'deleted_note',
            'deleted_by_user_id',
            'updated_at',
        ]
        read_only_fields = fields


class ReportUploadSerializer(serializers.Serializer):
    """
    Multipart upload (POST /api/v1/clinical/reports/).

    Both file and note are optional here; the gateway requires at least one.
    """
    appointment_id = serializers.UUIDField()
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=10000)
    file = serializers.FileField(required=False, allow_null=True, allow_empty_file=False)


class ReportNoteSerializer(serializers.Serializer):
    note = serializers.CharField(required=True, allow_blank=True, allow_null=True, max_length=10000)


class ReportDeleteSerializer(serializers.Serializer):
    """Justification is mandatory; blank values are rejected by the gateway."""
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)


class ReportFilterSerializer(serializers.Serializer):
    """Typed list filters of GET /api/v1/clinical/reports/."""
    appointment_id = serializers.UUIDField(required=False)
    uploaded_from = serializers.DateField(required=False)
    uploaded_to = serializers.DateField(required=False)
