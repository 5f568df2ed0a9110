"""
Clinical serializers for appointments and availability queries.
"""
from rest_framework import serializers

from apps.clinical.models import (
    Appointment,
    AppointmentStatusChoices,
    NotificationChannelChoices,
    NotificationKindChoices,
    ReportStateChoices,
)


class AppointmentListSerializer(serializers.ModelSerializer):
    """
    Lightweight serializer for appointment lists.

    has_report / report_archived come from the queryset annotations when
    present (see annotate_report_state) and from the model otherwise.
    """
    patient_id = serializers.UUIDField(read_only=True)
    doctor_id = serializers.UUIDField(read_only=True)
    specialty_id = serializers.UUIDField(read_only=True)
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True)
    specialty_name = serializers.CharField(source='specialty.name', read_only=True, default=None)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    has_report = serializers.SerializerMethodField()
    report_archived = serializers.SerializerMethodField()

    class Meta:
        model = Appointment
        fields = [
            'id',
            'patient_id',
            'patient_name',
            'doctor_id',
            'doctor_name',
            'specialty_id',
            'specialty_name',
            'scheduled_at',
            'status',
            'status_display',
            'price_cents',
            'has_report',
            'report_archived',
            'created_at',
        ]
        read_only_fields = fields

    def get_has_report(self, obj):
        annotated = getattr(obj, 'has_active_report', None)
        if annotated is not None:
            return annotated
        return obj.has_report

    def get_report_archived(self, obj):
        if hasattr(obj, 'latest_report_archived_at'):
            return obj.latest_report_archived_at is not None
        return obj.report_state == ReportStateChoices.ARCHIVED


class AppointmentDetailSerializer(AppointmentListSerializer):
    """Full read-only representation of one appointment."""
    report_state = serializers.SerializerMethodField()

    class Meta(AppointmentListSerializer.Meta):
        fields = AppointmentListSerializer.Meta.fields + [
            'note',
            'rejection_note',
            'report_state',
            'updated_at',
        ]
        read_only_fields = fields

    def get_report_state(self, obj):
        return obj.report_state


class AppointmentBookSerializer(serializers.Serializer):
    """
    Booking request (POST /api/v1/clinical/appointments/).

    Input format only; calendar and conflict rules are checked by the gateway.
    """
    doctor_id = serializers.UUIDField()
    specialty_id = serializers.UUIDField(required=False, allow_null=True)
    scheduled_at = serializers.DateTimeField()
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)


class AppointmentTransitionSerializer(serializers.Serializer):
    """
    Status change request (POST /api/v1/clinical/appointments/{id}/transition/).
    """
    status = serializers.ChoiceField(choices=AppointmentStatusChoices.choices)
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)
    notify_channel = serializers.ChoiceField(
        choices=NotificationChannelChoices.choices,
        required=False,
        allow_null=True,
    )


class AppointmentNotifySerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=NotificationChannelChoices.choices)
    kind = serializers.ChoiceField(choices=NotificationKindChoices.choices)


class AvailabilityQuerySerializer(serializers.Serializer):
    """
    Either ?date=YYYY-MM-DD or ?date_from=...&date_to=...
    """
    date = serializers.DateField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        if attrs.get('date'):
            attrs['date_from'] = attrs['date_to'] = attrs['date']
            return attrs

        if not attrs.get('date_from') or not attrs.get('date_to'):
            raise serializers.ValidationError(
                'Provide either date or both date_from and date_to'
            )
        return attrs


class AppointmentFilterSerializer(serializers.Serializer):
    """
    Typed list filters of GET /api/v1/clinical/appointments/.

    status, has_report and report_archived are parsed by the view.
    """
    doctor_id = serializers.UUIDField(required=False)
    patient_id = serializers.UUIDField(required=False)
    scheduled_from = serializers.DateField(required=False)
    scheduled_to = serializers.DateField(required=False)


class AppointmentStatsQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(required=False, min_value=1, max_value=366)
