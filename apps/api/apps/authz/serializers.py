"""
Authz serializers for Doctor and Specialty lookups.
"""
from rest_framework import serializers
from apps.authz.models import Doctor, Specialty
from apps.clinical.pricing import get_indicative_price_cents


class SpecialtySerializer(serializers.ModelSerializer):
    """
    Specialty with its indicative visit price.

    Used by patients choosing what to book (GET /api/v1/specialties/).
    """
    indicative_price_cents = serializers.SerializerMethodField()

    class Meta:
        model = Specialty
        fields = [
            'id',
            'name',
            'description',
            'indicative_price_cents',
        ]
        read_only_fields = fields

    def get_indicative_price_cents(self, obj):
        return get_indicative_price_cents(obj)


class DoctorSerializer(serializers.ModelSerializer):
    """
    Serializer for the doctor roster (GET /api/v1/doctors/).
    """
    specialties = SpecialtySerializer(many=True, read_only=True)

    class Meta:
        model = Doctor
        fields = [
            'id',
            'display_name',
            'specialties',
            'is_active',
        ]
        read_only_fields = fields
