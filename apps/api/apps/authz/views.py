"""
Authz views for doctor and specialty reference data.
"""
from rest_framework import viewsets
from apps.authz.models import Doctor, Specialty
from apps.authz.serializers import DoctorSerializer, SpecialtySerializer
from apps.authz.permissions import ReferenceDataPermission


class DoctorViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Doctor roster.

    Endpoints:
    - GET /api/v1/doctors/ - List active doctors
    - GET /api/v1/doctors/{id}/ - Doctor detail

    Query parameters:
    - ?specialty_id=<uuid> - Only doctors practicing the specialty
    - ?q=search_term - Search by display_name
    - ?include_inactive=true - Include inactive doctors
    """
    permission_classes = [ReferenceDataPermission]
    serializer_class = DoctorSerializer

    def get_queryset(self):
        queryset = Doctor.objects.prefetch_related('specialties')

        include_inactive = self.request.query_params.get('include_inactive', 'false').lower() == 'true'
        if not include_inactive:
            queryset = queryset.filter(is_active=True)

        specialty_id = self.request.query_params.get('specialty_id')
        if specialty_id:
            queryset = queryset.filter(specialties__id=specialty_id)

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(display_name__icontains=q)

        return queryset.distinct().order_by('display_name')


class SpecialtyViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Specialties with indicative prices.

    Endpoints:
    - GET /api/v1/specialties/
    - GET /api/v1/specialties/{id}/
    """
    permission_classes = [ReferenceDataPermission]
    serializer_class = SpecialtySerializer
    queryset = Specialty.objects.order_by('name')
    pagination_class = None
