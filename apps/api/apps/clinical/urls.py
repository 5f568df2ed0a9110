"""
Clinical URLs - appointments and availability
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import AppointmentViewSet, AvailabilityPreviewView, DoctorAvailabilityView

router = DefaultRouter()
router.register(r'appointments', AppointmentViewSet, basename='appointment')

urlpatterns = [
    # Free slots of one doctor (date or date range)
    path('doctors/<uuid:doctor_id>/availability/', DoctorAvailabilityView.as_view(), name='doctor-availability'),

    # Slot grid without doctor-specific conflicts
    path('availability/', AvailabilityPreviewView.as_view(), name='availability-preview'),

    path('', include(router.urls)),
]
