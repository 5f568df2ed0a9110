"""
Authz URLs - doctor roster and specialties
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import DoctorViewSet, SpecialtyViewSet

router = DefaultRouter()
router.register(r'doctors', DoctorViewSet, basename='doctor')
router.register(r'specialties', SpecialtyViewSet, basename='specialty')

urlpatterns = [
    path('', include(router.urls)),
]
