"""
Helpers shared by the test modules.
"""
from datetime import datetime, time, timedelta

from rest_framework.test import APIClient

from apps.authz.models import Role, User, UserRole
from apps.clinical import calendar


def clinic_dt(day, hour, minute=0):
    """Aware datetime in the clinic time zone."""
    return calendar.get_clinic_timezone().localize(datetime.combine(day, time(hour, minute)))


def next_bookable_day(start=None, min_days_ahead=2):
    """First bookable day at least ``min_days_ahead`` days after ``start``."""
    day = (start or calendar.clinic_today()) + timedelta(days=min_days_ahead)
    while not calendar.is_bookable_day(day):
        day += timedelta(days=1)
    return day


def make_user(email, *roles, phone=None, **extra):
    user = User.objects.create_user(
        email=email,
        password='testpass123',
        phone=phone,
        is_active=True,
        **extra
    )
    for role_name in roles:
        role, _ = Role.objects.get_or_create(name=role_name)
        UserRole.objects.create(user=user, role=role)
    return user


def authenticated_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client
