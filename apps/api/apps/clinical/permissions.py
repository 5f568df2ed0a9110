"""
Clinical permissions for appointments and reports.

These are coarse, per-endpoint gates. Which appointment a doctor may touch
and which transitions a role may perform is decided by the SchedulingGateway.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices
from apps.authz.permissions import CLINICAL_ROLES, PORTAL_ROLES, STAFF_ROLES, get_user_roles


class AppointmentPermission(permissions.BasePermission):
    """
    - Patient: list/retrieve own appointments, book
    - Doctor: list/retrieve own appointments, transitions, notifications,
      report archival
    - Secretary/Admin: everything above on every appointment, plus delete
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        user_roles = get_user_roles(request.user)
        if not user_roles & PORTAL_ROLES:
            return False

        if request.method in permissions.SAFE_METHODS:
            return True

        action = getattr(view, 'action', None)
        if action == 'create':
            return RoleChoices.PATIENT in user_roles
        if action == 'destroy':
            return bool(user_roles & STAFF_ROLES)

        return bool(user_roles & CLINICAL_ROLES)


class ReportPermission(permissions.BasePermission):
    """
    - Patient: read reports of their own appointments
    - Doctor/Secretary/Admin: read and write
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        user_roles = get_user_roles(request.user)

        if request.method in permissions.SAFE_METHODS:
            return bool(user_roles & PORTAL_ROLES)

        return bool(user_roles & CLINICAL_ROLES)
