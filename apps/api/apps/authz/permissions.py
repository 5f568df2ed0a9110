"""
Authz permissions and role helpers shared by every app.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices


# Roles that operate the clinic on behalf of patients
STAFF_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.SECRETARY})
CLINICAL_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.SECRETARY, RoleChoices.DOCTOR})
PORTAL_ROLES = frozenset(RoleChoices.values)


def get_user_roles(user):
    """Return the set of role names held by ``user`` (empty for anonymous users)."""
    if not user or not user.is_authenticated:
        return set()
    return set(user.user_roles.values_list('role__name', flat=True))


class HasPortalRole(permissions.BasePermission):
    """
    Authenticated user holding at least one portal role.

    Fine-grained checks (which role may run which command on which
    appointment) are enforced by the scheduling gateway.
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return bool(get_user_roles(request.user) & PORTAL_ROLES)


class ReferenceDataPermission(permissions.BasePermission):
    """
    Permission for doctor and specialty lookups.

    - Every portal role: read-only (patients need them to book)
    - Writes go through the Django admin, never through the API
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        if request.method not in permissions.SAFE_METHODS:
            return False

        return bool(get_user_roles(request.user) & PORTAL_ROLES)
