from django.contrib import admin
from .models import Appointment, ClinicalAuditLog


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    """Status is read-only here; transitions go through the API gateway."""
    list_display = ['scheduled_at', 'doctor', 'patient', 'specialty', 'status', 'price_cents', 'created_at']
    list_filter = ['status', 'doctor', 'specialty']
    search_fields = ['patient__email', 'patient__last_name', 'doctor__display_name']
    readonly_fields = ['id', 'status', 'rejection_note', 'price_cents', 'created_by_user', 'created_at', 'updated_at']
    autocomplete_fields = ['patient']
    date_hierarchy = 'scheduled_at'


@admin.register(ClinicalAuditLog)
class ClinicalAuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'action', 'entity_type', 'entity_id', 'actor_user']
    list_filter = ['action', 'entity_type', 'created_at']
    search_fields = ['actor_user__email', 'entity_id']
    readonly_fields = ['id', 'created_at', 'actor_user', 'action', 'entity_type', 'entity_id', 'appointment', 'metadata']

    def has_add_permission(self, request):
        return False
