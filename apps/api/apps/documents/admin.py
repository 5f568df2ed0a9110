from django.contrib import admin
from .models import ReportDocument


@admin.register(ReportDocument)
class ReportDocumentAdmin(admin.ModelAdmin):
    list_display = ['appointment', 'original_filename', 'uploaded_at', 'archived_at', 'deleted_at']
    list_filter = ['archived_at', 'deleted_at', 'content_type']
    search_fields = ['original_filename', 'appointment__id']
    readonly_fields = [
        'id', 'appointment', 'storage_bucket', 'object_key', 'original_filename', 'content_type',
        'size_bytes', 'sha256', 'uploaded_at', 'uploaded_by_user', 'archived_at',
        'deleted_at', 'deleted_note', 'deleted_by_user', 'updated_at',
    ]
