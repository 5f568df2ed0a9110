"""
Documents models: report_document

Medical reports attached to appointments. A report is either a stored file
(object in the reports bucket, with its metadata), a free-text note, or both.
"""
import uuid
from django.db import models
from django.db.models import Q
from django.conf import settings
from django.utils import timezone

from apps.core.exceptions import SchedulingConflictError, SchedulingValidationError


class ReportDocumentStateChoices(models.TextChoices):
    """
    Per-document lifecycle:
    - present -> archived (one way)
    - present | archived -> deleted (soft, with justification)
    """
    PRESENT = 'present', 'Present'
    ARCHIVED = 'archived', 'Archived'
    DELETED = 'deleted', 'Deleted'


class ReportDocument(models.Model):
    """
    Medical report attached to an appointment.

    - appointment_id: FK -> appointment (a report never outlives it)
    - object_key, original_filename, content_type, size_bytes, sha256:
      binary metadata, all null for note-only reports
    - note: free text (required when there is no file)
    - uploaded_at, uploaded_by_user_id
    - archived_at: set once, never cleared

    Soft delete fields (all-or-nothing):
    - deleted_at, deleted_note (mandatory justification), deleted_by_user_id

    BUSINESS RULES:
    - "Active" reports are the ones with deleted_at null
    - Deleted reports stay listed for audit but never count as active
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    appointment = models.ForeignKey(
        'clinical.Appointment',
        on_delete=models.CASCADE,
        related_name='reports'
    )

    # Binary fields
    storage_bucket = models.CharField(max_length=64, blank=True, null=True)
    object_key = models.CharField(
        max_length=512,
        blank=True,
        null=True,
        help_text="MinIO object key (path) within the reports bucket"
    )
    original_filename = models.CharField(max_length=255, blank=True, null=True)
    content_type = models.CharField(max_length=128, blank=True, null=True)
    size_bytes = models.BigIntegerField(blank=True, null=True)
    sha256 = models.CharField(
        max_length=64,
        blank=True,
        null=True,
        help_text="SHA-256 hash for integrity verification"
    )

    note = models.TextField(blank=True, null=True)

    uploaded_at = models.DateTimeField(default=timezone.now)
    uploaded_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='uploaded_reports'
    )

    archived_at = models.DateTimeField(blank=True, null=True)

    # Soft delete fields
    deleted_at = models.DateTimeField(blank=True, null=True)
    deleted_note = models.TextField(blank=True, null=True)
    deleted_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='deleted_reports'
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'report_document'
        verbose_name = 'Report Document'
        verbose_name_plural = 'Report Documents'
        indexes = [
            models.Index(fields=['appointment', 'deleted_at'], name='idx_report_appt_active'),
            models.Index(fields=['uploaded_at'], name='idx_report_uploaded_at'),
            models.Index(fields=['archived_at'], name='idx_report_archived_at'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(deleted_at__isnull=True, deleted_note__isnull=True)
                    | Q(deleted_at__isnull=False, deleted_note__isnull=False)
                ),
                name='chk_report_deleted_fields_together',
            ),
            models.CheckConstraint(
                condition=Q(object_key__isnull=False) | (Q(note__isnull=False) & ~Q(note='')),
                name='chk_report_file_or_note',
            ),
        ]
        ordering = ['-uploaded_at']

    def __str__(self):
        return self.original_filename or f"Report {str(self.id)[:8]} ({self.state})"

    @property
    def has_file(self):
        return bool(self.object_key)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def is_archived(self):
        return self.archived_at is not None

    @property
    def state(self):
        if self.is_deleted:
            return ReportDocumentStateChoices.DELETED
        if self.is_archived:
            return ReportDocumentStateChoices.ARCHIVED
        return ReportDocumentStateChoices.PRESENT

    def update_note(self, note):
        """
        Replace the note, keeping the report's identity.

        Raises:
            SchedulingValidationError: report deleted or archived, or the edit
                would leave a file-less report without a note
        """
        if self.is_deleted:
            raise SchedulingValidationError('report deleted', details={'report_id': str(self.id)})
        if self.is_archived:
            raise SchedulingValidationError('report archived', details={'report_id': str(self.id)})

        cleaned = (note or '').strip() or None
        if cleaned is None and not self.has_file:
            raise SchedulingValidationError('note required', details={'field': 'note'})

        self.note = cleaned

    def archive(self, now=None):
        """
        Archive the report. One way: archiving twice is a conflict.
        """
        if self.is_deleted:
            raise SchedulingValidationError('report deleted', details={'report_id': str(self.id)})
        if self.is_archived:
            raise SchedulingConflictError('report already archived', details={'report_id': str(self.id)})

        self.archived_at = now or timezone.now()

    def soft_delete(self, user, note, now=None):
        """
        Soft-delete the report, recording who, when and why in one step.
        """
        cleaned = (note or '').strip()
        if not cleaned:
            raise SchedulingValidationError('note required', details={'field': 'note'})
        if self.is_deleted:
            raise SchedulingConflictError('report already deleted', details={'report_id': str(self.id)})

        self.deleted_at = now or timezone.now()
        self.deleted_note = cleaned
        self.deleted_by_user = user
