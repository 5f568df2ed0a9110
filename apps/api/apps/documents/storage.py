"""
MinIO storage for medical report files.

Files are streamed to the reports bucket by the API (not by presigned PUT) so
that a report row is only created once its bytes are stored and checksummed.
Downloads use short-lived presigned GET URLs.
"""
import hashlib
import uuid
from datetime import timedelta

from django.conf import settings
from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError

from apps.core.exceptions import SchedulingDependencyError, SchedulingValidationError
from apps.core.observability import get_sanitized_logger

logger = get_sanitized_logger(__name__)


# File validation constants
ALLOWED_REPORT_EXTENSIONS = ['pdf', 'jpg', 'jpeg', 'png', 'doc', 'docx', 'txt']
ALLOWED_REPORT_MIMES = [
    'application/pdf',
    'image/jpeg',
    'image/png',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'text/plain',
]


def get_minio_client():
    """Get configured MinIO client instance."""
    return Minio(
        settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_USE_SSL
    )


def generate_object_key(prefix: str, filename: str) -> str:
    """
    Generate unique object key for MinIO storage.

    Args:
        prefix: Folder prefix (e.g., 'reports/<appointment_id>')
        filename: Original filename

    Returns:
        Unique object key string
    """
    unique_id = uuid.uuid4().hex[:12]
    safe_filename = "".join(c for c in filename if c.isalnum() or c in "._-")
    return f"{prefix}/{unique_id}_{safe_filename}"


def validate_report_file(file) -> None:
    """
    Check size, extension and MIME type of an uploaded report file.

    Raises:
        SchedulingValidationError: the file is rejected
    """
    max_size = settings.REPORT_MAX_SIZE_BYTES
    if file.size > max_size:
        raise SchedulingValidationError(
            f'File size exceeds maximum of {max_size // (1024 * 1024)}MB',
            details={'field': 'file', 'size_bytes': file.size},
        )

    filename = (file.name or '').lower()
    file_extension = filename.rsplit('.', 1)[-1] if '.' in filename else ''
    if file_extension not in ALLOWED_REPORT_EXTENSIONS:
        raise SchedulingValidationError(
            f'Invalid file type. Allowed: {", ".join(ALLOWED_REPORT_EXTENSIONS)}',
            details={'field': 'file'},
        )

    if file.content_type not in ALLOWED_REPORT_MIMES:
        raise SchedulingValidationError(
            f'Invalid MIME type. Allowed: {", ".join(ALLOWED_REPORT_MIMES)}',
            details={'field': 'file'},
        )


def store_report_file(file, appointment_id) -> dict:
    """
    Upload ``file`` to the reports bucket.

    Returns:
        Binary metadata for ReportDocument (storage_bucket, object_key,
        original_filename, content_type, size_bytes, sha256)

    Raises:
        SchedulingDependencyError: MinIO rejected or could not be reached
    """
    bucket = settings.MINIO_REPORTS_BUCKET
    object_key = generate_object_key(f'reports/{appointment_id}', file.name)

    file.seek(0)
    sha256_hash = hashlib.sha256(file.read()).hexdigest()
    file.seek(0)

    client = get_minio_client()
    try:
        client.put_object(
            bucket_name=bucket,
            object_name=object_key,
            data=file,
            length=file.size,
            content_type=file.content_type,
        )
    except (S3Error, HTTPError) as e:
        raise SchedulingDependencyError(
            'Report storage unavailable',
            details={'reason': str(e)},
        ) from e

    return {
        'storage_bucket': bucket,
        'object_key': object_key,
        'original_filename': file.name,
        'content_type': file.content_type,
        'size_bytes': file.size,
        'sha256': sha256_hash,
    }


def delete_report_file(bucket, object_key) -> bool:
    """
    Remove a stored report object whose row was never written.

    Returns False when MinIO refused; the object is then left for manual
    cleanup and the failure is logged with its key.
    """
    client = get_minio_client()
    try:
        client.remove_object(bucket_name=bucket, object_name=object_key)
    except (S3Error, HTTPError) as e:
        logger.error(
            'Failed to remove orphaned report object',
            extra={
                'event': 'report_object_cleanup_failed',
                'bucket': bucket,
                'object_key': object_key,
                'error': str(e),
            }
        )
        return False
    return True

def generate_report_download_url(report, expires: timedelta = timedelta(hours=1)) -> str:
    """
    Presigned GET URL for a stored report file.

    Raises:
        SchedulingDependencyError: URL could not be generated
    """
    client = get_minio_client()
    try:
        return client.presigned_get_object(
            bucket_name=report.storage_bucket or settings.MINIO_REPORTS_BUCKET,
            object_name=report.object_key,
            expires=expires,
        )
    except (S3Error, HTTPError) as e:
        raise SchedulingDependencyError(
            'Failed to generate report download URL',
            details={'reason': str(e)},
        ) from e
