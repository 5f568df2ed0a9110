"""
Health check endpoints.

Provides /healthz and /readyz endpoints for monitoring.
"""
import logging
from django.http import JsonResponse
from django.views import View
from django.db import connection, DatabaseError
from django.conf import settings
from minio.error import MinioException
from urllib3.exceptions import HTTPError

logger = logging.getLogger(__name__)


class HealthzView(View):
    """
    Liveness endpoint.

    Returns 200 OK if the process is serving. Does not check dependencies.
    """

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
            'clinic_time_zone': settings.CLINIC_TIME_ZONE,
        }

        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash

        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness endpoint.

    Checks the database and the report object storage; bookings need the
    former, report uploads the latter.
    """

    def get(self, request):
        checks = {
            'database': self._check_database(),
            'report_storage': self._check_report_storage(),
        }

        all_healthy = all(checks.values())

        response_data = {
            'status': 'ready' if all_healthy else 'not_ready',
            'checks': checks,
        }

        return JsonResponse(response_data, status=200 if all_healthy else 503)

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
                return True
        except DatabaseError as e:
            logger.error(
                'Database health check failed',
                extra={'event': 'health_check_failed', 'check': 'database', 'error': str(e)}
            )
            return False

    def _check_report_storage(self):
        from apps.documents.storage import get_minio_client

        try:
            return bool(get_minio_client().bucket_exists(bucket_name=settings.MINIO_REPORTS_BUCKET))
        except (MinioException, HTTPError, ValueError) as e:
            logger.error(
                'Report storage health check failed',
                extra={'event': 'health_check_failed', 'check': 'report_storage', 'error': str(e)}
            )
            return False
