"""Liveness check used by the container runtime."""

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

logger = logging.getLogger(__name__)


def database_ok():
    """Run a trivial query; False when the database can't be reached."""
    try:
        connection.ensure_connection()
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
    except DatabaseError as e:
        logger.error("Database check failed: %s", e)
        return False
    return True


@require_http_methods(['GET'])
def health_check(request):
    if not database_ok():
        return JsonResponse({'status': 'unhealthy'}, status=503)
    return JsonResponse({'status': 'healthy'})
