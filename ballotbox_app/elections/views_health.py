from __future__ import annotations

import logging

from django.db import DatabaseError
from django.http import HttpResponse
from django.views.decorators.http import require_GET

from elections.models import Election

logger = logging.getLogger(__name__)


@require_GET
def healthz(request) -> HttpResponse:
    return HttpResponse("ok", content_type="text/plain")


@require_GET
def readyz(request) -> HttpResponse:
    """Ready once the election tables answer a query."""

    try:
        Election.objects.only("pk").exists()
    except DatabaseError:
        logger.warning("Readiness check failed: election store unavailable")
        return HttpResponse("db unavailable", status=503, content_type="text/plain")

    return HttpResponse("ok", content_type="text/plain")
