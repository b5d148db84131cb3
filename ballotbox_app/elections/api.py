from __future__ import annotations

import json
import logging
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec

from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from elections.exceptions import AuthenticationError, ElectionError, ValidationError

logger = logging.getLogger(__name__)

P = ParamSpec("P")


def success(data: object = None, message: str = "Success", *, status: int = 200) -> JsonResponse:
    body: dict[str, object] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return JsonResponse(body, status=status, encoder=DjangoJSONEncoder)


def failure(
    message: str,
    *,
    error: str,
    status: int,
    errors: list[dict[str, str]] | None = None,
) -> JsonResponse:
    body: dict[str, object] = {"success": False, "error": error, "message": message}
    if errors:
        body["errors"] = errors
    return JsonResponse(body, status=status)


def parse_json_body(request: HttpRequest) -> dict[str, object]:
    raw = request.body.decode("utf-8") if request.body else "{}"
    try:
        data = json.loads(raw or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def api_view(view_func: Callable[P, JsonResponse]) -> Callable[P, JsonResponse]:
    """Wrap a JSON endpoint: require a principal and map core errors.

    Business-rule errors become the standard envelope with their status
    code. Storage failures are logged and returned as a 500; they are never
    retried here.
    """

    @csrf_exempt
    @wraps(view_func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> JsonResponse:
        request = args[0]
        try:
            if not isinstance(request, HttpRequest):
                raise AuthenticationError("Authentication required")
            principal_error = getattr(request, "principal_error", None)
            if principal_error is not None:
                raise principal_error
            if getattr(request, "principal", None) is None:
                raise AuthenticationError("No token provided")
            return view_func(*args, **kwargs)
        except ElectionError as exc:
            errors = exc.errors if isinstance(exc, ValidationError) else None
            return failure(exc.message, error=exc.error, status=exc.status_code, errors=errors)
        except DatabaseError:
            logger.exception("Storage failure in %s", getattr(view_func, "__name__", "view"))
            return failure("Internal server error", error="InternalServerError", status=500)

    return wrapper


def method_not_allowed(allowed: list[str]) -> JsonResponse:
    response = failure("Method not allowed", error="MethodNotAllowed", status=405)
    response["Allow"] = ", ".join(allowed)
    return response
