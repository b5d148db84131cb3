from __future__ import annotations

from elections.exceptions import AuthorizationError, ElectionError
from elections.principals import get_principal_provider
from elections.roster import remember_principal

_BEARER_PREFIX = "Bearer "


def _bearer_credential(request) -> str | None:
    header = str(request.META.get("HTTP_AUTHORIZATION") or "")
    if not header.startswith(_BEARER_PREFIX):
        return None
    return header[len(_BEARER_PREFIX):].strip()


class PrincipalMiddleware:
    """Attach the calling principal to ``request.principal``.

    A failed resolution is kept on ``request.principal_error`` and surfaced
    by the API views, so public endpoints (health checks) keep working with
    a bad header. Every resolved principal, deactivated ones included, is
    mirrored into the member roster.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.principal = None
        request.principal_error = None

        credential = _bearer_credential(request)
        if credential is not None:
            try:
                principal = get_principal_provider().resolve(credential)
                remember_principal(principal)
                if not principal.is_active:
                    raise AuthorizationError("Account is deactivated")
                request.principal = principal
            except ElectionError as exc:
                request.principal_error = exc

        return self.get_response(request)
