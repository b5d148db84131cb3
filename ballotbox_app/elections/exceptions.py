from __future__ import annotations


class ElectionError(Exception):
    """Base for every business-rule failure raised by the election core.

    Subclasses carry the HTTP status the API layer responds with; the message
    is shown to the caller verbatim, so it must not leak internals.
    """

    status_code = 500
    error = "ElectionError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ElectionError):
    status_code = 400
    error = "ValidationError"

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        # Per-field details, e.g. [{"field": "title", "message": "..."}].
        self.errors = list(errors or [])


class AuthenticationError(ElectionError):
    status_code = 401
    error = "AuthenticationError"


class AuthorizationError(ElectionError):
    status_code = 403
    error = "AuthorizationError"


class NotFoundError(ElectionError):
    status_code = 404
    error = "NotFoundError"


class ConflictError(ElectionError):
    status_code = 409
    error = "ConflictError"
