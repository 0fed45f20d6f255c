from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    MethodNotAllowed,
    NotAuthenticated,
    NotFound,
    ParseError,
    PermissionDenied,
    Throttled,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "An unexpected error occurred."
PROTECTED_MESSAGE = "This record is referenced by other records and cannot be deleted."

# Stable codes the front end switches on; anything else falls back to DRF's default_code.
ERROR_CODES: tuple[tuple[type[APIException], str], ...] = (
    (ValidationError, "validation_error"),
    (NotAuthenticated, "not_authenticated"),
    (AuthenticationFailed, "authentication_failed"),
    (PermissionDenied, "permission_denied"),
    (NotFound, "not_found"),
    (MethodNotAllowed, "method_not_allowed"),
    (ParseError, "parse_error"),
    (Throttled, "throttled"),
)


def build_error_envelope(*, code: str, message: str, errors: Any, status_code: int) -> dict[str, Any]:
    return {"code": code, "message": message, "errors": errors, "status": status_code}


def error_response(
    *,
    code: str,
    message: str,
    errors: Any = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> Response:
    return Response(
        build_error_envelope(code=code, message=message, errors=errors, status_code=status_code),
        status=status_code,
    )


def raise_violations(violations: Sequence[Mapping[str, str]], key: str = "items") -> None:
    """Reject a request with the violations reported by a billing validator."""
    if violations:
        raise ValidationError({key: [item["message"] for item in violations]})


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response:
    """Wrap every API failure in the ``{code, message, errors, status}`` envelope.

    Deleting a product, customer or invoice that other rows still point at is a
    conflict (409), and Django model validation errors raised from lookups such as
    a malformed UUID filter are reported as ordinary validation failures.
    """
    if isinstance(exc, ProtectedError):
        return error_response(code="protected", message=PROTECTED_MESSAGE, status_code=status.HTTP_409_CONFLICT)
    if isinstance(exc, DjangoValidationError):
        exc = ValidationError(exc.messages)

    response = drf_exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception("Unhandled API exception in %s", type(view).__name__ if view else "unknown")
        return error_response(
            code="internal_server_error",
            message=SERVER_ERROR_MESSAGE,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    response.data = build_error_envelope(
        code=_error_code(exc),
        message=_error_message(exc, response.data),
        errors=_field_errors(response.data),
        status_code=response.status_code,
    )
    return response


def _error_code(exc: Exception) -> str:
    for exception_type, code in ERROR_CODES:
        if isinstance(exc, exception_type):
            return code
    return str(getattr(exc, "default_code", "api_error"))


def _error_message(exc: Exception, data: Any) -> str:
    if isinstance(exc, ValidationError):
        return "Validation failed."
    detail = data.get("detail") if isinstance(data, Mapping) else data if isinstance(data, str) else None
    if detail:
        return str(detail)
    return str(getattr(exc, "detail", "Request failed."))


def _field_errors(data: Any) -> Any:
    if isinstance(data, Mapping):
        return None if set(data) == {"detail"} else data
    if isinstance(data, Sequence) and not isinstance(data, str):
        return data
    return None
