"""Maps domain and framework errors to the JSON error envelope.

Every error response has the shape ``{"error": {"code": ..., "message": ...}}``.
Internal details never leave the process; unexpected exceptions are left
to Django, which logs them and returns a 500.
"""

import logging

from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from ledger.domain.errors import DomainError, ErrorKind

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
}

_CODE_BY_EXCEPTION = {
    exceptions.ValidationError: "INVALID_INPUT",
    exceptions.ParseError: "INVALID_INPUT",
    exceptions.NotAuthenticated: "UNAUTHENTICATED",
    exceptions.AuthenticationFailed: "UNAUTHENTICATED",
    exceptions.PermissionDenied: "FORBIDDEN",
    exceptions.NotFound: "NOT_FOUND",
    Http404: "NOT_FOUND",
    exceptions.MethodNotAllowed: "METHOD_NOT_ALLOWED",
}


def error_body(code: str, message: str, fields: object | None = None) -> dict:
    body = {"code": code, "message": message}
    if fields is not None:
        body["fields"] = fields
    return {"error": body}


def domain_error_response(error: DomainError) -> Response:
    if error.kind is ErrorKind.TRANSIENT:
        logger.warning("Transient store failure surfaced to client: %s", error.message)
    return Response(
        error_body(error.code.value, error.message), status=STATUS_BY_KIND[error.kind]
    )


def exception_handler(exc: Exception, context: dict) -> Response | None:
    """REST framework EXCEPTION_HANDLER using the ledger error envelope."""
    if isinstance(exc, DomainError):
        return domain_error_response(exc)

    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    code = _CODE_BY_EXCEPTION.get(type(exc), str(getattr(exc, "default_code", "error")).upper())
    if isinstance(exc, exceptions.ValidationError):
        response.data = error_body(code, "Invalid request", fields=exc.detail)
    else:
        response.data = error_body(code, str(getattr(exc, "detail", exc)))
    return response
