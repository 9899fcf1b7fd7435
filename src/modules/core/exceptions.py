"""Error taxonomy shared by every module, plus the DRF exception handler.

Services raise subclasses of ``DomainError``; views translate them into
HTTP responses using ``http_status``.  Anything else that escapes a view
is logged and answered with a generic 500 so internals never leak.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """Base class for expected, client-reportable failures."""

    http_status: int = status.HTTP_400_BAD_REQUEST


class ValidationFailed(DomainError):
    """A required field is missing or malformed."""

    http_status = status.HTTP_400_BAD_REQUEST


class NotFound(DomainError):
    """An order, credential or invoice does not exist."""

    http_status = status.HTTP_404_NOT_FOUND


class Conflict(DomainError):
    """The request clashes with the current state of the order."""

    http_status = status.HTTP_409_CONFLICT


class AuthenticationError(DomainError):
    """A webhook signature did not match."""

    http_status = status.HTTP_401_UNAUTHORIZED


class UpstreamError(DomainError):
    """An email, SMS, chat or invoice provider call failed."""

    http_status = status.HTTP_502_BAD_GATEWAY


def error_response(exc: DomainError) -> Response:
    return Response({"detail": str(exc)}, status=exc.http_status)


def validation_error_response(exc: PydanticValidationError) -> Response:
    """400 for a DTO that rejected input the serializer let through."""
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]) or None,
            "message": err["msg"].removeprefix("Value error, "),
        }
        for err in exc.errors()
    ]
    detail = errors[0]["message"] if errors else "Invalid input."
    return Response({"detail": detail, "errors": errors}, status=status.HTTP_400_BAD_REQUEST)


def api_exception_handler(exc: Exception, context: dict[str, Any]) -> Optional[Response]:
    """DRF ``EXCEPTION_HANDLER``: domain errors, DRF errors, then generic 500."""
    if isinstance(exc, DomainError):
        return error_response(exc)
    if isinstance(exc, PydanticValidationError):
        return validation_error_response(exc)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception(
        "request.unhandled_error",
        view=type(view).__name__ if view else None,
        error_type=type(exc).__name__,
    )
    return Response(
        {"detail": "Internal server error."},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
