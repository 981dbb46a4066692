"""Custom exceptions and FastAPI exception handlers.

Errors raised by the aggregation engine are fatal for the snapshot being
built: nothing partial is ever returned. Handlers render them as RFC 7807
Problem Details.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from storefront_analytics.core.logging import get_logger
from storefront_analytics.core.problem_details import (
    ERROR_TYPES,
    ProblemDetailResponse,
    problem_response,
)

logger = get_logger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================


class StorefrontAnalyticsError(Exception):
    """Base exception for application errors.

    Each exception type maps to an RFC 7807 problem type URI.
    """

    error_type_uri: str = ERROR_TYPES["INTERNAL_ERROR"]

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application error.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status code.
            details: Additional error context.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    @property
    def title(self) -> str:
        """RFC 7807 title - short summary of problem type."""
        return self.code.replace("_", " ").title()


class BadRequestError(StorefrontAnalyticsError):
    """Bad request error.

    Raised when an analytics window cannot be resolved (end before start,
    a single bound given, range too long, unknown timezone).
    """

    error_type_uri: str = ERROR_TYPES["BAD_REQUEST"]

    def __init__(
        self,
        message: str = "Bad request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="BAD_REQUEST",
            status_code=400,
            details=details,
        )


class DataIntegrityError(StorefrontAnalyticsError):
    """An input row violates the record source contract.

    Negative amounts, non-positive quantities and order items pointing at an
    order that was not supplied all land here. Not retryable: it signals a bug
    in whatever produced the rows.
    """

    error_type_uri: str = ERROR_TYPES["DATA_INTEGRITY_ERROR"]

    def __init__(
        self,
        message: str = "Input records violate integrity constraints",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="DATA_INTEGRITY_ERROR",
            status_code=422,
            details=details,
        )


class AssemblyError(StorefrontAnalyticsError):
    """An aggregator produced an internally inconsistent result.

    Unreachable in correct code; aborts the whole snapshot.
    """

    error_type_uri: str = ERROR_TYPES["ASSEMBLY_ERROR"]

    def __init__(
        self,
        message: str = "Analytics snapshot failed consistency checks",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="ASSEMBLY_ERROR",
            status_code=500,
            details=details,
        )


# =============================================================================
# Exception Handlers (RFC 7807)
# =============================================================================


async def storefront_analytics_exception_handler(
    _request: Request,
    exc: StorefrontAnalyticsError,
) -> ProblemDetailResponse:
    """Handle application exceptions with RFC 7807 Problem Details.

    Args:
        _request: FastAPI request object.
        exc: The raised exception.

    Returns:
        RFC 7807 Problem Detail response.
    """
    logger.error(
        "app.error_handled",
        error=exc.message,
        error_type=type(exc).__name__,
        error_code=exc.code,
        status_code=exc.status_code,
        details=exc.details,
        exc_info=exc.status_code >= 500,
    )

    return problem_response(
        status=exc.status_code,
        title=exc.title,
        detail=exc.message,
        error_code=exc.code,
        details=exc.details,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> ProblemDetailResponse:
    """Handle Pydantic request validation errors.

    Args:
        request: FastAPI request object.
        exc: Pydantic validation error.

    Returns:
        RFC 7807 Problem Detail response with field-level errors.
    """
    field_errors: list[dict[str, str]] = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = ".".join(str(part) for part in loc if part != "body")
        field_errors.append(
            {
                "field": field_path,
                "message": str(error.get("msg", "Validation failed")),
                "type": str(error.get("type", "unknown")),
            }
        )

    logger.warning(
        "app.validation_error",
        error_count=len(field_errors),
        path=str(request.url.path),
        fields=[e["field"] for e in field_errors],
    )

    return problem_response(
        status=422,
        title="Validation Error",
        detail=f"Request validation failed with {len(field_errors)} error(s). "
        "Check the 'errors' field for details.",
        error_code="VALIDATION_ERROR",
        errors=field_errors,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> ProblemDetailResponse:
    """Handle unexpected exceptions with RFC 7807 Problem Details."""
    logger.error(
        "app.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )

    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred. Please try again later or "
        "contact support with the request_id.",
        error_code="INTERNAL_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(StorefrontAnalyticsError, storefront_analytics_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
