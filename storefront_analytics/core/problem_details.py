"""RFC 7807 Problem Details for HTTP APIs.

Every error leaving the API is rendered as ``application/problem+json`` so
dashboards and export jobs can branch on ``code`` instead of parsing messages.

Reference: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from storefront_analytics.core.logging import request_id_ctx

# Base URI for error types (relative URIs for portability)
ERROR_TYPE_BASE = "/errors"

ERROR_TYPES = {
    "VALIDATION_ERROR": f"{ERROR_TYPE_BASE}/validation",
    "BAD_REQUEST": f"{ERROR_TYPE_BASE}/bad-request",
    "DATA_INTEGRITY_ERROR": f"{ERROR_TYPE_BASE}/data-integrity",
    "ASSEMBLY_ERROR": f"{ERROR_TYPE_BASE}/assembly",
    "INTERNAL_ERROR": f"{ERROR_TYPE_BASE}/internal",
}


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details body.

    Attributes:
        type: URI identifying the error type.
        title: Short human-readable summary of the problem.
        status: HTTP status code.
        detail: Explanation specific to this occurrence.
        instance: URI reference for this occurrence.
        errors: Field-level validation errors (extension for 422).
        code: Machine-readable error code.
        request_id: Request correlation ID.
        details: Structured context attached by the raising code.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(default="about:blank", description="URI reference identifying the problem type.")
    title: str = Field(..., description="Short, human-readable summary of the problem type.")
    status: int = Field(..., ge=400, le=599, description="HTTP status code for this occurrence.")
    detail: str | None = Field(None, description="Explanation specific to this occurrence.")
    instance: str | None = Field(None, description="URI reference for this occurrence.")
    errors: list[dict[str, Any]] | None = Field(None, description="Field-level validation errors.")
    code: str | None = Field(None, description="Machine-readable error code.")
    request_id: str | None = Field(None, description="Request correlation ID.")
    details: dict[str, Any] | None = Field(None, description="Structured error context.")


class ProblemDetailResponse(JSONResponse):
    """JSON response with RFC 7807 content type."""

    media_type = "application/problem+json"


def create_problem_detail(
    status: int,
    title: str,
    detail: str | None = None,
    error_code: str = "INTERNAL_ERROR",
    errors: list[dict[str, Any]] | None = None,
    details: dict[str, Any] | None = None,
) -> ProblemDetail:
    """Create a ProblemDetail instance with proper type URI and instance.

    Args:
        status: HTTP status code.
        title: Short problem summary.
        detail: Detailed explanation (optional).
        error_code: Internal error code for type URI lookup.
        errors: Field-level validation errors (optional).
        details: Structured context (optional).

    Returns:
        Configured ProblemDetail instance.
    """
    request_id = request_id_ctx.get()

    return ProblemDetail(
        type=ERROR_TYPES.get(error_code, f"{ERROR_TYPE_BASE}/{error_code.lower()}"),
        title=title,
        status=status,
        detail=detail,
        instance=f"/requests/{request_id}" if request_id else None,
        errors=errors,
        code=error_code,
        request_id=request_id,
        details=details or None,
    )


def problem_response(
    status: int,
    title: str,
    detail: str | None = None,
    error_code: str = "INTERNAL_ERROR",
    errors: list[dict[str, Any]] | None = None,
    details: dict[str, Any] | None = None,
) -> ProblemDetailResponse:
    """Create a ProblemDetailResponse with proper content type."""
    problem = create_problem_detail(
        status=status,
        title=title,
        detail=detail,
        error_code=error_code,
        errors=errors,
        details=details,
    )

    return ProblemDetailResponse(
        status_code=status,
        content=problem.model_dump(mode="json", exclude_none=True),
    )
