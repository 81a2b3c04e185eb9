"""API response patterns following Result[T,E] + HTTP semantics."""

from typing import Any, TypeVar

from beartype import beartype
from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import ErrorKind, ServiceError
from ..core.result_types import Result

T = TypeVar("T")

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_TRANSITION: 422,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.UPSTREAM_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.DELIVERY_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ErrorResponse(BaseModel):
    """Standardized error response for business logic failures."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    success: bool = Field(default=False, description="Always false for error responses")
    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(default=None, description="Machine-readable error code")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")

    @classmethod
    def from_error(cls, error: ServiceError) -> "ErrorResponse":
        return cls(
            error=error.message,
            error_code=error.code,
            details={"fields": dict(error.field_errors)} if error.field_errors else None,
        )


@beartype
def map_error_to_status(error: ServiceError) -> int:
    """Map a service error onto its HTTP status code."""
    return STATUS_BY_KIND.get(error.kind, 422)


@beartype
def handle_result(
    result: Result[T, ServiceError],
    response: Response,
    success_status: int = 200,
) -> Any:
    """Unwrap ``Ok`` with ``success_status`` or render ``Err`` as ErrorResponse."""
    if result.is_err():
        error = result.unwrap_err()
        response.status_code = map_error_to_status(error)
        return ErrorResponse.from_error(error)

    response.status_code = success_status
    return result.unwrap()


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render body/path/query validation failures in the ErrorResponse shape."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        fields.setdefault(location or "__root__", error["msg"])
    body = ErrorResponse(
        error="Request validation failed",
        error_code=ErrorKind.VALIDATION.value,
        details={"fields": fields},
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())
