"""
Exception classes and error handling for the HTTP Request Robot.

Every failure the robot reports carries a human-readable ``detail`` that is
also what ends up in the ``error`` return value sent back to the workflow.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""
    success: bool = False
    error: str
    error_code: str | None = None


class RobotError(Exception):
    """Base exception for robot errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str | None = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(detail)


class ValidationError(RobotError):
    """Raised when the invocation or its request configuration is malformed."""

    def __init__(self, detail: str):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_ERROR"
        )


class TransportError(RobotError):
    """Raised when the outbound call fails below the HTTP layer."""

    def __init__(self, detail: str, kind: str = "network_error"):
        self.kind = kind
        super().__init__(
            detail=detail,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="TIMEOUT" if kind == "timeout" else "NETWORK_ERROR"
        )


class CallbackError(RobotError):
    """Raised when delivering results back to the workflow engine fails."""

    def __init__(self, detail: str):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="CALLBACK_ERROR"
        )


class CredentialError(RobotError):
    """Raised when no usable OAuth credential can be obtained for a tenant."""

    def __init__(self, detail: str):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="CREDENTIAL_ERROR"
        )


class QuotaExceededError(RobotError):
    """Raised when a tenant has used up its monthly request quota."""

    def __init__(self, usage: int, quota: int, plan: str):
        self.usage = usage
        self.quota = quota
        self.plan = plan
        super().__init__(
            detail=f"Monthly request quota exceeded ({usage}/{quota} on plan '{plan}')",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_code="QUOTA_EXCEEDED"
        )


async def robot_exception_handler(request: Request, exc: RobotError) -> JSONResponse:
    """Handler for robot exceptions raised out of route handlers."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail, "error_code": exc.error_code}
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handler for request body validation errors."""
    errors = exc.errors()
    # Format validation errors into a readable message
    error_messages = []
    for error in errors:
        loc = " -> ".join(str(l) for l in error["loc"])
        msg = error["msg"]
        error_messages.append(f"{loc}: {msg}")

    detail = "; ".join(error_messages) if error_messages else "Validation error"

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": detail, "error_code": "VALIDATION_ERROR"}
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(RobotError, robot_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
