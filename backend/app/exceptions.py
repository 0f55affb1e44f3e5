import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = False
    message: str
    error: str
    status_code: int


class AppError(Exception):
    """Base application exception."""

    kind = "AppError"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFound(AppError):
    """Unknown report, detail or line."""

    kind = "NotFound"

    def __init__(self, message: str = "Expense report not found") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class Forbidden(AppError):
    """Actor lacks the role or ownership required for the action."""

    kind = "Forbidden"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class NotYourTurn(AppError):
    """Approval action by someone who is not the current pending approver."""

    kind = "NotYourTurn"

    def __init__(self, message: str = "It is not your turn to act on this report") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class AlreadyResolved(AppError):
    """The line or report is no longer in an actionable state."""

    kind = "AlreadyResolved"

    def __init__(self, message: str = "Another approver already acted on this step") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class InvalidTransition(AppError):
    """Requested transition is not allowed from the report's current state."""

    kind = "InvalidTransition"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class MissingJustification(AppError):
    """Paid amount differs from the requested amount without a reason."""

    kind = "MissingJustification"

    def __init__(self, message: str = "A reason is required when the paid amount differs from the total") -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class ValidationError(AppError):
    """Business-level input validation failure."""

    kind = "ValidationError"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            message=exc.message,
            error=exc.kind,
            status_code=exc.status_code,
        ).model_dump(by_alias=True),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            message=str(exc.errors()),
            error="ValidationError",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(by_alias=True),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
