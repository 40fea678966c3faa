import logging
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.response import error_response

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto a structured error response."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(AppError):
    default_message = "Server configuration is incomplete"


class InvalidRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class AccessDeniedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class WebhookSignatureError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid webhook signature"


class MissingSignatureError(WebhookSignatureError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Missing signature"


class StripeError(AppError):
    default_message = "Payment processor request failed"


# ── Analysis workflow ─────────────────────────


class AnalysisError(AppError):
    """Any failure of a single analysis run. Carries the analysis id it belongs to."""
    default_message = "Analysis failed"

    def __init__(self, message: Optional[str] = None, analysis_id: Optional[str] = None):
        super().__init__(message)
        self.analysis_id = analysis_id


class AnalysisNotFoundError(AnalysisError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Analysis not found"


class AnalysisStateError(AnalysisError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Analysis is not pending"


class AnalysisQuotaError(AnalysisError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Monthly analysis limit reached"


class StoreWriteError(AnalysisError):
    default_message = "Failed to write analysis state"


class BrowserLaunchError(AnalysisError):
    default_message = "Failed to launch browser"


class NavigationError(AnalysisError):
    default_message = "Failed to load page"


class NavigationTimeoutError(NavigationError):
    default_message = "Timed out loading page"


class ExtractionError(AnalysisError):
    default_message = "Failed to extract page data"


def add_exception_handlers(app):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        extra = {}
        analysis_id = getattr(exc, "analysis_id", None)
        if analysis_id:
            extra["analysisId"] = analysis_id
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return error_response(exc.message, exc.status_code, **extra)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail) or "Error", exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            "Validation failed",
            status.HTTP_400_BAD_REQUEST,
            details=exc.errors(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.exception(f"Unhandled exception: {exc}")
        return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
