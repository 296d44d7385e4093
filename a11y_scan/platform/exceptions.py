import logging
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from a11y_scan.platform.response import api_response, error_response

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """Base for every failure a scan can surface to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Failed to perform accessibility check."

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidInputError(ScanError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid URL format"


class LaunchError(ScanError):
    default_message = "Could not start the browser session."


class NavigationError(ScanError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Could not load the URL. Please ensure it's publicly accessible and correct."


class NavigationConnectionError(NavigationError):
    """DNS or TCP level failure reaching the target."""


class NavigationTimeout(NavigationError):
    """The target did not reach DOM-ready before its deadline."""


class ScanTimeoutError(ScanError):
    default_message = "Accessibility check timed out."


class AnalysisTimeout(ScanError):
    default_message = "Accessibility analysis timed out."


class AnalysisError(ScanError):
    default_message = "Accessibility analysis failed."


class EnrichmentFailure(ScanError):
    default_message = "AI explanation unavailable"


class TeardownError(ScanError):
    default_message = "Browser session teardown failed."


def add_exception_handlers(app):
    @app.exception_handler(ScanError)
    async def scan_exception_handler(request: Request, exc: ScanError):
        return error_response(
            message=exc.message, status_code=exc.status_code, details=exc.details
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
