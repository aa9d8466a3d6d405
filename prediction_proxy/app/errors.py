"""
Proxy error taxonomy.

Every failure the proxy can report to a caller is a ProxyError subclass
carrying the HTTP status and the generic public message. Internal detail
stays in the exception (and the logs), never in the response body.
"""

import logging

from fastapi import Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ProxyError(Exception):
    """Base class for failures rendered as {"error": message}."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str = "Internal Server Error"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.public_message)
        self.detail = detail


class ClientInputError(ProxyError):
    """Body is not valid JSON or a required field is missing or empty."""

    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Missing required parameters"


class UpstreamError(ProxyError):
    """Prediction service answered with a non-2xx status."""

    def __init__(self, upstream_status: int):
        super().__init__(f"Upstream responded with status: {upstream_status}")
        self.upstream_status = upstream_status


class TransportError(ProxyError):
    """Prediction service could not be reached."""


class UnexpectedError(ProxyError):
    """Any other fault inside the handler."""


def error_response(exc: ProxyError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.public_message},
    )


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    """
    Exception handler that logs a ProxyError and renders its JSON body.

    Client errors are logged at INFO; server-side failures at ERROR with
    whatever detail the exception carries.
    """
    log_extra = {
        "path": request.url.path,
        "method": request.method,
        "exception_type": type(exc).__name__,
    }

    if isinstance(exc, ClientInputError):
        logger.info(f"Rejected prediction request: {exc.detail}", extra=log_extra)
    elif isinstance(exc, UpstreamError):
        log_extra["upstream_status"] = exc.upstream_status
        logger.error(f"Error in prediction proxy: {exc}", extra=log_extra)
    else:
        logger.error(
            f"Error in prediction proxy: {exc}",
            extra=log_extra,
            exc_info=exc,
        )

    return error_response(exc)


async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """
    Render the router's 405 as plain text, like the explicit 405 route.

    Methods the proxy routes do not list (TRACE, custom verbs) are rejected
    by routing itself; every other HTTPException keeps FastAPI's default body.
    """
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return PlainTextResponse(
            "Method Not Allowed",
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            headers=getattr(exc, "headers", None),
        )

    return await http_exception_handler(request, exc)
