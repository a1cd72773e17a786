"""
Gateway Exceptions
──────────────────────────────────────────────────────────────────────────
Error types raised by the gateway and the plain-text error surface every
failed request ends up on.
"""

import json
import logging
import traceback
from typing import Any, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error! "


class GatewayError(Exception):
    """Base class for gateway failures."""

    status_code: int = 500


class ConfigurationError(GatewayError):
    """A setting required by a component is missing or unusable."""


class TLSContextError(GatewayError):
    """The TLS key / certificate chain could not be loaded."""


class IntrospectionError(GatewayError):
    """The target schema could not be reflected."""


class AuthenticationError(GatewayError):
    """The bearer token failed verification."""

    status_code = 401


def error_detail(exc: BaseException, status_code: int, development: bool) -> Dict[str, Any]:
    """Describe ``exc`` for the response body; redacted outside development."""
    if not development:
        return {}
    return {
        "type": type(exc).__name__,
        "status": status_code,
        "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
    }


def render_error(exc: BaseException, message: str, status_code: int, development: bool) -> PlainTextResponse:
    """Build the response for any error forwarded to the terminal handler."""
    detail = error_detail(exc, status_code, development)
    body = f"{ERROR_PREFIX}{message} {json.dumps(detail)}"
    return PlainTextResponse(body, status_code=status_code)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Terminal handler for failures no exception handler claimed."""

    def __init__(self, app, development: bool = False):
        super().__init__(app)
        self.development = development

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            status_code = getattr(exc, "status_code", 500)
            if not isinstance(status_code, int):
                status_code = 500
            logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
            return render_error(exc, str(exc) or type(exc).__name__, status_code, self.development)
