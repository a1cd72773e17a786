"""
Security Configuration
──────────────────────────────────────────────────────────────────────────
Permissive CORS headers and JWT verification / signing for the gateway.
"""

from typing import Any, Dict, Mapping

import jwt
from fastapi import Request
from fastapi.security import HTTPBearer
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from pggateway.core.exceptions import AuthenticationError
from pggateway.core.pydanticConfig.settings import GatewayOptions

CORS_ALLOW_ORIGIN = "*"
CORS_ALLOW_HEADERS = "Origin, X-Requested-With, Content-Type, Accept, Authorization"

# missing or non-bearer Authorization headers mean an anonymous request
bearer_scheme = HTTPBearer(auto_error=False)


class CorsHeadersMiddleware(BaseHTTPMiddleware):
    """Allow every origin on every response, error responses included."""

    async def dispatch(self, request: Request, call_next):
        # preflight requests are answered here and never reach the routes
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)

        response.headers["Access-Control-Allow-Origin"] = CORS_ALLOW_ORIGIN
        response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS

        return response


def decode_jwt(token: str, options: GatewayOptions) -> Dict[str, Any]:
    """Verify a bearer token and return its claims."""
    if not options.jwt_secret:
        raise AuthenticationError("JWT_SECRET is not configured; bearer tokens cannot be verified")

    try:
        return jwt.decode(
            token,
            options.jwt_secret,
            algorithms=[options.jwt_algorithm],
            audience=options.jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("jwt expired")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"invalid jwt: {e}")


def sign_jwt(claims: Mapping[str, Any], options: GatewayOptions) -> str:
    """Sign the row returned by a JWT function; NULL attributes are dropped."""
    if not options.jwt_secret:
        raise AuthenticationError("JWT_SECRET is not configured; tokens cannot be signed")

    payload = {key: value for key, value in claims.items() if value is not None}
    payload.setdefault("aud", options.jwt_audience)
    return jwt.encode(payload, options.jwt_secret, algorithm=options.jwt_algorithm)
