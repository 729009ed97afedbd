"""FastAPI authentication dependencies and app-level middleware.

``require_auth`` protects endpoints with bearer-token authentication;
``optional_auth`` serves endpoints open to anonymous callers too.
Neither checks resource ownership -- handlers do that per resource with
``validators.check_ownership``.

Branches: AUTHZ-NO-TOKEN, AUTHZ-BAD-SCHEME, AUTHZ-INVALID-TOKEN, AUTHZ-OK
"""
from __future__ import annotations

import logging
import time

from fastapi import Depends, FastAPI, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth import InvalidTokenError, validate_token
from errors import Unauthenticated
from models import TokenClaims

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)


def _secret(request: Request) -> str:
    return request.app.state.settings.jwt_secret


async def require_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> TokenClaims:
    """Dependency: verify the bearer token and expose its claims.

    The claims are also attached to ``request.state.claims``.
    """
    if credentials is None:                                       # AUTHZ-NO-TOKEN, AUTHZ-BAD-SCHEME
        raise Unauthenticated("Access token required")

    try:
        claims = validate_token(credentials.credentials, _secret(request))
    except InvalidTokenError as e:                                # AUTHZ-INVALID-TOKEN
        logger.debug("Rejected bearer token: %s", e)
        raise Unauthenticated("Invalid or expired token") from e

    request.state.claims = claims                                 # AUTHZ-OK
    return claims


async def optional_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> TokenClaims | None:
    """Dependency: like ``require_auth`` but never rejects the request."""
    request.state.claims = None
    if credentials is None:
        return None
    try:
        claims = validate_token(credentials.credentials, _secret(request))
    except InvalidTokenError:
        return None
    request.state.claims = claims
    return claims


def register_middleware(app: FastAPI) -> None:
    """Attach app-level middleware."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug(
            "%s %s %s (%.3fs)",
            request.method, request.url.path, response.status_code, elapsed,
        )
        return response
