"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer-token authentication.

get_bearer_token() pulls the raw token out of "Authorization: Bearer <token>".
get_current_claims() validates it through AuthService and raises HTTP 401 on
any failure. The claims it returns are always verified; routes never decode
tokens themselves.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import TokenError
from auth.models import Claims
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService built by the application lifespan."""
    return request.app.state.auth_service


def get_bearer_token(request: Request) -> str:
    """Return the bearer token from the Authorization header, or raise HTTP 401."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Bearer token required."},
        )
    return token.strip()


def get_current_claims(request: Request) -> Claims:
    """Require a valid bearer token. Raises HTTP 401 if it is missing or invalid.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: Claims = Depends(get_current_claims)): ...
    """
    token = get_bearer_token(request)
    try:
        return get_auth_service(request).validate_token(token)
    except TokenError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_token", "message": "Invalid token."},
        ) from exc
