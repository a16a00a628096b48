"""
api/routes/v1/auth.py -- Account registration, login and token REST endpoints.

Routes:
  POST /api/v1/auth/register         -- create an account; returns a bearer token
  POST /api/v1/auth/login            -- email-or-employee-id login; returns a bearer token
  GET  /api/v1/auth/profile          -- profile of the token's account (requires auth)
  GET  /api/v1/auth/check-email      -- does an account use this email? (public)
  POST /api/v1/auth/forgot-password  -- password-reset eligibility lookup (public)
  POST /api/v1/auth/validate-token   -- verify a bearer token and echo its claims

Every handler is a plain def: AuthService blocks on bcrypt and the database,
so FastAPI runs these in its thread pool instead of on the event loop.

Security:
  [H2] register and login are rate-limited per IP (limits from Settings).
  [C1] login failures always answer "Invalid credentials" with 401, whether
       the identifier or the password was wrong.
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    AuthResponse,
    EmailCheckResponse,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    TokenInfoResponse,
)
from auth.dependencies import get_auth_service, get_bearer_token, get_current_claims
from auth.errors import InvalidTokenError, SubjectMismatchError
from auth.models import Claims, Outcome, OutcomeKind
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/register:         public, rate limited
# - POST /api/v1/auth/login:            public, rate limited
# - GET  /api/v1/auth/profile:          requires auth (get_current_claims)
# - GET  /api/v1/auth/check-email:      public
# - POST /api/v1/auth/forgot-password:  public
# - POST /api/v1/auth/validate-token:   token supplied in the Authorization header
router = APIRouter()

_STATUS_BY_KIND = {
    OutcomeKind.SUCCESS: 200,
    OutcomeKind.PASSWORD_MISMATCH: 400,
    OutcomeKind.DUPLICATE_EMAIL: 409,
    OutcomeKind.DUPLICATE_EMPLOYEE_ID: 409,
    OutcomeKind.INVALID_CREDENTIALS: 401,
    OutcomeKind.HASHING_FAILED: 500,
    OutcomeKind.STORAGE_FAULT: 500,
    OutcomeKind.TOKEN_FAILURE: 500,
}

RESET_MESSAGE = "Password reset instructions will be sent to your registered mobile number"
NO_ACCOUNT_MESSAGE = "No account found with this mobile number or email"


def _outcome_response(outcome: Outcome, expires_in: int, success_status: int) -> JSONResponse:
    """Map an Outcome to a JSON response. The fault detail is never sent to clients."""
    if outcome.success:
        body = AuthResponse.from_outcome(outcome, expires_in).model_dump()
        status = success_status
    else:
        body = ErrorResponse(error=ErrorDetail(code=outcome.kind.value, message=outcome.message)).model_dump()
        status = _STATUS_BY_KIND[outcome.kind]
    resp = JSONResponse(status_code=status, content=body)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(register_limit)  # [H2]
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Register a new account and return a bearer token for it.

    400 when the passwords differ, 409 when the email or employee id is
    already taken (including a lost race with a concurrent registration).
    """
    service: AuthService = get_auth_service(request)
    outcome = service.register(body.to_input())
    return _outcome_response(outcome, service.token_expire_seconds, 201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(login_limit)  # [H2]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with a company email or employee id plus password."""
    service: AuthService = get_auth_service(request)
    outcome = service.login(body.to_input())
    return _outcome_response(outcome, service.token_expire_seconds, 200)


# ---------------------------------------------------------------------------
# Account lookups
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=ProfileResponse)
def profile(request: Request, claims: Claims = Depends(get_current_claims)) -> ProfileResponse:
    """Return the profile of the account the bearer token was issued to."""
    account = get_auth_service(request).get_profile(claims.account_id)
    if account is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Account not found."},
        )
    return ProfileResponse.from_account(account)


@router.get("/auth/check-email", response_model=EmailCheckResponse)
def check_email(request: Request, email: str) -> EmailCheckResponse:
    """Report whether an account is registered with this email."""
    return EmailCheckResponse(email=email, exists=get_auth_service(request).email_exists(email))


@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(request: Request, identifier: str) -> MessageResponse:
    """Check whether a mobile number or email belongs to an account.

    Only eligibility is decided here; no reset message is actually sent.
    """
    if not get_auth_service(request).reset_eligible(identifier.strip()):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": NO_ACCOUNT_MESSAGE},
        )
    return MessageResponse(message=RESET_MESSAGE)


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------


@router.post("/auth/validate-token", response_model=TokenInfoResponse)
def validate_token(
    request: Request,
    expected_subject: Optional[str] = None,
    token: str = Depends(get_bearer_token),
) -> TokenInfoResponse:
    """Verify the bearer token and echo its claims.

    401 for a malformed, tampered or expired token. 403 when expected_subject
    is supplied and the token belongs to someone else.
    """
    try:
        claims = get_auth_service(request).validate_token(token, expected_subject)
    except SubjectMismatchError as exc:
        raise HTTPException(
            status_code=403,
            detail={"code": "subject_mismatch", "message": "Token was issued to a different principal."},
        ) from exc
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_token", "message": "Invalid token."},
        ) from exc
    return TokenInfoResponse(
        subject=claims.subject,
        account_id=claims.account_id,
        full_name=claims.full_name,
        issued_at=claims.issued_at,
        expires_at=claims.expires_at,
    )
