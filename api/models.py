"""
API request and response models for Tracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field-level validation (required fields, lengths, email syntax) lives here,
before any call reaches AuthService. The service only enforces business rules.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from auth.models import Account, LoginInput, Outcome, RegistrationInput
from auth.passwords import MAX_PASSWORD_BYTES, password_byte_length

# Character cap for passwords. The byte cap that bcrypt imposes is checked
# separately by _check_password_bytes, since one character can be 4 bytes.
_MAX_PASSWORD = 64


def _check_password_bytes(value: str) -> str:
    if password_byte_length(value) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(min_length=2, max_length=100)
    department: str = Field(min_length=2, max_length=50)
    emp_id: str = Field(min_length=3, max_length=20)
    password: str = Field(min_length=6, max_length=_MAX_PASSWORD)
    confirm_password: str = Field(min_length=1, max_length=_MAX_PASSWORD)
    mobile_no: str = Field(min_length=10, max_length=15)
    company_email: EmailStr

    @field_validator("password", "confirm_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    def to_input(self) -> RegistrationInput:
        return RegistrationInput(
            full_name=self.full_name,
            department=self.department,
            emp_id=self.emp_id,
            password=self.password,
            confirm_password=self.confirm_password,
            mobile_no=self.mobile_no,
            company_email=str(self.company_email),
        )


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login. identifier is an email or employee id."""

    model_config = ConfigDict(str_strip_whitespace=True)

    identifier: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    def to_input(self) -> LoginInput:
        return LoginInput(identifier=self.identifier, password=self.password)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AuthResponse(BaseModel):
    """Successful register/login result."""

    model_config = ConfigDict(frozen=True)

    message: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    account_id: int
    full_name: str
    emp_id: str
    company_email: str

    @classmethod
    def from_outcome(cls, outcome: Outcome, expires_in: int) -> "AuthResponse":
        return cls(
            message=outcome.message,
            access_token=outcome.token,
            expires_in=expires_in,
            account_id=outcome.account_id,
            full_name=outcome.full_name,
            emp_id=outcome.emp_id,
            company_email=outcome.company_email,
        )


class ProfileResponse(BaseModel):
    """Response for GET /api/v1/auth/profile. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    full_name: str
    department: str
    emp_id: str
    mobile_no: str
    company_email: str
    created_at: str
    updated_at: Optional[str] = None

    @classmethod
    def from_account(cls, account: Account) -> "ProfileResponse":
        return cls(
            id=account.id,
            full_name=account.full_name,
            department=account.department,
            emp_id=account.emp_id,
            mobile_no=account.mobile_no,
            company_email=account.company_email,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class EmailCheckResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    exists: bool


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class TokenInfoResponse(BaseModel):
    """Response for POST /api/v1/auth/validate-token."""

    model_config = ConfigDict(frozen=True)

    valid: bool = True
    subject: str
    account_id: int
    full_name: str
    issued_at: datetime
    expires_at: datetime


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
