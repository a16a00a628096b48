"""
auth/models.py -- Domain dataclasses for accounts, token claims and outcomes.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; the store, codec and service do the work. Outcome is the one
exception: it checks its own success/token invariant on construction so a
malformed result can never leave the service.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass
class Account:
    """A registered employee's credential record.

    password_hash is always a bcrypt digest, never the raw password.
    company_email is stored in canonical form (trimmed, lower-case) so the
    UNIQUE constraint on it is effectively case-insensitive.
    """

    full_name: str
    department: str
    emp_id: str  # unique, 3-20 chars
    password_hash: str
    mobile_no: str  # 10-15 chars
    company_email: str  # unique
    id: int | None = None  # assigned by the store on create()
    created_at: str | None = None  # ISO 8601, immutable once set
    updated_at: str | None = None


@dataclass(frozen=True)
class Claims:
    """Identity facts embedded inside a signed token.

    Instances handed to callers always come out of TokenCodec.parse_and_validate()
    or TokenCodec.new_claims(); there is no public path that yields Claims
    from an unverified token.
    """

    subject: str  # company email
    account_id: int
    full_name: str
    issued_at: datetime
    expires_at: datetime


@dataclass
class RegistrationInput:
    full_name: str
    department: str
    emp_id: str
    password: str
    confirm_password: str
    mobile_no: str
    company_email: str


@dataclass
class LoginInput:
    identifier: str  # company email or employee id
    password: str


class OutcomeKind(str, Enum):
    """Tag identifying why a register/login call ended the way it did."""

    SUCCESS = "success"
    PASSWORD_MISMATCH = "password_mismatch"
    DUPLICATE_EMAIL = "duplicate_email"
    DUPLICATE_EMPLOYEE_ID = "duplicate_employee_id"
    INVALID_CREDENTIALS = "invalid_credentials"
    HASHING_FAILED = "hashing_failed"
    STORAGE_FAULT = "storage_fault"
    TOKEN_FAILURE = "token_failure"


@dataclass(frozen=True)
class Outcome:
    """Uniform result of a registration or login attempt.

    A successful outcome always carries a non-empty token; a failed one never
    does. detail holds the underlying fault description for logging -- the
    HTTP layer does not echo it to clients.
    """

    kind: OutcomeKind
    message: str
    token: str | None = None
    account_id: int | None = None
    full_name: str | None = None
    emp_id: str | None = None
    company_email: str | None = None
    detail: str | None = None

    def __post_init__(self) -> None:
        if self.kind is OutcomeKind.SUCCESS and not self.token:
            raise ValueError("a successful outcome must carry a token")
        if self.kind is not OutcomeKind.SUCCESS and self.token is not None:
            raise ValueError("a failed outcome must not carry a token")

    @property
    def success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def succeeded(cls, message: str, token: str, account: Account) -> Outcome:
        return cls(
            kind=OutcomeKind.SUCCESS,
            message=message,
            token=token,
            account_id=account.id,
            full_name=account.full_name,
            emp_id=account.emp_id,
            company_email=account.company_email,
        )

    @classmethod
    def failed(cls, kind: OutcomeKind, message: str, detail: str | None = None) -> Outcome:
        return cls(kind=kind, message=message, detail=detail)
