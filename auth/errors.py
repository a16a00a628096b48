"""
auth/errors.py -- Typed failures raised inside the credential and token subsystem.

Only the token errors are meant to reach callers of the public API:
AuthService turns hashing and storage faults into a failed Outcome.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by the auth package."""


class HashingError(AuthError):
    """The bcrypt backend could not produce a digest."""


class StorageFault(AuthError):
    """Unexpected failure in the account store's backing database."""


class DuplicateKeyError(AuthError):
    """A UNIQUE constraint rejected a new account at commit time.

    field is "company_email" or "emp_id" when the backend named the violated
    constraint, None when it did not.
    """

    def __init__(self, field: str | None, message: str = "") -> None:
        self.field = field
        super().__init__(message or f"duplicate value for {field or 'a unique field'}")


class TokenError(AuthError):
    """Base class for token codec failures, including signing errors."""


class InvalidTokenError(TokenError):
    """Token is malformed, has a bad signature, lacks claims, or has expired."""


class SubjectMismatchError(TokenError):
    """Token is valid but was issued to a different subject than expected."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__("token subject does not match the expected principal")
