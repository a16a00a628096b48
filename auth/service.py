"""
auth/service.py -- Registration, login and token validation workflows.

AuthService ties the hasher, store and codec together. Every register/login
call returns an Outcome tagged with an OutcomeKind; nothing it knows how to
fail at escapes as an exception. Only the typed faults of this package are
caught (HashingError, StorageFault, TokenError); a bug elsewhere still
propagates to the HTTP layer's generic 500 handler.

Enumeration resistance [C1]:
  An unknown identifier and a wrong password produce the same message and
  both cost one bcrypt verification (CredentialHasher.burn() on the unknown
  path), so neither the body nor the response time reveals which part was
  wrong.

Race handling:
  The exists_by_* checks give friendly messages for the common case. The
  store's UNIQUE constraints settle concurrent registrations; a
  DuplicateKeyError from create() becomes the same conflict outcome.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import DuplicateKeyError, HashingError, StorageFault, TokenError
from auth.models import Account, Claims, LoginInput, Outcome, OutcomeKind, RegistrationInput
from auth.passwords import CredentialHasher
from auth.store import AccountStore, normalize_email
from auth.tokens import TokenCodec

logger = logging.getLogger("tracker.auth")

MSG_REGISTERED = "User registered successfully"
MSG_LOGGED_IN = "Login successful"
MSG_PASSWORD_MISMATCH = "Password and confirm password do not match"
MSG_EMAIL_EXISTS = "Email already exists"
MSG_EMP_ID_EXISTS = "Employee ID already exists"
MSG_INVALID_CREDENTIALS = "Invalid credentials"
MSG_REGISTRATION_FAILED = "Registration failed"
MSG_LOGIN_FAILED = "Login failed"


def _fault_kind(exc: Exception) -> OutcomeKind:
    if isinstance(exc, HashingError):
        return OutcomeKind.HASHING_FAILED
    if isinstance(exc, TokenError):
        return OutcomeKind.TOKEN_FAILURE
    return OutcomeKind.STORAGE_FAULT


class AuthService:
    """Orchestrates account registration and login.

    Collaborators are injected so tests can swap any of them. The service
    keeps no state of its own and is safe to share across threads.
    """

    def __init__(self, store: AccountStore, hasher: CredentialHasher, codec: TokenCodec) -> None:
        self._store = store
        self._hasher = hasher
        self._codec = codec

    @property
    def token_expire_seconds(self) -> int:
        return self._codec.expire_seconds

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, data: RegistrationInput) -> Outcome:
        if data.password != data.confirm_password:
            return Outcome.failed(OutcomeKind.PASSWORD_MISMATCH, MSG_PASSWORD_MISMATCH)

        try:
            if self._store.exists_by_email(data.company_email):
                logger.info("Registration rejected: email already registered")
                return Outcome.failed(OutcomeKind.DUPLICATE_EMAIL, MSG_EMAIL_EXISTS)
            if self._store.exists_by_emp_id(data.emp_id):
                logger.info("Registration rejected: employee id %r already registered", data.emp_id)
                return Outcome.failed(OutcomeKind.DUPLICATE_EMPLOYEE_ID, MSG_EMP_ID_EXISTS)

            account = Account(
                full_name=data.full_name,
                department=data.department,
                emp_id=data.emp_id,
                password_hash=self._hasher.hash(data.password),
                mobile_no=data.mobile_no,
                company_email=data.company_email,
            )
            saved = self._store.create(account)
            token = self._issue_for(saved)
        except DuplicateKeyError as exc:
            # Lost the race to a concurrent registration.
            logger.info("Registration lost a uniqueness race on %s", exc.field or "a unique key")
            if exc.field == "company_email":
                return Outcome.failed(OutcomeKind.DUPLICATE_EMAIL, MSG_EMAIL_EXISTS)
            return Outcome.failed(OutcomeKind.DUPLICATE_EMPLOYEE_ID, MSG_EMP_ID_EXISTS)
        except (HashingError, StorageFault, TokenError) as exc:
            logger.warning("Registration failed for employee id %r: %s", data.emp_id, exc)
            return Outcome.failed(_fault_kind(exc), MSG_REGISTRATION_FAILED, detail=str(exc))

        logger.info("Registered account id=%s emp_id=%r", saved.id, saved.emp_id)
        return Outcome.succeeded(MSG_REGISTERED, token, saved)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, data: LoginInput) -> Outcome:
        try:
            account = self._store.find_by_identifier(data.identifier)
            if account is None:
                self._hasher.burn(data.password)
                return Outcome.failed(OutcomeKind.INVALID_CREDENTIALS, MSG_INVALID_CREDENTIALS)
            if not self._hasher.verify(data.password, account.password_hash):
                return Outcome.failed(OutcomeKind.INVALID_CREDENTIALS, MSG_INVALID_CREDENTIALS)
            token = self._issue_for(account)
        except (HashingError, StorageFault, TokenError) as exc:
            logger.warning("Login failed with an internal fault: %s", exc)
            return Outcome.failed(_fault_kind(exc), MSG_LOGIN_FAILED, detail=str(exc))

        logger.info("Login succeeded for account id=%s", account.id)
        return Outcome.succeeded(MSG_LOGGED_IN, token, account)

    # ------------------------------------------------------------------
    # Pass-throughs
    # ------------------------------------------------------------------

    def get_profile(self, account_id: int) -> Account | None:
        return self._store.find_by_id(account_id)

    def email_exists(self, email: str) -> bool:
        return self._store.exists_by_email(email)

    def find_by_mobile(self, mobile_no: str) -> Account | None:
        return self._store.find_by_mobile(mobile_no)

    def reset_eligible(self, identifier: str) -> bool:
        """Return True if identifier names an account that may request a password reset.

        The identifier is tried as a mobile number first, then as an email.
        Delivering reset instructions is not handled here.
        """
        if self._store.find_by_mobile(identifier) is not None:
            return True
        return self._store.exists_by_email(identifier)

    def validate_token(self, token: str, expected_subject: str | None = None) -> Claims:
        """Verify a bearer token. Raises InvalidTokenError / SubjectMismatchError."""
        if expected_subject is not None:
            expected_subject = normalize_email(expected_subject)
        return self._codec.parse_and_validate(token, expected_subject)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _issue_for(self, account: Account) -> str:
        claims = self._codec.new_claims(account.company_email, account.id, account.full_name)
        return self._codec.issue(claims)
