"""
auth/tokens.py -- Signed, self-contained bearer tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the account's company email as
       the subject plus account_id, full_name, iat and exp. Nothing else is
       stored server-side; a token is never mutated, only reissued.

  Config: the codec receives an immutable TokenConfig in its constructor and
       never reads process settings itself. The signing key is fixed for the
       life of the codec and safe to share across threads.

  Expiry: jose's own exp check treats now == exp as still valid and always
       uses the wall clock, so it is disabled and the codec checks
       now < exp itself against an injectable clock. A token issued at T
       with window W is valid on [T, T+W) and rejected from T+W onward.

  Encoding: every segment must be canonical base64url. The decoder ignores
       the spare low bits of a segment's last character, so without this
       check two different strings could verify as the same token.

  Validation is not optional: every accessor that returns claim data runs
       parse_and_validate() first. There is no "decode without verify" API.

Layer rule: no imports from api/. core/ is only touched by
TokenConfig.from_settings(), which callers use at startup.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.errors import InvalidTokenError, SubjectMismatchError, TokenError
from auth.models import Claims

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("tracker.auth")

_HMAC_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})
_REQUIRED_CLAIMS = ("sub", "account_id", "full_name", "iat", "exp")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenConfig:
    """Signing parameters for TokenCodec. Loaded once at startup."""

    secret_key: str
    expire_seconds: int
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.secret_key:
            raise ValueError("token secret_key must not be empty")
        if self.expire_seconds <= 0:
            raise ValueError("token expire_seconds must be positive")
        if self.algorithm not in _HMAC_ALGORITHMS:
            raise ValueError(f"unsupported token algorithm {self.algorithm!r}")

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(secret_key=settings.secret_key, expire_seconds=settings.token_expire_seconds)


class TokenCodec:
    """Issues and verifies JWTs carrying an account's identity claims.

    Usage:
        codec = TokenCodec(TokenConfig(secret_key=key, expire_seconds=86400))
        token = codec.issue(codec.new_claims("asha@co.com", 1, "Asha Rao"))
        claims = codec.parse_and_validate(token)
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = _utcnow) -> None:
        self._config = config
        self._clock = clock

    @property
    def expire_seconds(self) -> int:
        return self._config.expire_seconds

    def _now(self) -> datetime:
        # JWT timestamps are whole seconds; truncate so claims round-trip exactly.
        return self._clock().astimezone(timezone.utc).replace(microsecond=0)

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def new_claims(self, subject: str, account_id: int, full_name: str) -> Claims:
        """Build claims stamped now and expiring after the configured window."""
        issued_at = self._now()
        return Claims(
            subject=subject,
            account_id=account_id,
            full_name=full_name,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=self._config.expire_seconds),
        )

    def issue(self, claims: Claims) -> str:
        """Serialize and sign claims. Raises TokenError if signing fails."""
        if claims.expires_at <= claims.issued_at:
            raise ValueError("token expiry must be after its issue time")
        payload: dict[str, Any] = {
            "sub": claims.subject,
            "account_id": claims.account_id,
            "full_name": claims.full_name,
            "iat": int(claims.issued_at.timestamp()),
            "exp": int(claims.expires_at.timestamp()),
        }
        try:
            return jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)
        except JWTError as exc:
            raise TokenError(f"could not sign token: {exc}") from exc

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def parse_and_validate(self, token: str, expected_subject: str | None = None) -> Claims:
        """Verify signature and expiry, then return the embedded claims.

        Raises InvalidTokenError for malformed tokens, signature mismatches,
        missing or mistyped claims, and tokens at or past their expiry.
        Raises SubjectMismatchError if expected_subject is given and differs
        from the token's subject.
        """
        if not isinstance(token, str) or not token:
            raise InvalidTokenError("token is empty")
        _require_canonical_segments(token)
        try:
            payload = jwt.decode(
                token,
                self._config.secret_key,
                algorithms=[self._config.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidTokenError(f"token rejected: {exc}") from exc

        claims = _payload_to_claims(payload)
        if self._now() >= claims.expires_at:
            raise InvalidTokenError("token has expired")
        if claims.expires_at <= claims.issued_at:
            raise InvalidTokenError("token expiry precedes its issue time")

        if expected_subject is not None and expected_subject != claims.subject:
            raise SubjectMismatchError(expected_subject, claims.subject)
        return claims

    def extract_subject(self, token: str) -> str:
        return self.parse_and_validate(token).subject

    def extract_account_id(self, token: str) -> int:
        return self.parse_and_validate(token).account_id

    def extract_full_name(self, token: str) -> str:
        return self.parse_and_validate(token).full_name


def _require_canonical_segments(token: str) -> None:
    segments = token.split(".")
    if len(segments) != 3:
        raise InvalidTokenError("token must have three segments")
    for segment in segments:
        try:
            canonical = base64url_encode(base64url_decode(segment.encode("ascii"))).decode("ascii")
        except (ValueError, UnicodeError) as exc:
            raise InvalidTokenError("token segment is not valid base64url") from exc
        if canonical != segment:
            raise InvalidTokenError("token segment is not canonical base64url")


def _payload_to_claims(payload: dict[str, Any]) -> Claims:
    missing = [name for name in _REQUIRED_CLAIMS if name not in payload]
    if missing:
        raise InvalidTokenError(f"token is missing claims: {', '.join(missing)}")
    sub, account_id, full_name = payload["sub"], payload["account_id"], payload["full_name"]
    iat, exp = payload["iat"], payload["exp"]
    # bool is an int subclass; reject it explicitly.
    if not isinstance(account_id, int) or isinstance(account_id, bool):
        raise InvalidTokenError("account_id claim must be an integer")
    if not isinstance(sub, str) or not isinstance(full_name, str):
        raise InvalidTokenError("sub and full_name claims must be strings")
    if not isinstance(iat, (int, float)) or not isinstance(exp, (int, float)):
        raise InvalidTokenError("iat and exp claims must be numeric")
    try:
        issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise InvalidTokenError("iat or exp claim is out of range") from exc
    return Claims(
        subject=sub,
        account_id=account_id,
        full_name=full_name,
        issued_at=issued_at,
        expires_at=expires_at,
    )
