"""
auth/tokens.py -- Session JWTs and password-reset token material.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only `sub` (user id as a string,
       jose rejects non-string subjects), `jti`, `iat` and `exp`. `jti` is
       random, so two sessions minted in the same instant still differ.
       `iat` and `exp` are fractional seconds from the injected clock, and
       exp is checked against that same clock rather than wall time. Role is
       NOT in the token; the authentication gate reloads the live record on
       every request so role changes and deactivation take effect immediately.

       verify() raises ExpiredTokenError for a good signature past its exp and
       InvalidTokenError for everything else. Both are Unauthenticated (401);
       the split exists for diagnostics only.

  Reset tokens: secrets.token_hex(32) gives 256 bits of entropy. We store
       SHA-256(token). A fast hash is enough here because the input is
       uniformly random; bcrypt's slowness only matters for low-entropy
       secrets such as passwords. The hash is deterministic, so the store can
       look the credential up by it.

Layer rule: no imports from api/ or mail/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import secrets

from jose import JWTError, jwt

from auth.errors import ExpiredTokenError, InvalidTokenError
from auth.models import TokenClaims
from core.clock import Clock, utc_now

_ALGORITHM = "HS256"


class TokenIssuer:
    """Signs and verifies stateless, time-bound session tokens.

    Usage:
        issuer = TokenIssuer(secret_key, ttl_seconds=3600)
        token = issuer.issue(42)
        issuer.verify(token).subject_id  # 42
    """

    def __init__(self, secret_key: str, ttl_seconds: int, clock: Clock = utc_now) -> None:
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, subject_id: int) -> str:
        issued_at = self._clock().timestamp()
        payload = {
            "sub": str(subject_id),
            "jti": secrets.token_urlsafe(16),
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidTokenError("Invalid token. Please log in again.") from exc

        try:
            subject_id = int(payload["sub"])
            issued_at = float(payload["iat"])
            expires_at = float(payload["exp"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError("Invalid token. Please log in again.") from exc

        if expires_at <= self._clock().timestamp():
            raise ExpiredTokenError("Your token has expired. Please log in again.")
        return TokenClaims(subject_id=subject_id, issued_at=issued_at)


# ---------------------------------------------------------------------------
# Reset token material
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a new 64-hex-char (256-bit) password reset token."""
    return secrets.token_hex(32)


def hash_reset_token(raw_token: str) -> str:
    """Return SHA-256(raw_token) as hex. Only this value is ever stored."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()
