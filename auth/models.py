"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store, the token
issuer and the services do the work; these types only own the shape.

Layer rule: no imports from api/ or mail/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of roles. Endpoint allow-lists are built from these values."""

    user = "user"
    guide = "guide"
    lead_guide = "lead-guide"
    admin = "admin"


@dataclass
class User:
    """A credential record.

    hashed_password is always a bcrypt digest; plaintext never reaches this
    type. reset_token_hash / reset_token_expires_at are both None or both set
    (armed by a forgot-password request, cleared on consumption, delivery
    failure or any password rotation).

    password_changed_at stays None until the first rotation. Session tokens
    issued before it are rejected by the authentication gate.

    Timestamps are fixed-width UTC ISO 8601 strings (see core.clock.to_iso).
    """

    name: str
    email: str  # lower-cased, unique
    hashed_password: str
    role: Role = Role.user
    id: int | None = None
    password_changed_at: str | None = None
    reset_token_hash: str | None = None  # SHA-256 hex of the emailed token
    reset_token_expires_at: str | None = None
    is_active: bool = True
    created_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The authenticated principal attached to a request."""

    id: int
    role: Role


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""

    subject_id: int
    issued_at: float  # fractional seconds since epoch, as signed into the token


@dataclass(frozen=True)
class UserProfile:
    """A User with every secret field stripped. Safe to return to clients."""

    id: int
    name: str
    email: str
    role: Role


@dataclass(frozen=True)
class CookieDirective:
    """Everything the HTTP layer needs to call response.set_cookie()."""

    key: str
    value: str
    max_age: int
    expires: str  # RFC 1123 date, mirrors max_age for old clients
    httponly: bool = True
    secure: bool = False
    samesite: str = "lax"


@dataclass(frozen=True)
class Session:
    """Result of a successful signup, login, password reset or password change."""

    token: str
    expires_in: int
    profile: UserProfile
    cookie: CookieDirective
