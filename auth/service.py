"""
auth/service.py -- Credential use cases: signup, login, password rotation,
authentication and authorization.

AuthService is the only entry point the HTTP layer calls. It owns no state
beyond its collaborators, which are injected at construction:

    AuthService(store, mailer, AuthConfig.from_settings(settings))

Password hashing happens here, explicitly, in the three use cases that set a
password (signup, reset, change). Nothing hashes as a side effect of a save,
and profile updates cannot reach the password column.

Every failure a client should see is raised as an operational AppError from
auth.errors; anything else propagates untouched to the API's catch-all
handler.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    ExpiredTokenError,
    Forbidden,
    InvalidCredentials,
    Unauthenticated,
    ValidationError,
)
from auth.models import Identity, Role, Session, User, UserProfile
from auth.passwords import PasswordHasher
from auth.reset import PASSWORD_CHANGE_SKEW, ResetTokenService
from auth.sessions import SessionBuilder, to_profile
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.clock import Clock, from_iso, to_iso, utc_now
from core.config import Settings
from mail.sender import EmailSender

logger = logging.getLogger("trailpass.auth")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MIN_PASSWORD_LENGTH = 8
_MAX_PASSWORD_BYTES = 72  # bcrypt input limit


@dataclass(frozen=True)
class AuthConfig:
    """The slice of configuration the credential service depends on."""

    secret_key: str
    is_production: bool = False
    token_ttl_seconds: int = 90 * 24 * 3600
    cookie_expire_days: int = 90
    bcrypt_rounds: int = 12
    reset_token_ttl_seconds: int = 600

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(
            secret_key=settings.secret_key,
            is_production=settings.is_production,
            token_ttl_seconds=settings.token_expire_seconds,
            cookie_expire_days=settings.cookie_expire_days,
            bcrypt_rounds=settings.bcrypt_rounds,
            reset_token_ttl_seconds=settings.reset_token_expire_seconds,
        )


# ---------------------------------------------------------------------------
# Authorization gate
# ---------------------------------------------------------------------------


def authorize(identity: Identity, allowed_roles: Iterable[Role]) -> None:
    """Raise Forbidden unless the identity's role is in the allow-list."""
    if Role(identity.role) not in frozenset(allowed_roles):
        raise Forbidden("You do not have permission to perform this action.")


# ---------------------------------------------------------------------------
# Input checks
# ---------------------------------------------------------------------------


def _normalize_email(email: str) -> str:
    normalized = (email or "").strip().lower()
    if not _EMAIL_RE.match(normalized):
        raise ValidationError("Please provide a valid email.")
    return normalized


def _check_new_password(password: str, confirm: str | None) -> None:
    if not password or len(password) < _MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
    if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {_MAX_PASSWORD_BYTES} bytes.")
    if confirm is not None and password != confirm:
        raise ValidationError("Passwords are not the same!")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AuthService:
    def __init__(
        self,
        store: UserStore,
        mailer: EmailSender,
        config: AuthConfig,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.config = config
        self._clock = clock
        self.hasher = PasswordHasher(config.bcrypt_rounds)
        self.tokens = TokenIssuer(config.secret_key, config.token_ttl_seconds, clock)
        self.sessions = SessionBuilder(
            self.tokens,
            cookie_expire_days=config.cookie_expire_days,
            secure_cookies=config.is_production,
            clock=clock,
        )
        self.resets = ResetTokenService(
            store,
            mailer,
            self.hasher,
            ttl_seconds=config.reset_token_ttl_seconds,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Signup / login
    # ------------------------------------------------------------------

    def signup(self, name: str, email: str, password: str, password_confirm: str) -> Session:
        """Create a `user`-role credential and log it in.

        Role is never taken from the caller; promotion is an admin concern.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("User name is required.")
        if len(name) > 255:
            raise ValidationError("User name must be at most 255 characters.")
        email = _normalize_email(email)
        _check_new_password(password, password_confirm)

        user = User(
            name=name,
            email=email,
            hashed_password=self.hasher.hash(password),
            role=Role.user,
            created_at=to_iso(self._clock()),
        )
        try:
            user.id = self.store.create_user(user)
        except IntegrityError as exc:
            raise ValidationError("Email address is already registered.") from exc
        logger.info("User %d signed up", user.id)
        return self.sessions.build(user)

    def login(self, email: str, password: str) -> Session:
        """Check email/password with timing equalization.

        Unknown email, inactive account and wrong password all return the same
        error after the same amount of bcrypt work.
        """
        if not email or not password:
            raise ValidationError("Please provide email and password!")
        user = self.store.get_by_email(email.strip().lower())
        if user is None or not user.is_active:
            self.hasher.verify_dummy(password)
            raise InvalidCredentials("Incorrect email or password.")
        if not self.hasher.verify(password, user.hashed_password):
            raise InvalidCredentials("Incorrect email or password.")
        return self.sessions.build(user)

    # ------------------------------------------------------------------
    # Password rotation
    # ------------------------------------------------------------------

    def request_password_reset(self, email: str, reset_url_base: str = "") -> str:
        return self.resets.request_reset(email, reset_url_base)

    def consume_password_reset(self, token: str, new_password: str, password_confirm: str) -> Session:
        # Token validity is reported before password problems
        self.resets.find_pending(token)
        _check_new_password(new_password, password_confirm)
        user = self.resets.consume_reset(token, new_password)
        return self.sessions.build(user)

    def change_password(
        self,
        identity: Identity,
        current_password: str,
        new_password: str,
        password_confirm: str | None = None,
    ) -> Session:
        user = self.store.get_by_id(identity.id)
        if user is None or not self.hasher.verify(current_password or "", user.hashed_password):
            raise InvalidCredentials("Your current password is wrong.")
        _check_new_password(new_password, password_confirm)

        changed_at = self._clock() - PASSWORD_CHANGE_SKEW
        rotated = self.store.rotate_password(user.id, self.hasher.hash(new_password), changed_at)
        refreshed = self.store.get_by_id(user.id) if rotated else None
        if refreshed is None or not refreshed.is_active:
            # Deleted or deactivated while the new hash was computed
            raise Unauthenticated("The user belonging to this token no longer exists.")
        logger.info("User %d changed password", user.id)
        return self.sessions.build(refreshed)

    # ------------------------------------------------------------------
    # Authentication gate
    # ------------------------------------------------------------------

    def authenticate(self, raw_auth_header: str | None) -> Identity:
        """Resolve an `Authorization: Bearer <token>` header to a live identity."""
        scheme, _, token = (raw_auth_header or "").partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise Unauthenticated("You are not logged in! Please log in to get access.")
        return self.authenticate_token(token)

    def authenticate_token(self, token: str) -> Identity:
        try:
            claims = self.tokens.verify(token)
        except ExpiredTokenError:
            logger.info("Rejected expired session token")
            raise
        except Unauthenticated:
            logger.info("Rejected malformed or tampered session token")
            raise

        user = self.store.get_by_id(claims.subject_id)
        if user is None or not user.is_active:
            logger.info("Rejected token for missing or inactive user %d", claims.subject_id)
            raise Unauthenticated("The user belonging to this token no longer exists.")

        if user.password_changed_at and claims.issued_at < from_iso(user.password_changed_at).timestamp():
            logger.info("Rejected token for user %d issued before last password change", user.id)
            raise Unauthenticated("User recently changed password! Please log in again.")

        return Identity(id=user.id, role=user.role)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def me(self, identity: Identity) -> UserProfile:
        user = self.store.get_by_id(identity.id)
        if user is None:
            raise Unauthenticated("The user belonging to this token no longer exists.")
        return to_profile(user)

    def update_me(
        self,
        identity: Identity,
        *,
        name: str | None = None,
        email: str | None = None,
        password: str | None = None,
        password_confirm: str | None = None,
    ) -> UserProfile:
        """Update name and/or email. Password fields are refused outright."""
        if password is not None or password_confirm is not None:
            raise ValidationError("This route is not for password updates. Please use /update-password.")

        fields: dict = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("User name is required.")
            fields["name"] = name
        if email is not None:
            fields["email"] = _normalize_email(email)

        if fields:
            try:
                self.store.update_profile(identity.id, **fields)
            except IntegrityError as exc:
                raise ValidationError("Email address is already registered.") from exc
        return self.me(identity)

    def deactivate_me(self, identity: Identity) -> None:
        """Soft-delete: the record stays but behaves as absent everywhere."""
        self.store.set_active(identity.id, False)
        logger.info("User %d deactivated their account", identity.id)

    def list_users(self) -> list[UserProfile]:
        return [to_profile(u) for u in self.store.list_users()]
