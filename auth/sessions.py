"""
auth/sessions.py -- Builds the response payload for a freshly authenticated user.

A Session bundles the signed token, a sanitized profile and the cookie
directive. The HTTP layer applies the cookie with response.set_cookie(**...)
and serializes the rest; this module never touches a response object.

Cookie policy:
  name "jwt", httpOnly (JS cannot read it), samesite=lax, Secure only when
  the service runs with a production configuration. Lifetime is configured
  in days, independently of the token TTL.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import timedelta
from email.utils import format_datetime

from auth.models import CookieDirective, Session, User, UserProfile
from auth.tokens import TokenIssuer
from core.clock import Clock, utc_now

COOKIE_NAME = "jwt"


def to_profile(user: User) -> UserProfile:
    """Strip password hash, reset material and bookkeeping from a record."""
    return UserProfile(id=user.id, name=user.name, email=user.email, role=user.role)


def cookie_kwargs(directive: CookieDirective) -> dict:
    return asdict(directive)


class SessionBuilder:
    def __init__(
        self,
        issuer: TokenIssuer,
        cookie_expire_days: int,
        secure_cookies: bool,
        clock: Clock = utc_now,
    ) -> None:
        self._issuer = issuer
        self.cookie_expire_days = cookie_expire_days
        self.secure_cookies = secure_cookies
        self._clock = clock

    def build(self, user: User) -> Session:
        token = self._issuer.issue(user.id)
        lifetime = timedelta(days=self.cookie_expire_days)
        cookie = CookieDirective(
            key=COOKIE_NAME,
            value=token,
            max_age=int(lifetime.total_seconds()),
            expires=format_datetime(self._clock() + lifetime, usegmt=True),
            httponly=True,
            secure=self.secure_cookies,
        )
        return Session(
            token=token,
            expires_in=self._issuer.ttl_seconds,
            profile=to_profile(user),
            cookie=cookie,
        )
