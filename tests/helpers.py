"""
tests/helpers.py -- Collaborator fakes and constants shared by the test modules.

Kept out of conftest.py so test modules can import them by name without
importing conftest a second time.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from auth.models import Role, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from core.clock import utc_now
from mail.sender import MailDeliveryError

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
RESET_TOKEN_RE = re.compile(r"reset-password/([0-9a-f]{64})")


class FakeMailer:
    """Records every message. Set fail=True to make send() raise."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    def send(self, address: str, subject: str, body: str) -> None:
        if self.fail:
            raise MailDeliveryError("relay unavailable")
        self.sent.append((address, subject, body))

    def last_token(self) -> str:
        """Pull the plaintext reset token out of the most recent message."""
        match = RESET_TOKEN_RE.search(self.sent[-1][2])
        assert match, f"no reset token in {self.sent[-1][2]!r}"
        return match.group(1)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or utc_now()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_user(store: UserStore, email: str, password: str = "secret123", role: Role = Role.user) -> int:
    """Insert a credential directly, bypassing signup (e.g. to create admins)."""
    hasher = PasswordHasher(rounds=4)
    return store.create_user(
        User(name=email.split("@")[0], email=email, hashed_password=hasher.hash(password), role=role)
    )
