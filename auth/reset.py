"""
auth/reset.py -- Forgot/reset password token lifecycle.

Per-credential state machine:

    Idle --request_reset--> PendingReset(hash, expiry)
    PendingReset --consume_reset ok--> Idle (password rotated)
    PendingReset --expiry passes--> effectively Idle (lookup checks expiry)
    PendingReset --request_reset--> PendingReset (new hash; old token dead)
    PendingReset --delivery fails--> Idle

The plaintext token exists only in memory during request_reset and in the
email. Storage sees SHA-256(token) and the expiry.

Concurrency: two requests for the same account race on arm_reset(); the later
write wins. consume_reset() finishes with a conditional UPDATE that re-checks
the hash, so a token overwritten between lookup and rotation still fails with
InvalidOrExpiredToken.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from auth.errors import DeliveryError, InvalidOrExpiredToken, NotFound
from auth.models import User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import generate_reset_token, hash_reset_token
from core.clock import Clock, utc_now
from mail.sender import EmailSender, MailDeliveryError

logger = logging.getLogger("trailpass.auth.reset")

RESET_PATH = "/api/v1/users/reset-password/"

# password_changed_at is stamped this far in the past so the session returned
# by the rotating request survives a wall clock that steps back slightly.
# Token iat has sub-second precision, so the accepted window is exactly this
# long: a token issued less than one second before the rotation still
# authenticates; anything older is rejected.
PASSWORD_CHANGE_SKEW = timedelta(seconds=1)


class ResetTokenService:
    def __init__(
        self,
        store: UserStore,
        mailer: EmailSender,
        hasher: PasswordHasher,
        ttl_seconds: int = 600,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._mailer = mailer
        self._hasher = hasher
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def request_reset(self, email: str, reset_url_base: str = "") -> str:
        """Arm a reset token for the account and email it.

        Returns the plaintext token for in-process callers. Raises NotFound for
        an unknown or inactive email and DeliveryError if the email could not
        be sent, in which case the armed state has already been cleared.
        """
        user = self._store.get_by_email(email.strip().lower())
        if user is None or not user.is_active:
            raise NotFound("There is no user with that email address.")

        raw_token = generate_reset_token()
        token_hash = hash_reset_token(raw_token)
        expires_at = self._clock() + timedelta(seconds=self.ttl_seconds)
        self._store.arm_reset(user.id, token_hash, expires_at)

        minutes = max(1, self.ttl_seconds // 60)
        reset_url = f"{reset_url_base.rstrip('/')}{RESET_PATH}{raw_token}"
        body = (
            "Forgot your password? Submit a PATCH request with your new password and "
            f"password confirmation to: {reset_url}\n"
            "If you didn't forget your password, please ignore this email!"
        )
        try:
            self._mailer.send(user.email, f"Your password reset token (valid for {minutes} min)", body)
        except MailDeliveryError as exc:
            self._store.clear_reset(user.id, token_hash)
            logger.warning("Reset email to user %d failed; reset state cleared", user.id)
            raise DeliveryError("There was an error sending the email. Try again later!") from exc

        logger.info("Password reset armed for user %d (expires in %ds)", user.id, self.ttl_seconds)
        return raw_token

    def find_pending(self, raw_token: str) -> User:
        """Return the active account holding this unexpired token, or raise."""
        user = self._store.get_by_reset_hash(hash_reset_token(raw_token), self._clock())
        if user is None or not user.is_active:
            raise InvalidOrExpiredToken("Token is invalid or has expired.")
        return user

    def consume_reset(self, raw_token: str, new_password: str) -> User:
        """Rotate the password of the account holding raw_token.

        The caller validates new_password first. Hash, timestamp and cleared
        reset fields land in one UPDATE that only applies if the token is still
        the armed one. Returns the refreshed record.
        """
        user = self.find_pending(raw_token)
        digest = self._hasher.hash(new_password)
        now = self._clock()
        rotated = self._store.rotate_password(
            user.id,
            digest,
            now - PASSWORD_CHANGE_SKEW,
            expected_reset_hash=hash_reset_token(raw_token),
            now=now,
        )
        if not rotated:
            # Superseded or expired while we were hashing
            raise InvalidOrExpiredToken("Token is invalid or has expired.")
        refreshed = self._store.get_by_id(user.id)
        if refreshed is None:
            raise InvalidOrExpiredToken("Token is invalid or has expired.")
        logger.info("Password reset completed for user %d", user.id)
        return refreshed
