"""
auth/errors.py -- Error taxonomy for the credential service.

Every failure a client is expected to see is an AppError with
is_operational=True: the message is safe to show verbatim and the status code
is fixed per class. Anything else (store unavailable, programming fault) is
either a plain exception or an AppError with is_operational=False; the API
layer logs those with full detail and returns one opaque 500 envelope.

Unauthenticated has two diagnostic subclasses raised by the token verifier.
They share status and client message with their parent; only the logs tell
them apart.

Layer rule: no imports outside the standard library.
"""

from __future__ import annotations


class AppError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, is_operational: bool = True) -> None:
        super().__init__(message)
        self.message = message
        self.is_operational = is_operational


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class InvalidCredentials(AppError):
    status_code = 401
    code = "invalid_credentials"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"


class InvalidTokenError(Unauthenticated):
    """Malformed token, bad signature or unusable claims."""


class ExpiredTokenError(Unauthenticated):
    """Signature checks out but exp is in the past."""


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"


class InvalidOrExpiredToken(AppError):
    status_code = 400
    code = "invalid_reset_token"


class DeliveryError(AppError):
    status_code = 500
    code = "delivery_failed"
