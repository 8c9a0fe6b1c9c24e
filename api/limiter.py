"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware) and api/routes/v1/users.py
(per-route limits on login and forgot-password). A single instance means every
route shares one in-memory counter store.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    """Rate for credential-guessing endpoints, read at request time."""
    return get_settings().login_rate_limit
