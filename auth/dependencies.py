"""
auth/dependencies.py -- FastAPI Depends() helpers for the auth gates.

Token sources, checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "jwt" cookie -- set by signup/login/reset for browser clients.

get_current_identity() is the authentication gate: it resolves the token to a
live Identity via AuthService and attaches it to request.state.identity for
anything downstream (handlers, logging).

RoleGate is the authorization gate. It is built once per endpoint with a fixed
allow-list and depends on get_current_identity, so FastAPI always runs
authentication first:

    @router.get("/users")
    def list_users(identity: Identity = Depends(RoleGate(Role.admin))): ...

Layer rule: this module may import fastapi because it is part of the FastAPI
dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import Identity, Role
from auth.service import AuthService, authorize
from auth.sessions import COOKIE_NAME


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_current_identity(request: Request) -> Identity:
    """Require authentication. Raises Unauthenticated (401) on any failure."""
    service = get_auth_service(request)
    header = request.headers.get("Authorization")
    if not header:
        cookie_token = request.cookies.get(COOKIE_NAME)
        if cookie_token:
            header = f"Bearer {cookie_token}"
    identity = service.authenticate(header)
    request.state.identity = identity
    return identity


class RoleGate:
    """Callable dependency that admits only the configured roles."""

    def __init__(self, *roles: Role) -> None:
        if not roles:
            raise ValueError("RoleGate needs at least one role")
        self.allowed: frozenset[Role] = frozenset(Role(r) for r in roles)

    def __call__(self, identity: Identity = Depends(get_current_identity)) -> Identity:
        authorize(identity, self.allowed)
        return identity
