"""
api/routes/v1/users.py -- Signup, login, password and profile endpoints.

Routes:
  POST   /api/v1/users/signup                 -- create account; 201 + jwt cookie
  POST   /api/v1/users/login                  -- password login; 200 + jwt cookie
  POST   /api/v1/users/logout                 -- clears the jwt cookie
  POST   /api/v1/users/forgot-password        -- email a reset token
  PATCH  /api/v1/users/reset-password/{token} -- consume token, set password; logs in
  PATCH  /api/v1/users/update-password        -- change password (requires auth)
  GET    /api/v1/users/me                     -- current profile (requires auth)
  PATCH  /api/v1/users/me                     -- update name/email (requires auth)
  DELETE /api/v1/users/me                     -- deactivate own account (requires auth)
  GET    /api/v1/users                        -- list accounts (admin only)

Handlers that hash passwords are plain `def`: FastAPI runs them in its worker
thread pool so bcrypt never blocks the event loop.

Errors are raised as auth.errors.AppError subclasses and rendered by the
handler in api/main.py. Responses that carry a session token set
Cache-Control: no-store.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit
from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionResponse,
    SignupRequest,
    UpdateMeRequest,
    UpdatePasswordRequest,
    UserResponse,
)
from auth.dependencies import RoleGate, get_auth_service, get_current_identity
from auth.models import Identity, Role, Session
from auth.service import AuthService
from auth.sessions import COOKIE_NAME, cookie_kwargs

# Auth policy:
# - signup, login, logout, forgot-password, reset-password: public
# - update-password, me (GET/PATCH/DELETE):                 requires auth (get_current_identity)
# - GET /users:                                             requires admin (RoleGate(Role.admin))
router = APIRouter()

_admin_only = RoleGate(Role.admin)


def _session_response(session: Session, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=SessionResponse.from_session(session).model_dump(mode="json"),
    )
    resp.set_cookie(**cookie_kwargs(session.cookie))
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/users/signup", response_model=SessionResponse, status_code=201)
def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    session = service.signup(body.name, body.email, body.password, body.password_confirm)
    return _session_response(session, 201)


@limiter.limit(login_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/users/login", response_model=SessionResponse)
def login(request: Request, body: LoginRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password produce the same 401 after the same
    amount of bcrypt work.
    """
    session = service.login(body.email, body.password)
    return _session_response(session, 200)


@router.post("/users/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the jwt cookie. The token itself stays valid until it expires."""
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    resp.delete_cookie(COOKIE_NAME)
    return resp


@limiter.limit(login_limit)
@router.post("/users/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Arm a reset token and email it. The token is never echoed in the response."""
    service.request_password_reset(body.email, str(request.base_url))
    return MessageResponse(message="Token sent to email!")


@router.patch("/users/reset-password/{token}", response_model=SessionResponse)
def reset_password(
    token: str,
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    session = service.consume_password_reset(token, body.password, body.password_confirm)
    return _session_response(session, 200)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.patch("/users/update-password", response_model=SessionResponse)
def update_password(
    body: UpdatePasswordRequest,
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Change password. Returns a fresh session; tokens issued earlier stop working."""
    session = service.change_password(identity, body.password_current, body.password, body.password_confirm)
    return _session_response(session, 200)


@router.get("/users/me", response_model=UserResponse)
def me(
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    return UserResponse.from_profile(service.me(identity))


@router.patch("/users/me", response_model=UserResponse)
def update_me(
    body: UpdateMeRequest,
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    profile = service.update_me(
        identity,
        name=body.name,
        email=body.email,
        password=body.password,
        password_confirm=body.password_confirm,
    )
    return UserResponse.from_profile(profile)


@router.delete("/users/me", status_code=204)
def delete_me(
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    service.deactivate_me(identity)
    resp = Response(status_code=204)
    resp.delete_cookie(COOKIE_NAME)
    return resp


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse])
def list_users(
    identity: Identity = Depends(_admin_only),
    service: AuthService = Depends(get_auth_service),
) -> list[UserResponse]:
    return [UserResponse.from_profile(p) for p in service.list_users()]
