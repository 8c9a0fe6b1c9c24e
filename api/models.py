"""
API request and response models for the Trailpass REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Request models only bound sizes. Business rules (email format, password
length, confirmation match) live in AuthService so they surface as the
service's 400 ValidationError rather than FastAPI's generic 422.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Role, Session, UserProfile

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/users/signup. Role is not accepted."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)
    password_confirm: str = Field(default="", max_length=255, alias="passwordConfirm")


class LoginRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(max_length=255)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    password: str = Field(max_length=255)
    password_confirm: str = Field(max_length=255, alias="passwordConfirm")


class UpdatePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    password_current: str = Field(max_length=255, alias="passwordCurrent")
    password: str = Field(max_length=255)
    password_confirm: str = Field(max_length=255, alias="passwordConfirm")


class UpdateMeRequest(BaseModel):
    """Request body for PATCH /api/v1/users/me.

    password fields are declared only so the service can reject them with a
    pointer to /update-password instead of silently dropping them.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    password_confirm: Optional[str] = Field(default=None, max_length=255, alias="passwordConfirm")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: Role

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserResponse":
        return cls(id=profile.id, name=profile.name, email=profile.email, role=profile.role)


class SessionResponse(BaseModel):
    """Body returned by signup, login, reset-password and update-password."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            token=session.token,
            expires_in=session.expires_in,
            user=UserResponse.from_profile(session.profile),
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
