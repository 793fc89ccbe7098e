"""
API request and response models for the user service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User

# Deliberately loose: one "@" with something on both sides and a dot in the
# domain. Deliverability is not checked here.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/users/auth/register-user and /register-admin.

    Usernames are case-sensitive and are not stripped: "alice" and "Alice"
    are different accounts.
    """

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/auth/login."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    """Plain confirmation, e.g. after a successful registration."""

    message: str


class LoginResponse(BaseModel):
    """Token issued on login. roles is a set; its order carries no meaning."""

    token: str
    username: str
    roles: list[str]


class UserResponse(BaseModel):
    """A user as listed by GET /api/v1/users. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    roles: list[str]
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            roles=user.role_names,
            created_at=user.created_at or "",
        )


class ClaimsResponse(BaseModel):
    """Decoded claims of the caller's own token (GET /api/v1/users/me)."""

    username: str
    roles: list[str]
    issued_at: str
    expires_at: str


class ErrorDetail(BaseModel):
    """Inner error object in every non-2xx response."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error envelope: {"error": {"code", "message", "detail"}}."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response body for GET /api/v1/health."""

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
