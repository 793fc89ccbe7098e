"""
api/routes/v1/auth.py -- Registration and login REST endpoints.

Routes:
  POST /api/v1/users/auth/register-user    -- public; registers with ROLE_USER
  POST /api/v1/users/auth/register-admin   -- admin only (open while no user exists)
  POST /api/v1/users/auth/login            -- password login; returns a JWT

Security:
  [C1] AuthService.login() equalizes timing for unknown usernames.
  [M5] Cache-Control: no-store on login responses.
  Unknown username and wrong password both produce the same 401 body
  ("bad_credentials") so the endpoint cannot be used to enumerate accounts.

Handlers are plain `def`: the store and bcrypt calls block, so FastAPI runs
them in its thread pool instead of on the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, MessageResponse, RegisterRequest
from auth.dependencies import require_admin
from auth.errors import AuthenticationFailed, DuplicateUsername
from auth.models import RoleName
from auth.service import AuthService
from auth.store import UserStore

# Auth policy:
# - POST /api/v1/users/auth/register-user:   public -- self-service sign-up
# - POST /api/v1/users/auth/register-admin:  requires admin (require_admin),
#                                            except the very first account
# - POST /api/v1/users/auth/login:           public -- login must be unauthenticated
router = APIRouter()


@router.post("/users/auth/register-user", response_model=MessageResponse)
def register_user(request: Request, body: RegisterRequest) -> MessageResponse:
    """Register a standard user. No token is issued; the client logs in next."""
    _register(request, body, RoleName.USER)
    return MessageResponse(message="User registered successfully")


@router.post("/users/auth/register-admin", response_model=MessageResponse)
def register_admin(request: Request, body: RegisterRequest) -> MessageResponse:
    """Register an administrator.

    Requires an admin bearer token once any account exists. On a fresh
    database the first call is allowed through so the initial admin can be
    created. Two concurrent first-run calls can both pass; both end up admins,
    which is the same outcome as the operator running the call twice.
    """
    user_store: UserStore = request.app.state.user_store
    if user_store.has_users():
        require_admin(request)
    _register(request, body, RoleName.ADMIN)
    return MessageResponse(message="Admin registered successfully")


@router.post("/users/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a signed token."""
    auth_service: AuthService = request.app.state.auth_service
    try:
        result = auth_service.login(body.username, body.password)
    except AuthenticationFailed:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(token=result.token, username=result.username, roles=result.roles).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _register(request: Request, body: RegisterRequest, role: RoleName) -> None:
    # RoleNotConfigured is left to the app-level handler: it is an operator
    # problem, not something the client can fix.
    auth_service: AuthService = request.app.state.auth_service
    try:
        auth_service.register(body.username, body.password, body.email, role)
    except DuplicateUsername as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that username already exists."},
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=422,
            detail={"code": "validation_error", "message": str(exc)},
        ) from exc
