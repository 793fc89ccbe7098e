"""
api/routes/v1/users.py -- User listing and token introspection.

Routes:
  GET /api/v1/users      -- list all users (admin only)
  GET /api/v1/users/me   -- claims of the caller's own token (requires auth)

Both rely on the stateless bearer check in auth.dependencies. /me does not hit
the database at all -- it reports exactly what the token asserts.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import ClaimsResponse, UserResponse
from auth.dependencies import get_current_claims, require_admin
from auth.store import UserStore
from auth.tokens import TokenClaims

router = APIRouter()


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, claims: TokenClaims = Depends(require_admin)) -> list[UserResponse]:
    """List all user accounts. Admin only. Password hashes are never returned."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.find_all()]


@router.get("/users/me", response_model=ClaimsResponse)
async def me(claims: TokenClaims = Depends(get_current_claims)) -> ClaimsResponse:
    """Return the identity and roles asserted by the caller's token."""
    return ClaimsResponse(
        username=claims.subject,
        roles=claims.roles,
        issued_at=claims.issued_at.isoformat(),
        expires_at=claims.expires_at.isoformat(),
    )
