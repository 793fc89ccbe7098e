"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer-token authorization.

Tokens arrive in the Authorization: Bearer <token> header and are verified
with the TokenService wired onto app.state at startup. Verification is purely
stateless -- signature, expiry and (optionally) issuer. There is no session
table and no user lookup, so a token stays valid until it expires.

try_get_current_claims() is the soft variant (returns None on failure).
get_current_claims() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_claims() and raises HTTP 403 if the token
does not carry ROLE_ADMIN.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import RoleName
from auth.tokens import TokenClaims, TokenService


def bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def try_get_current_claims(request: Request) -> TokenClaims | None:
    """Return the verified claims of the request's bearer token, or None.

    Never raises -- callers that need a hard 401 should use get_current_claims().
    """
    token = bearer_token(request)
    if not token:
        return None
    token_service: TokenService = request.app.state.token_service
    return token_service.decode(token)


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    claims = try_get_current_claims(request)
    if claims is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return claims


def require_admin(request: Request) -> TokenClaims:
    """Require ROLE_ADMIN. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    claims = get_current_claims(request)
    if RoleName.ADMIN.value not in claims.roles:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return claims
