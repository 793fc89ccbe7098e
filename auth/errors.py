"""
auth/errors.py -- Exception taxonomy for the registration and login flows.

The service raises these; api/ translates them into HTTP responses. Store-layer
failures (sqlalchemy.exc.SQLAlchemyError) are deliberately not wrapped -- they
propagate unchanged as infrastructure errors.

  AuthError
    DuplicateUsername        user error, 409, nothing persisted
    RoleNotConfigured        configuration error, 500, alert operators
    AuthenticationFailed     user error, 401 (single external signal)
      UserNotFound
      InvalidCredentials
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error the auth flow raises on purpose."""


class DuplicateUsername(AuthError):
    def __init__(self, username: str) -> None:
        super().__init__(f"Username is already taken: {username!r}")
        self.username = username


class RoleNotConfigured(AuthError):
    """The requested role has no stored record. Not retryable by the caller."""

    def __init__(self, role: str) -> None:
        super().__init__(f"Role not configured: {role}")
        self.role = role


class AuthenticationFailed(AuthError):
    """Login failed. The boundary reports every subclass identically."""


class UserNotFound(AuthenticationFailed):
    def __init__(self, username: str) -> None:
        super().__init__("User not found")
        self.username = username


class InvalidCredentials(AuthenticationFailed):
    def __init__(self) -> None:
        super().__init__("Invalid password")
