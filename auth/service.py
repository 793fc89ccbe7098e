"""
auth/service.py -- Registration and login orchestration.

AuthService owns no state. It is composed once at startup from its four
collaborators and may be shared across request workers.

Registration:
  1. Fast-path uniqueness check (UserStore.exists_by_username).
  2. Hash the password; the plaintext is not kept.
  3. Resolve the role record; a missing record is RoleNotConfigured.
  4. Persist with a single-role set. UserStore.save() re-enforces uniqueness
     via the UNIQUE constraint, so a lost check-then-insert race still ends in
     DuplicateUsername.

Login:
  1. Look up the user. Unknown usernames still pay for one bcrypt check [C1].
  2. Verify the password.
  3. Issue a token with subject = username and the user's role names.

UserNotFound and InvalidCredentials stay distinct here (for logs and tests)
and share the AuthenticationFailed base so the boundary can report them as one.
"""

from __future__ import annotations

import logging

from auth.errors import DuplicateUsername, InvalidCredentials, RoleNotConfigured, UserNotFound
from auth.models import LoginResult, RoleName, User
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.store import RoleStore, UserStore
from auth.tokens import TokenService

logger = logging.getLogger("userservice.auth")


class AuthService:
    def __init__(
        self,
        users: UserStore,
        roles: RoleStore,
        hasher: PasswordHasher,
        tokens: TokenService,
    ) -> None:
        self.users = users
        self.roles = roles
        self.hasher = hasher
        self.tokens = tokens

    def register(self, username: str, password: str, email: str, role: RoleName) -> User:
        """Create a user bound to exactly one role. No token is issued.

        Raises:
            ValueError:         empty username/password, or password over 72 bytes.
            DuplicateUsername:  the username is taken (exact match).
            RoleNotConfigured:  no stored record for `role`.
        """
        if not username:
            raise ValueError("Username must not be empty.")
        if not password:
            raise ValueError("Password must not be empty.")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

        if self.users.exists_by_username(username):
            logger.info("Registration rejected, username taken: %s", username)
            raise DuplicateUsername(username)

        hashed = self.hasher.hash(password)

        role_record = self.roles.find_by_role(role)
        if role_record is None:
            logger.critical("Role %s has no stored record; registration cannot proceed", role.value)
            raise RoleNotConfigured(role.value)

        saved = self.users.save(
            User(
                username=username,
                hashed_password=hashed,
                email=email,
                roles=frozenset({role_record}),
            )
        )
        logger.info("Registered user %s with %s", username, role.value)
        return saved

    def login(self, username: str, password: str) -> LoginResult:
        """Authenticate and issue a token.

        Raises:
            UserNotFound:        no such username.
            InvalidCredentials:  the password does not match.
        """
        user = self.users.find_by_username(username)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.verify_dummy(password)
            logger.info("Login failed for %s: unknown user", username)
            raise UserNotFound(username)

        if not self.hasher.verify(password, user.hashed_password):
            logger.info("Login failed for %s: bad password", username)
            raise InvalidCredentials()

        roles = user.role_names
        token = self.tokens.issue(user.username, roles)
        logger.info("Login succeeded for %s", username)
        return LoginResult(token=token, username=user.username, roles=roles)
