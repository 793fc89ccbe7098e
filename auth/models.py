"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond name parsing).
Dataclasses own domain shape; stores, services and routes do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RoleName(str, Enum):
    """The fixed set of authorization levels.

    The enum values are the wire names written into token claims and stored in
    the roles table. They must stay stable: other services match on them.
    """

    USER = "ROLE_USER"
    ADMIN = "ROLE_ADMIN"

    @classmethod
    def parse(cls, value: str) -> RoleName:
        """Accept either the wire name ("ROLE_ADMIN") or the short variant ("admin")."""
        normalized = value.strip().upper()
        if not normalized.startswith("ROLE_"):
            normalized = f"ROLE_{normalized}"
        return cls(normalized)


@dataclass(frozen=True)
class Role:
    """A pre-provisioned role record. Looked up by name, never created by the auth flow."""

    name: RoleName
    id: int | None = field(default=None, compare=False)


@dataclass
class User:
    """A registered identity.

    hashed_password is always a bcrypt digest. roles is non-empty; registration
    binds exactly one role and nothing in the service mutates it afterwards.
    """

    username: str
    hashed_password: str
    email: str
    roles: frozenset[Role] = frozenset()
    id: int | None = None
    created_at: str | None = None

    @property
    def role_names(self) -> list[str]:
        """Role wire names, sorted. Callers must still treat them as a set."""
        return sorted(role.name.value for role in self.roles)


@dataclass(frozen=True)
class LoginResult:
    """What a successful login hands back to the boundary layer."""

    token: str
    username: str
    roles: list[str]
