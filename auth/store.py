"""
auth/store.py -- SQLAlchemy Core persistence layer for users and roles.

Pattern: Repository + Data Mapper. UserStore and RoleStore are the
repositories; _row_to_role / _rows_to_user are the mappers. Service and route
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  users.username carries a UNIQUE constraint. AuthService checks
  exists_by_username() first as a fast path, but two concurrent registrations
  can both pass that check. save() is the final arbiter: the losing insert
  hits the constraint and surfaces as DuplicateUsername, never an overwrite.

Engine sharing:
  Both stores take the same Engine (see create_db_engine()). The engine is
  built once at startup; each store method opens a short-lived connection.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateUsername
from auth.models import Role, RoleName, User

logger = logging.getLogger("userservice.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

roles_table = Table(
    "roles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(20), nullable=False, unique=True),  # RoleName value
)

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),  # case-sensitive
    Column("hashed_password", Text, nullable=False),
    Column("email", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
)

user_roles_table = Table(
    "user_roles",
    metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id"), primary_key=True),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign keys for SQLite connections.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def create_db_engine(db_url: str) -> Engine:
    """Build the process-wide Engine and create any missing tables."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Role repository
# ---------------------------------------------------------------------------


class RoleStore:
    """Lookup service for the fixed role records.

    The auth flow only reads. seed_defaults() is for bootstrap code (API
    lifespan with SEED_ROLES=true, or `main.py init-db`).
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def find_by_role(self, name: RoleName) -> Role | None:
        """Return the stored record for a role variant, or None if it was never provisioned."""
        with self.engine.connect() as conn:
            row = conn.execute(roles_table.select().where(roles_table.c.name == name.value)).fetchone()
        return _row_to_role(row) if row is not None else None

    def seed_defaults(self) -> list[RoleName]:
        """Insert any missing RoleName rows. Returns the names that were created.

        Idempotent. A concurrent seeder inserting the same row is tolerated:
        the UNIQUE constraint rejects the duplicate and the row already exists.
        """
        created: list[RoleName] = []
        for name in RoleName:
            if self.find_by_role(name) is not None:
                continue
            try:
                with self.engine.begin() as conn:
                    conn.execute(roles_table.insert().values(name=name.value))
            except IntegrityError:
                continue
            created.append(name)
        if created:
            logger.info("Seeded roles: %s", ", ".join(n.value for n in created))
        return created

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# User repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities and their role links.

    Usage:
        engine = create_db_engine("sqlite:///userservice.db")
        store = UserStore(engine)
        store.save(User(username="alice", hashed_password=digest, email="a@x.io", roles=frozenset({role})))
        user = store.find_by_username("alice")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def has_users(self) -> bool:
        """Return True if at least one user record exists.

        Used by the admin-registration route to allow the first-run bootstrap.
        """
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(users_table)).scalar()
        return (result or 0) > 0

    def exists_by_username(self, username: str) -> bool:
        """Exact, case-sensitive existence check."""
        with self.engine.connect() as conn:
            row = conn.execute(select(users_table.c.id).where(users_table.c.username == username)).fetchone()
        return row is not None

    def find_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _user_with_roles_query().where(users_table.c.username == username)
            ).fetchall()
        users = _rows_to_users(rows)
        return users[0] if users else None

    def save(self, user: User) -> User:
        """Insert a new user plus its role links in one transaction.

        Returns a copy with id and created_at filled in.

        Raises DuplicateUsername if the username already exists, including the
        case where a concurrent request inserted it after the caller's
        existence check. Any other database error propagates unchanged.
        """
        if not user.roles:
            raise ValueError("A user must hold at least one role.")
        if any(role.id is None for role in user.roles):
            raise ValueError("Roles must be stored records (missing id).")

        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    users_table.insert().values(
                        username=user.username,
                        hashed_password=user.hashed_password,
                        email=user.email,
                        created_at=created_at,
                    )
                )
                user_id = result.inserted_primary_key[0]
                conn.execute(
                    user_roles_table.insert(),
                    [{"user_id": user_id, "role_id": role.id} for role in user.roles],
                )
        except IntegrityError as exc:
            # Only the username constraint is a conflict; anything else (e.g. a
            # role id that vanished) is an infrastructure error.
            with self.engine.connect() as conn:
                taken = conn.execute(
                    select(users_table.c.id).where(users_table.c.username == user.username)
                ).fetchone()
            if taken is not None:
                raise DuplicateUsername(user.username) from exc
            raise

        return User(
            id=user_id,
            username=user.username,
            hashed_password=user.hashed_password,
            email=user.email,
            roles=user.roles,
            created_at=created_at,
        )

    def find_all(self) -> list[User]:
        """Return all users ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_user_with_roles_query().order_by(users_table.c.username)).fetchall()
        return _rows_to_users(rows)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Queries and row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_with_roles_query():
    # One row per (user, role). Users always hold at least one role, but an
    # outer join keeps a half-written row visible rather than silently hidden.
    return select(
        users_table,
        roles_table.c.id.label("role_id"),
        roles_table.c.name.label("role_name"),
    ).select_from(
        users_table.outerjoin(user_roles_table, user_roles_table.c.user_id == users_table.c.id).outerjoin(
            roles_table, roles_table.c.id == user_roles_table.c.role_id
        )
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=RoleName(row.name))


def _rows_to_users(rows) -> list[User]:
    """Fold joined (user, role) rows into User objects, preserving row order."""
    users: dict[int, User] = {}
    roles: dict[int, set[Role]] = {}
    for row in rows:
        if row.id not in users:
            users[row.id] = User(
                id=row.id,
                username=row.username,
                hashed_password=row.hashed_password,
                email=row.email,
                created_at=row.created_at,
            )
            roles[row.id] = set()
        if row.role_name is not None:
            roles[row.id].add(Role(id=row.role_id, name=RoleName(row.role_name)))
    for user_id, user in users.items():
        user.roles = frozenset(roles[user_id])
    return list(users.values())
