#!/usr/bin/env python3
"""
User service -- operator command line.

Usage:
  python main.py init-db
  python main.py create-user alice --email alice@example.com
  python main.py create-user root --email root@example.com --role ADMIN
  python main.py serve --host 0.0.0.0 --port 8000

Commands:
  init-db       Create the schema and the ROLE_USER / ROLE_ADMIN records.
  create-user   Register an account. The password is prompted for (twice) and
                never accepted on the command line, where it would land in
                shell history and the process list.
  serve         Run the HTTP API under uvicorn.

Configuration comes from the environment / .env (see core/config.py).
"""

import argparse
import getpass
import logging
import sys

from auth.errors import DuplicateUsername, RoleNotConfigured
from auth.models import RoleName
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import RoleStore, UserStore, create_db_engine
from auth.tokens import SigningConfig, TokenService
from core.config import get_settings

logger = logging.getLogger("userservice.cli")


def _build_service() -> AuthService:
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    return AuthService(
        users=UserStore(engine),
        roles=RoleStore(engine),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenService(SigningConfig.from_settings(settings)),
    )


def _read_password() -> str:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        raise SystemExit("Passwords do not match.")
    return password


def cmd_init_db(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    created = RoleStore(engine).seed_defaults()
    engine.dispose()
    if created:
        print(f"Created roles: {', '.join(r.value for r in created)}")
    else:
        print("Schema and roles already present.")
    return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    service = _build_service()
    password = _read_password()
    try:
        service.register(args.username, password, args.email, RoleName.parse(args.role))
    except DuplicateUsername:
        print(f"error: username {args.username!r} is already taken", file=sys.stderr)
        return 1
    except RoleNotConfigured as exc:
        print(f"error: {exc}. Run `python main.py init-db` first.", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        service.users.close()
    print(f"Registered {args.username} ({RoleName.parse(args.role).value})")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="User service: registration, login and token issuance.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="create tables and seed role records")
    p_init.set_defaults(func=cmd_init_db)

    p_create = sub.add_parser("create-user", help="register an account (password is prompted)")
    p_create.add_argument("username")
    p_create.add_argument("--email", required=True)
    p_create.add_argument(
        "--role",
        default="USER",
        type=str.upper,
        choices=["USER", "ADMIN"],
        help="role variant to bind (default: USER)",
    )
    p_create.set_defaults(func=cmd_create_user)

    p_serve = sub.add_parser("serve", help="run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
