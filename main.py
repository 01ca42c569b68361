#!/usr/bin/env python3
"""
Acquisitions API -- command-line entry point.

Usage:
  python main.py serve [--host 0.0.0.0] [--port 3000] [--reload]
  python main.py init-db
  python main.py create-admin --name "Ada Admin" --email ada@acme.io --password s3cretpass

Configuration comes from the environment and .env (see core/config.py).
create-admin is the only way to bootstrap the first administrator: sign-up
accepts a role, but every later role change goes through an admin.
"""

import argparse
import logging
import sys

from auth.models import ROLE_ADMIN
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError

logger = logging.getLogger("acquisitions.cli")


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_init_db(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = UserStore(settings.database_url, bcrypt_rounds=settings.bcrypt_rounds)
    ok = store.ping()
    store.close()
    if not ok:
        print("  [!] Database is not reachable.")
        return 1
    print("  Database schema is ready.")
    return 0


def _cmd_create_admin(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = UserStore(settings.database_url, bcrypt_rounds=settings.bcrypt_rounds)
    service = AuthService(store, bcrypt_rounds=settings.bcrypt_rounds)
    try:
        user = service.create_user(
            name=args.name.strip(),
            email=args.email.strip().lower(),
            password=args.password,
            role=ROLE_ADMIN,
        )
    except AppError as exc:
        print(f"  [!] Could not create admin: {exc}")
        return 1
    finally:
        store.close()
    print(f"  Created admin {user.email} (id={user.id}).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acquisitions",
        description="Acquisitions API -- user accounts with JWT cookie sessions.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server with uvicorn.")
    serve.add_argument("--host", default="0.0.0.0")  # nosec B104 -- container entry point
    serve.add_argument("--port", type=int, default=3000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only).")
    serve.set_defaults(func=_cmd_serve)

    init_db = sub.add_parser("init-db", help="Create the users table if it does not exist.")
    init_db.set_defaults(func=_cmd_init_db)

    admin = sub.add_parser("create-admin", help="Create an administrator account.")
    admin.add_argument("--name", required=True)
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True)
    admin.set_defaults(func=_cmd_create_admin)

    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
