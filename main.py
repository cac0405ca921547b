#!/usr/bin/env python3
"""
POS Auth -- management CLI for the point-of-sale user and session store.

The desktop shell talks to auth.service.AuthService directly; this CLI is for
operators and support staff working on the same SQLite file.

Usage:
  python main.py init
  python main.py users list
  python main.py users create alice --name "Alice" --role CASHIER
  python main.py users update <id> --name "Alice B" --role CASHIER --inactive
  python main.py users reset-password <id>
  python main.py login alice
  python main.py validate <token>
  python main.py logout <token>
  python main.py sessions purge
  python main.py --json users list

Environment variables:
  POS_DATA_DIR           Directory holding pos.db (default: ~/.pos-system)
  POS_DATABASE_URL       Full SQLAlchemy URL, overrides POS_DATA_DIR
  POS_SESSION_TTL_HOURS  Absolute session lifetime (default: 24)
  POS_BCRYPT_ROUNDS      bcrypt cost factor (default: 12)

Passwords are prompted for with getpass unless --password is given.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from auth.bootstrap import ensure_default_admin
from auth.db import Database
from auth.errors import AuthError, OperationalError
from auth.models import Role, User
from auth.schemas import (
    CreateUserRequest,
    ErrorDetail,
    LoginRequest,
    LoginResponse,
    ResetPasswordRequest,
    UpdateUserRequest,
    UserOut,
)
from auth.service import AuthService
from core.config import Settings, get_settings

logger = logging.getLogger("posauth.cli")


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _read_password(given: Optional[str], prompt: str = "Password: ") -> str:
    if given is not None:
        return given
    return getpass.getpass(prompt)


def _print_user(user: User) -> None:
    status = "active" if user.is_active else "inactive"
    last = user.last_login.isoformat() if user.last_login else "never"
    print(f"  {user.id}  {user.username:<20} {user.name:<24} {user.role.value:<8} {status:<8} last login: {last}")


def _emit(args: argparse.Namespace, payload, human) -> None:
    """Print payload as JSON when --json is set, otherwise call human()."""
    if args.json:
        if isinstance(payload, list):
            print(json.dumps([p.model_dump(mode="json") for p in payload], indent=2))
        elif payload is None:
            print("null")
        else:
            print(payload.model_dump_json(indent=2))
    else:
        human()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(service: AuthService, args: argparse.Namespace) -> int:
    # Bootstrap already ran in run(); just report the state.
    print(f"  Auth store ready ({service.users.count()} user(s)).")
    return 0


def cmd_users_list(service: AuthService, args: argparse.Namespace) -> int:
    users = service.list_users()
    _emit(args, [UserOut.from_user(u) for u in users], lambda: [_print_user(u) for u in users])
    return 0


def cmd_users_create(service: AuthService, args: argparse.Namespace) -> int:
    req = CreateUserRequest(
        username=args.username,
        password=_read_password(args.password),
        name=args.name or args.username,
        role=args.role,
    )
    user = service.create_user(req.username, req.password, req.name, req.role)
    _emit(args, UserOut.from_user(user), lambda: _print_user(user))
    return 0


def cmd_users_update(service: AuthService, args: argparse.Namespace) -> int:
    req = UpdateUserRequest(id=args.id, name=args.name, role=args.role, is_active=not args.inactive)
    service.update_user(req.id, req.name, req.role, req.is_active)
    print(f"  User {req.id} updated.")
    return 0


def cmd_users_reset_password(service: AuthService, args: argparse.Namespace) -> int:
    req = ResetPasswordRequest(id=args.id, new_password=_read_password(args.password, "New password: "))
    service.reset_password(req.id, req.new_password)
    print(f"  Password reset for user {req.id}.")
    return 0


def cmd_login(service: AuthService, args: argparse.Namespace) -> int:
    req = LoginRequest(username=args.username, password=_read_password(args.password))
    result = service.login(req.username, req.password)
    if result is None:
        _emit(args, None, lambda: print("  [!] Invalid credentials."))
        return 1
    _emit(args, LoginResponse.from_result(result), lambda: print(result.token))
    return 0


def cmd_validate(service: AuthService, args: argparse.Namespace) -> int:
    user = service.validate_session(args.token)
    if user is None:
        _emit(args, None, lambda: print("  [!] Session expired or invalid."))
        return 1
    _emit(args, UserOut.from_user(user), lambda: _print_user(user))
    return 0


def cmd_logout(service: AuthService, args: argparse.Namespace) -> int:
    service.logout(args.token)
    print("  Logged out.")
    return 0


def cmd_sessions_purge(service: AuthService, args: argparse.Namespace) -> int:
    removed = service.sessions.purge_expired()
    print(f"  Removed {removed} expired session(s).")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pos-auth",
        description="Manage POS user accounts and sessions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Output structured JSON")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("init", help="Create the store and default admin if missing")
    p.set_defaults(func=cmd_init)

    users = sub.add_parser("users", help="User administration")
    users_sub = users.add_subparsers(dest="users_command", metavar="ACTION")

    p = users_sub.add_parser("list", help="List users, newest first")
    p.set_defaults(func=cmd_users_list)

    p = users_sub.add_parser("create", help="Create a user")
    p.add_argument("username")
    p.add_argument("--name", help="Display name (defaults to the username)")
    p.add_argument(
        "--role",
        type=Role,
        choices=list(Role),
        default=Role.CASHIER,
        metavar="ROLE",
        help="ADMIN or CASHIER (default: CASHIER)",
    )
    p.add_argument("--password", help="Password (prompted when omitted)")
    p.set_defaults(func=cmd_users_create)

    p = users_sub.add_parser("update", help="Change name, role or active flag")
    p.add_argument("id")
    p.add_argument("--name", required=True)
    p.add_argument("--role", type=Role, choices=list(Role), required=True, metavar="ROLE")
    p.add_argument("--inactive", action="store_true", help="Deactivate the account")
    p.set_defaults(func=cmd_users_update)

    p = users_sub.add_parser("reset-password", help="Set a new password")
    p.add_argument("id")
    p.add_argument("--password", help="New password (prompted when omitted)")
    p.set_defaults(func=cmd_users_reset_password)

    p = sub.add_parser("login", help="Check credentials and print a session token")
    p.add_argument("username")
    p.add_argument("--password", help="Password (prompted when omitted)")
    p.set_defaults(func=cmd_login)

    p = sub.add_parser("validate", help="Check a session token")
    p.add_argument("token")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("logout", help="Delete a session token")
    p.add_argument("token")
    p.set_defaults(func=cmd_logout)

    sessions = sub.add_parser("sessions", help="Session maintenance")
    sessions_sub = sessions.add_subparsers(dest="sessions_command", metavar="ACTION")
    p = sessions_sub.add_parser("purge", help="Delete all expired sessions")
    p.set_defaults(func=cmd_sessions_purge)

    return parser


def _report(args: argparse.Namespace, detail: ErrorDetail) -> int:
    """Print an error as JSON (--json) or as "[!]" lines on stderr. Returns 1."""
    if args.json:
        print(detail.model_dump_json(indent=2))
    else:
        for line in detail.message.splitlines():
            print(f"  [!] {line}", file=sys.stderr)
    return 1


def run(argv: Optional[list[str]] = None, settings: Optional[Settings] = None) -> int:
    """Parse argv, bootstrap the store and dispatch. Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    settings = settings or get_settings()
    db: Optional[Database] = None
    try:
        try:
            db = Database(settings.resolved_database_url())
        except OSError as exc:
            raise OperationalError(f"Could not create data directory: {exc}") from exc
        service = AuthService(db, settings)
        ensure_default_admin(service.users, settings)
        return args.func(service, args)
    except ValidationError as exc:
        errors = [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in exc.errors()]
        detail = ErrorDetail(
            code="validation_error",
            message="\n".join(f"{e['field']}: {e['message']}" for e in errors),
            context={"errors": errors},
        )
        return _report(args, detail)
    except AuthError as exc:
        return _report(args, ErrorDetail(**exc.to_dict()))
    finally:
        if db is not None:
            db.close()


def main() -> None:
    settings = get_settings()
    _configure_logging(settings)
    sys.exit(run(settings=settings))


if __name__ == "__main__":
    main()
