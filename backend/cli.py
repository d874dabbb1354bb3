from __future__ import annotations

import argparse
import getpass

from backend.auth_models import Role
from backend.auth_service import create_user, list_staff_flat, reset_password
from backend.config import DB_PATH
from backend.db import engine
from backend.seed import seed_demo
from backend.services import init_db, list_patients_flat, list_treatments_flat


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_demo()
    print("Database initialised and demo data loaded.")


def cmd_db_path(args: argparse.Namespace) -> None:
    print("ENGINE URL:", engine.url)
    print("DB FILE   :", DB_PATH, "(present)" if DB_PATH.exists() else "(missing)")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "patients":
        for p in list_patients_flat():
            print(f"{p['id']} | {p['last_name']} {p['first_name']} | {p['email'] or '-'}")
    elif args.entity == "staff":
        for u in list_staff_flat():
            state = "" if u["is_active"] else " (inactive)"
            print(f"{u['id']} | {u['full_name']} | {u['role']} | {u['email']}{state}")
    elif args.entity == "treatments":
        for t in list_treatments_flat():
            print(f"{t['id']} | {t['name']} ({t['duration_minutes']} min) | {t['price']:.2f}")


def _password(args: argparse.Namespace) -> str:
    return args.password or getpass.getpass("Password: ")


def cmd_add_user(args: argparse.Namespace) -> None:
    user_id = create_user(
        args.email,
        _password(args),
        args.first_name,
        args.last_name,
        role=Role(args.role),
        specialization=args.specialization,
    )
    print(f"User created: {user_id}")


def cmd_reset_password(args: argparse.Namespace) -> None:
    ok = reset_password(args.email, _password(args))
    print("Password updated." if ok else f"No user with email {args.email}.")
    if not ok:
        raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dentalcare", description="DentalCare Pro admin commands")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Create the database and load demo data")
    p_init.set_defaults(func=cmd_init)

    p_path = sub.add_parser("db-path", help="Show the database location")
    p_path.set_defaults(func=cmd_db_path)

    p_list = sub.add_parser("list", help="List records")
    p_list.add_argument("entity", choices=["patients", "staff", "treatments"])
    p_list.set_defaults(func=cmd_list)

    p_user = sub.add_parser("add-user", help="Create a staff account")
    p_user.add_argument("--email", required=True)
    p_user.add_argument("--first-name", required=True)
    p_user.add_argument("--last-name", required=True)
    p_user.add_argument("--role", choices=[r.value for r in Role], default=Role.RECEPTIONIST.value)
    p_user.add_argument("--specialization", default=None)
    p_user.add_argument("--password", default=None, help="Prompted when omitted")
    p_user.set_defaults(func=cmd_add_user)

    p_reset = sub.add_parser("reset-password", help="Set a new password for a staff account")
    p_reset.add_argument("email")
    p_reset.add_argument("--password", default=None, help="Prompted when omitted")
    p_reset.set_defaults(func=cmd_reset_password)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    init_db()  # tables always present
    try:
        args.func(args)
    except ValueError as e:
        parser.exit(1, f"Error: {e}\n")


if __name__ == "__main__":
    main()
