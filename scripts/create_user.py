import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from useradmin.database import Database, RecordInvalid, resolve_database_path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a user directly in the users database")
    parser.add_argument("user_name", help="Unique user name")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument("--admin", action="store_true", help="Grant administrator rights")
    parser.add_argument("--guest", action="store_true", help="Mark the account as a guest")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to USERADMIN_DB_PATH or data/useradmin.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> tuple[str, str]:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        return password, confirm
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password, confirmation = prompt_for_password()

    db_env = args.db_path or os.getenv("USERADMIN_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(
            {
                "user_name": args.user_name.strip(),
                "email": args.email.strip(),
                "password": password,
                "password_confirmation": confirmation,
                "admin": args.admin,
                "guest": args.guest,
            }
        )
    except RecordInvalid as exc:
        for message in exc.messages:
            print(f"Error: {message}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.user_name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
