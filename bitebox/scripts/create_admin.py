"""
Create an admin account, or promote an existing account to admin. Run from project root:
  python -m bitebox.scripts.create_admin EMAIL USERNAME PASSWORD [--role admin|driver|customer]
Example:
  python -m bitebox.scripts.create_admin owner@example.com owner 'S3cure!pass'
"""
import argparse
import logging
import sys

from bitebox.core.config import get_settings
from bitebox.core.database import SessionLocal
from bitebox.core.errors import EmailAlreadyExistsError
from bitebox.core.logging import configure_logging
from bitebox.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
    hash_password,
)
from bitebox.models import USER_ROLES
from bitebox.schemas.auth import USERNAME_RE, check_password_strength, normalize_email
from bitebox.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create or promote a BiteBox staff account.")
    parser.add_argument("email", help="Email address of the account")
    parser.add_argument("username", help="Display name for a new account (3-50 chars)")
    parser.add_argument("password", help="Password for a new account")
    parser.add_argument("--role", default="admin", choices=USER_ROLES)
    args = parser.parse_args(argv)
    configure_logging(get_settings().DEBUG)

    try:
        email = normalize_email(args.email)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        store = CredentialStore(db)
        if store.find_user_by_email(email) is not None:
            store.update_user_role(email, args.role)
            print(f"User '{email}' already exists; role set to '{args.role}'.")
            return 0

        username = args.username.strip()
        if not (USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN) or not USERNAME_RE.match(username):
            print("Username must be 3-50 letters, numbers or underscores.", file=sys.stderr)
            return 1
        if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
            print("Password must be 8-128 characters.", file=sys.stderr)
            return 1
        try:
            check_password_strength(args.password)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 1

        try:
            user = store.create_user(email, hash_password(args.password), username, args.role)
        except EmailAlreadyExistsError:
            print(f"User '{email}' already exists.", file=sys.stderr)
            return 1
        logger.info("Created staff account", extra={"user_id": user.id, "role": user.role})
        print(f"Created user '{email}' with role '{args.role}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
