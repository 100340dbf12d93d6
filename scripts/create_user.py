"""
Create a Cashbook user.

There is no sign-up endpoint; accounts are provisioned by an operator.

Usage:
    python scripts/create_user.py <username> <password>
        Print an INSERT statement to run against the database yourself.

    python scripts/create_user.py <username> <password> --apply
        Insert the user into the configured database (DATABASE_URL).
"""

import argparse
import asyncio
import sys
from typing import Optional

from cashbook.errors import CashbookError
from cashbook.models.finance import new_id
from cashbook.services.auth import hash_password
from cashbook.services.storage import Database, SqlUserStorage


def sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_insert_sql(user_id: str, username: str, password_hash: str) -> str:
    return (
        "INSERT INTO users (id, username, password_hash, created_at) VALUES "
        f"({sql_literal(user_id)}, {sql_literal(username)}, {sql_literal(password_hash)}, CURRENT_TIMESTAMP);"
    )


async def apply_user(username: str, password_hash: str, database_url: Optional[str] = None):
    db = Database(database_url)
    try:
        await db.create_all()
        return await SqlUserStorage(db).create_user(username, password_hash)
    finally:
        await db.dispose()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a Cashbook user")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--apply", action="store_true", help="Insert into the configured database")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--rounds", type=int, default=12, help="bcrypt cost factor")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    username = args.username.strip()
    if not username:
        print("Username must not be empty", file=sys.stderr)
        return 1

    try:
        password_hash = hash_password(args.password, rounds=args.rounds)
        if args.apply:
            user = asyncio.run(apply_user(username, password_hash, args.database_url))
            print(f"Created user {user.username} ({user.id})")
            return 0
    except CashbookError as e:
        print(str(e), file=sys.stderr)
        return 1

    print("Run this statement against the Cashbook database:")
    print()
    print(build_insert_sql(new_id(), username, password_hash))
    return 0


if __name__ == "__main__":
    sys.exit(main())
