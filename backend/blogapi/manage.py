"""
Blog API — Management Commands
================================

    python -m blogapi.manage create-user admin@example.com "Site Admin"

Prompts for the password. Schema changes go through Alembic
(`alembic upgrade head`); this module only handles account setup.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from typing import List, Optional

from blogapi.config import load_settings
from blogapi.database import create_engine, create_session_factory, dispose_engine
from blogapi.exceptions import BlogAPIError
from blogapi.models.user import ROLES
from blogapi.services.auth_service import AuthService
from blogapi.services.token_service import TokenService

logger = logging.getLogger(__name__)


async def create_user(email: str, name: str, password: str, role: str) -> int:
    settings = load_settings()
    engine = create_engine(settings)
    try:
        accounts = AuthService(create_session_factory(engine), TokenService(settings))
        user = await accounts.create_user(email, password, name, role)
        return user.id
    finally:
        await dispose_engine(engine)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="blogapi.manage")
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create-user", help="create a dashboard account")
    create.add_argument("email")
    create.add_argument("name")
    create.add_argument("--role", default="admin", choices=ROLES)

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    if args.command == "create-user":
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("Passwords do not match", file=sys.stderr)
            return 1
        try:
            user_id = asyncio.run(create_user(args.email, args.name, password, args.role))
        except BlogAPIError as e:
            print(f"{e.message}: {e.details}", file=sys.stderr)
            return 1
        print(f"Created user {user_id} ({args.email})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
