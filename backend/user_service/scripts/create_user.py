"""
Create a user directly in the store (e.g. the first admin, since POST /users
already requires an admin token). Secrets are bootstrapped from Vault exactly
as the service does. Run from the backend directory:
  python -m user_service.scripts.create_user USERNAME PASSWORD [role]
Example:
  python -m user_service.scripts.create_user admin your-secure-password Admin
"""
import argparse
import asyncio
import sys
from typing import Optional, Sequence

from user_service.core.config import settings
from user_service.core.exceptions import ConfigurationError
from user_service.core.passwords import hash_password
from user_service.core.vault import bootstrap_secrets
from user_service.db.user_repository import UserRepository
from user_service.models.enums import Role
from user_service.models.user import User


async def create_user(repository: UserRepository, username: str, password: str, role: Role) -> Optional[User]:
    """Insert the user unless one with this username already exists."""
    existing = [u for u in await repository.get_all() if u.username == username]
    if existing:
        return None
    return await repository.create(
        User(username=username, password=hash_password(password), role=role)
    )


async def run(username: str, password: str, role: Role) -> int:
    try:
        config = await bootstrap_secrets(settings)
    except ConfigurationError as e:
        print(f"Could not load secrets: {e}", file=sys.stderr)
        return 1

    repository = UserRepository(config)
    try:
        created = await create_user(repository, username, password, role)
    finally:
        repository.close()

    if created is None:
        print(f"User '{username}' already exists.", file=sys.stderr)
        return 1
    print(f"Created user '{username}' with role '{role.value}' (id {created.id}).")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Create a user in the user store.")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("role", nargs="?", default=Role.ADMIN.value, choices=[r.value for r in Role])
    args = parser.parse_args(argv)

    username = args.username.strip()
    if not username:
        print("Username must not be empty.", file=sys.stderr)
        return 1
    if not args.password:
        print("Password must not be empty.", file=sys.stderr)
        return 1

    return asyncio.run(run(username, args.password, Role(args.role)))


if __name__ == "__main__":
    sys.exit(main())
