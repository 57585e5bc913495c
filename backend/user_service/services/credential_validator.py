import asyncio
import logging
from typing import Optional

from user_service.core.exceptions import InvalidCredentials
from user_service.core.passwords import hash_password, verify_password
from user_service.db.user_repository import UserRepository
from user_service.models.enums import Role

logger = logging.getLogger(__name__)

# Checked when no record carries the username, so unknown and known usernames cost the same
DUMMY_PASSWORD_HASH = hash_password("dummy-password-for-unknown-users")


class CredentialValidator:
    """Checks a username/password pair against the stored users.

    Linear scan over a ``get_all()`` snapshot: O(n) per login attempt, and with
    duplicate usernames the first match in store order wins. Fine for a small
    user base; it is not an indexed lookup. bcrypt checks run in a worker
    thread so the event loop keeps serving other requests.
    """

    def __init__(self, repository: UserRepository):
        self.repository = repository

    async def validate(self, username: str, password: str) -> Optional[Role]:
        """Return the role of the first matching user (which may be ``None``).

        Raises:
            InvalidCredentials: no user matched; the error does not say which
                field was wrong.
            StoreUnavailable, StoreOperationFailed: the snapshot could not be read.
        """
        logger.info(f"Validating user with username: {username}")
        users = await self.repository.get_all()

        checked = False
        for user in users:
            if user.username != username or user.password is None:
                continue
            checked = True
            if await asyncio.to_thread(verify_password, password, user.password):
                logger.info(f"User validated successfully: {username}")
                return user.role

        if not checked:
            await asyncio.to_thread(verify_password, password, DUMMY_PASSWORD_HASH)

        logger.warning(f"Invalid username or password for username: {username}")
        raise InvalidCredentials()
