# user_service/db/user_repository.py
"""User repository backed by a MongoDB collection (motor).

Each operation is a single round trip. There is no cross-operation atomicity
and no optimistic concurrency: concurrent updates to one id are last writer
wins. Nothing is retried; store faults surface immediately as
``StoreUnavailable`` or ``StoreOperationFailed``.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Union

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from user_service.core.config import ServiceConfig
from user_service.core.exceptions import (
    ConfigurationMissing,
    DuplicateKey,
    InvalidArgument,
    StoreOperationFailed,
    StoreUnavailable,
)
from user_service.db.database import create_mongo_client
from user_service.models.user import User

logger = logging.getLogger(__name__)

NIL_UUID = uuid.UUID(int=0)

UserId = Union[uuid.UUID, str]


def _to_document(user: User) -> Dict[str, Any]:
    doc = user.model_dump(by_alias=True, mode="json")
    doc["_id"] = doc.pop("id")
    return doc


def _to_model(doc: Dict[str, Any]) -> User:
    data = dict(doc)
    data["id"] = data.pop("_id", None)
    return User.model_validate(data)


class UserRepository:
    """CRUD access to the users collection."""

    def __init__(self, config: ServiceConfig, client: Optional[AsyncIOMotorClient] = None):
        required = {
            "connection_string": config.connection_string,
            "database_name": config.database_name,
            "collection_name": config.collection_name,
        }
        for field, value in required.items():
            if not value or not value.strip():
                logger.critical(f"{field} is missing from the service configuration. Cannot build repository.")
                raise ConfigurationMissing(field, "service configuration")

        self.database_name = config.database_name
        self.collection_name = config.collection_name
        self.client = client if client is not None else create_mongo_client(config)
        self.collection: AsyncIOMotorCollection = self.client[config.database_name][config.collection_name]
        logger.info(f"Using database: {self.database_name}")
        logger.info(f"Using collection: {self.collection_name}")

    # --- helpers ---

    @staticmethod
    def _require_id(user_id: Optional[UserId], operation: str) -> uuid.UUID:
        if user_id is None or user_id == "":
            logger.error(f"{operation}: user id is empty")
            raise InvalidArgument("Invalid user ID")
        if not isinstance(user_id, uuid.UUID):
            try:
                user_id = uuid.UUID(str(user_id))
            except ValueError as e:
                logger.error(f"{operation}: user id '{user_id}' is not a UUID")
                raise InvalidArgument("Invalid user ID") from e
        if user_id == NIL_UUID:
            logger.error(f"{operation}: user id is the nil UUID")
            raise InvalidArgument("Invalid user ID")
        return user_id

    @contextmanager
    def _store_errors(self, operation: str, user_id: Optional[uuid.UUID] = None):
        """Translate driver errors into the service's store failure kinds."""
        context = f"{operation} (id={user_id})" if user_id else operation
        try:
            yield
        except DuplicateKeyError as e:
            logger.error(f"{context}: duplicate key: {e}")
            raise DuplicateKey(f"A user with ID {user_id} already exists.") from e
        except ConnectionFailure as e:
            logger.error(f"{context}: MongoDB unavailable: {e}")
            raise StoreUnavailable(context, str(e)) from e
        except PyMongoError as e:
            logger.error(f"{context}: MongoDB operation failed: {e}", exc_info=True)
            raise StoreOperationFailed(context, str(e)) from e

    # --- operations ---

    async def create(self, user: Optional[User]) -> User:
        """Insert ``user``; an empty id is replaced by a fresh UUID4."""
        if user is None:
            logger.error("create: user payload is None")
            raise InvalidArgument("User must not be None")
        if user.id is None or user.id == NIL_UUID:
            user = user.model_copy(update={"id": uuid.uuid4()})

        with self._store_errors("create", user.id):
            await self.collection.insert_one(_to_document(user))
        logger.info(f"User created with ID: {user.id}, Username: {user.username}, Role: {user.role}")
        return user

    async def get_by_id(self, user_id: Optional[UserId]) -> Optional[User]:
        """Return the user or ``None`` when no record has this id."""
        uid = self._require_id(user_id, "get_by_id")
        with self._store_errors("get_by_id", uid):
            doc = await self.collection.find_one({"_id": str(uid)})
        if doc is None:
            logger.info(f"User {uid} not found.")
            return None
        logger.info(f"User retrieved with ID: {uid}")
        return _to_model(doc)

    async def get_all(self) -> List[User]:
        """Snapshot of every stored user, in store iteration order."""
        logger.info("Retrieving all users")
        with self._store_errors("get_all"):
            return [_to_model(doc) async for doc in self.collection.find({})]

    async def update(self, user_id: Optional[UserId], updated_user: Optional[User]) -> Optional[User]:
        """Replace the whole record. The ``user_id`` argument wins over ``updated_user.id``."""
        uid = self._require_id(user_id, "update")
        if updated_user is None:
            logger.error(f"update: payload for user {uid} is None")
            raise InvalidArgument("Updated user must not be None")

        replacement = updated_user.model_copy(update={"id": uid})
        with self._store_errors("update", uid):
            result = await self.collection.replace_one({"_id": str(uid)}, _to_document(replacement))
        if result.matched_count == 0:
            logger.warning(f"User with ID: {uid} not found for update")
            return None
        logger.info(f"User updated with ID: {uid} (modified={result.modified_count})")
        return replacement

    async def delete(self, user_id: Optional[UserId]) -> bool:
        uid = self._require_id(user_id, "delete")
        with self._store_errors("delete", uid):
            result = await self.collection.delete_one({"_id": str(uid)})
        if result.deleted_count == 0:
            logger.warning(f"User with ID: {uid} not found for delete")
            return False
        logger.info(f"User deleted with ID: {uid}")
        return True

    async def ping(self) -> None:
        with self._store_errors("ping"):
            await self.client.admin.command("ping")

    def close(self) -> None:
        logger.info("Closing MongoDB connection...")
        self.client.close()
