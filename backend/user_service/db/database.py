# user_service/db/database.py
import motor.motor_asyncio
import logging
from typing import Dict, Any, TYPE_CHECKING
from datetime import datetime, timezone

from pymongo.errors import ConfigurationError as MongoConfigurationError

from user_service.core.config import ServiceConfig
from user_service.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from user_service.db.user_repository import UserRepository

logger = logging.getLogger(__name__)


def create_mongo_client(config: ServiceConfig) -> motor.motor_asyncio.AsyncIOMotorClient:
    """
    Builds the motor client for the configured connection string.

    The client connects lazily; a malformed connection string fails here,
    an unreachable server fails on first use.
    """
    logger.info(f"Configuring MongoDB client for database: '{config.database_name}'")
    try:
        return motor.motor_asyncio.AsyncIOMotorClient(
            config.connection_string,
            serverSelectionTimeoutMS=config.server_selection_timeout_ms,
            uuidRepresentation='standard',
        )
    except MongoConfigurationError as e:
        logger.critical(f"Invalid MongoDB connection string: {e}")
        raise ConfigurationError(f"Invalid MongoDB connection string: {e}") from e


async def check_database_health(repository: "UserRepository") -> Dict[str, Any]:
    """
    Pings the store behind the repository.

    Returns:
        Dict containing status, database/collection names, error and timestamp.
    """
    health_info = {
        "status": "OK",
        "connected": False,
        "database": repository.database_name,
        "collection": repository.collection_name,
        "error": None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        await repository.ping()
        health_info["connected"] = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        health_info.update({
            "status": "ERROR",
            "connected": False,
            "error": str(e),
        })
    return health_info
