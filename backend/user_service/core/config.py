# user_service/core/config.py
import os
import logging
from dotenv import load_dotenv
from pathlib import Path
from typing import Optional, List
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

# --- Path Setup & .env Loading ---
# .env lives in the backend project root, two levels up from core
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_PATH = BASE_DIR / '.env'

if ENV_PATH.is_file():
    load_dotenv(dotenv_path=ENV_PATH)
else:
    # Logger is not configured yet at this point
    print(f"Warning: .env file not found at {ENV_PATH}. Relying on system environment variables.")

PRODUCTION = "production"

# --- Pydantic Settings Class ---
class Settings(BaseSettings):
    """Process settings read from the environment.

    Secrets (signing key, connection string, ...) are not read here:
    they are fetched from Vault at startup, see ``user_service.core.vault``.
    """
    PROJECT_NAME: str = "UserService"
    DEBUG: bool = False
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = PRODUCTION
    API_V1_PREFIX: str = "/api/v1"

    # Vault Settings
    VAULT_ADDR: str = "https://vaulthost:8201"
    VAULT_TOKEN: Optional[str] = None
    VAULT_MOUNT_POINT: str = "secret"
    VAULT_SIGNING_PATH: str = "Secrets"
    VAULT_CONNECTION_PATH: str = "Connections"
    VAULT_SKIP_VERIFY: bool = False
    VAULT_TIMEOUT_SECONDS: float = 10.0

    # Database Settings (connection string and db name come from Vault)
    COLLECTION_NAME: str = "Users"
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 10000

    # Authorization
    ADMIN_ROLE: str = "admin"

    CORS_ORIGINS: List[str] = [
        "http://localhost:8080",
        "http://localhost:8081",
        "https://localhost:8081",
        "http://localhost:4000",
    ]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == PRODUCTION


class ServiceConfig(BaseModel):
    """Immutable configuration assembled once the Vault bootstrap succeeded.

    Every component that needs a secret receives this object through its
    constructor.
    """
    signing_key: str
    issuer: str
    audience: str
    connection_string: str
    database_name: str
    auth_service_url: str
    collection_name: str = "Users"
    admin_role: str = "admin"
    server_selection_timeout_ms: int = 10000

    model_config = ConfigDict(frozen=True)


settings = Settings()

# --- Logging Setup ---
LOG_LEVEL_NAME: str = os.getenv("LOG_LEVEL", "INFO").upper()
if settings.DEBUG:
    LOG_LEVEL_NAME = "DEBUG"

ACTUAL_LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)

logging.basicConfig(
    level=ACTUAL_LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logging.getLogger('uvicorn').setLevel(logging.WARNING)
logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
logging.getLogger('fastapi').setLevel(logging.INFO if settings.DEBUG else logging.WARNING)
logging.getLogger('motor').setLevel(logging.WARNING)
logging.getLogger('pymongo').setLevel(logging.WARNING)
logging.getLogger('httpx').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# --- Validate critical settings after loading ---
if not settings.VAULT_TOKEN:
    logger.warning("VAULT_TOKEN environment variable is not set. Startup will fail at the secret bootstrap.")
if settings.VAULT_SKIP_VERIFY and settings.is_production:
    logger.warning("VAULT_SKIP_VERIFY is set in a production environment. It will be rejected at startup.")

if settings.DEBUG:
    logger.debug(f"PROJECT_NAME: {settings.PROJECT_NAME}")
    logger.debug(f"ENVIRONMENT: {settings.ENVIRONMENT}")
    logger.debug(f"API_V1_PREFIX: {settings.API_V1_PREFIX}")
    logger.debug(f"VAULT_ADDR: {settings.VAULT_ADDR}")
    logger.debug(f"VAULT_TOKEN Set: {'Yes' if settings.VAULT_TOKEN else 'No - CRITICAL'}")
    logger.debug(f"COLLECTION_NAME: {settings.COLLECTION_NAME}")
