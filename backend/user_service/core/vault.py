# user_service/core/vault.py
"""
Secret bootstrap against HashiCorp Vault (KV version 2).

Runs exactly once, before the repository or the token validation are built:

1. ``secret/Secrets``     -> ``Secret``, ``Issuer``, ``Audience``
2. ``secret/Connections`` -> ``mongoConnectionString``, ``MongoDbDatabaseName``,
   ``AuthServiceUrl``

Any missing or empty field aborts startup with ``ConfigurationMissing``. There
is no partial mode and no refresh: rotating a secret means restarting the
process.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from user_service.core.config import Settings, ServiceConfig, settings as default_settings
from user_service.core.exceptions import (
    ConfigurationError,
    ConfigurationMissing,
    SecretStoreUnavailable,
)

logger = logging.getLogger(__name__)

# Bundle attribute -> key inside the Vault secret
SIGNING_FIELDS: Dict[str, str] = {
    "signing_key": "Secret",
    "issuer": "Issuer",
    "audience": "Audience",
}
CONNECTION_FIELDS: Dict[str, str] = {
    "connection_string": "mongoConnectionString",
    "database_name": "MongoDbDatabaseName",
    "auth_service_url": "AuthServiceUrl",
}


class SecretBundle(BaseModel):
    signing_key: str
    issuer: str
    audience: str
    connection_string: str
    database_name: str
    auth_service_url: str

    model_config = ConfigDict(frozen=True)


def resolve_tls_verify(settings: Settings) -> bool:
    """Return whether Vault's certificate must be verified.

    Skipping verification is only honoured outside production.
    """
    if not settings.VAULT_SKIP_VERIFY:
        return True
    if settings.is_production:
        raise ConfigurationError(
            "VAULT_SKIP_VERIFY is not allowed when ENVIRONMENT is 'production'."
        )
    logger.warning("Bypassing Vault TLS certificate validation. [Development ONLY]")
    return False


async def read_secret(client: httpx.AsyncClient, path: str, mount_point: str) -> Dict[str, Any]:
    """Read one KV v2 secret and return its key/value data.

    A 404 yields an empty mapping so the caller reports the first missing field.
    """
    source = f"{mount_point}/{path}"
    logger.info(f"Fetching secret group from Vault path '{source}'...")
    try:
        response = await client.get(f"/v1/{mount_point}/data/{path}")
        if response.status_code == 404:
            logger.error(f"Vault path '{source}' does not exist.")
            return {}
        response.raise_for_status()
        body = response.json()
    except httpx.HTTPStatusError as e:
        raise SecretStoreUnavailable(
            f"Vault refused read of '{source}' (HTTP {e.response.status_code})."
        ) from e
    except httpx.RequestError as e:
        raise SecretStoreUnavailable(f"Could not reach Vault for '{source}': {e}") from e
    except ValueError as e:
        raise SecretStoreUnavailable(f"Invalid JSON from Vault for '{source}': {e}") from e

    data = (body.get("data") or {}).get("data")
    if not isinstance(data, dict):
        logger.error(f"Vault response for '{source}' has no 'data.data' section.")
        return {}
    return data


def _require_fields(data: Dict[str, Any], fields: Dict[str, str], source: str) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for attribute, key in fields.items():
        value = data.get(key)
        if value is None or not str(value).strip():
            raise ConfigurationMissing(key, source)
        values[attribute] = str(value)
    return values


async def fetch_secrets(
    settings: Settings = default_settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SecretBundle:
    """Authenticate to Vault with the pre-shared token and read both secret groups."""
    if not settings.VAULT_TOKEN:
        raise ConfigurationMissing("VAULT_TOKEN", "environment")

    verify = resolve_tls_verify(settings)
    mount = settings.VAULT_MOUNT_POINT
    logger.info(f"Using Vault address: {settings.VAULT_ADDR}")
    logger.info(f"Using Vault token (length): {len(settings.VAULT_TOKEN)}")

    async with httpx.AsyncClient(
        base_url=settings.VAULT_ADDR,
        headers={"X-Vault-Token": settings.VAULT_TOKEN},
        verify=verify,
        timeout=settings.VAULT_TIMEOUT_SECONDS,
        transport=transport,
    ) as client:
        signing = await read_secret(client, settings.VAULT_SIGNING_PATH, mount)
        signing_values = _require_fields(
            signing, SIGNING_FIELDS, f"{mount}/{settings.VAULT_SIGNING_PATH}"
        )
        logger.info("JWT parameters loaded from Vault.")

        connections = await read_secret(client, settings.VAULT_CONNECTION_PATH, mount)
        connection_values = _require_fields(
            connections, CONNECTION_FIELDS, f"{mount}/{settings.VAULT_CONNECTION_PATH}"
        )
        logger.info("Connection parameters (MongoDB, AuthServiceUrl) loaded from Vault.")

    return SecretBundle(**signing_values, **connection_values)


def build_service_config(bundle: SecretBundle, settings: Settings = default_settings) -> ServiceConfig:
    return ServiceConfig(
        **bundle.model_dump(),
        collection_name=settings.COLLECTION_NAME,
        admin_role=settings.ADMIN_ROLE,
        server_selection_timeout_ms=settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
    )


async def bootstrap_secrets(
    settings: Settings = default_settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceConfig:
    """Fetch and validate all secrets, or raise a ``ConfigurationError``."""
    try:
        bundle = await fetch_secrets(settings, transport=transport)
    except ConfigurationError as e:
        logger.critical(f"CRITICAL ERROR fetching secrets from Vault. Application cannot start: {e}")
        raise
    return build_service_config(bundle, settings)
