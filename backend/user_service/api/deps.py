import logging
from typing import Any, Dict, Annotated

from fastapi import Depends, HTTPException, Request, status

from user_service.core.config import ServiceConfig
from user_service.core.security import get_current_user_payload, extract_roles
from user_service.db.user_repository import UserRepository
from user_service.services.credential_validator import CredentialValidator

logger = logging.getLogger(__name__)


def get_service_config(request: Request) -> ServiceConfig:
    """Configuration built by the startup bootstrap."""
    return request.app.state.config


def get_user_repository(request: Request) -> UserRepository:
    """The process-wide repository built after the bootstrap."""
    return request.app.state.user_repository


def get_credential_validator(
    repository: Annotated[UserRepository, Depends(get_user_repository)]
) -> CredentialValidator:
    return CredentialValidator(repository)


async def require_admin(
    config: Annotated[ServiceConfig, Depends(get_service_config)],
    payload: Annotated[Dict[str, Any], Depends(get_current_user_payload)],
) -> Dict[str, Any]:
    """Verify the caller's token carries the configured admin role."""
    roles = extract_roles(payload)
    if config.admin_role not in roles:
        logger.warning(
            f"User {payload.get('sub')} (Roles: {roles}) denied: requires role '{config.admin_role}'."
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return payload
