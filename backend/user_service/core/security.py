# user_service/core/security.py
"""
Bearer token validation for the user service.

Tokens are issued by the auth service and signed (HS256) with the signing key
bootstrapped from Vault. Validation checks signature, expiry, issuer and
audience. Role checks are layered on top in ``user_service.api.deps``.

Example Usage in Endpoints:
    ```python
    from fastapi import APIRouter, Depends
    from typing import Dict, Any
    from user_service.core.security import get_current_user_payload

    router = APIRouter()

    @router.get("/protected-resource")
    async def get_protected_resource(
        payload: Dict[str, Any] = Depends(get_current_user_payload)
    ):
        return {"message": f"Hello {payload.get('sub')}"}
    ```
"""

import logging
from typing import Any, Dict, List, Optional

from jose import jwt, exceptions as jose_exceptions

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from user_service.core.config import ServiceConfig

logger = logging.getLogger(__name__)

ALGORITHMS = ["HS256"]

# Claim names that may carry the caller's role(s)
ROLE_CLAIMS = (
    "role",
    "roles",
    "http://schemas.microsoft.com/ws/2008/06/identity/claims/role",
)

# --- Custom Exceptions ---
class SecurityError(Exception):
    """Base class for security-related exceptions."""
    pass

class TokenValidationError(SecurityError):
    """Raised when token validation fails (expiry, signature, claims, etc.)."""
    pass


# --- JWT Validation ---

def validate_token(token: str, config: ServiceConfig) -> Dict[str, Any]:
    """
    Decodes and validates a JWT.

    Args:
        token: The encoded JWT string (access token).
        config: Service configuration holding signing key, issuer and audience.

    Returns:
        The decoded token payload if validation is successful.

    Raises:
        TokenValidationError: If the signature, expiry or claims are invalid.
    """
    try:
        payload = jwt.decode(
            token,
            config.signing_key,
            algorithms=ALGORITHMS,
            audience=config.audience,
            issuer=config.issuer,
        )
    except jose_exceptions.ExpiredSignatureError as e:
        raise TokenValidationError("Token validation failed: Expired signature.") from e
    except jose_exceptions.JWTClaimsError as e:
        raise TokenValidationError(f"Token validation failed: Invalid claims - {e}") from e
    except jose_exceptions.JWTError as e:
        raise TokenValidationError(f"Token validation failed: Invalid token - {e}") from e
    logger.debug("Token successfully validated.")
    return payload


def extract_roles(payload: Dict[str, Any]) -> List[str]:
    """Collects role values from every known role claim (string or list)."""
    roles: List[str] = []
    for claim in ROLE_CLAIMS:
        value = payload.get(claim)
        if isinstance(value, str):
            roles.append(value)
        elif isinstance(value, (list, tuple)):
            roles.extend(str(v) for v in value)
    return roles


# --- FastAPI Dependency for Authentication ---

bearer_scheme = HTTPBearer(auto_error=False)

async def get_current_user_payload(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """
    FastAPI dependency returning the validated token payload.

    Raises:
        HTTPException(401): If the token is missing, invalid or expired.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication attempt failed: No token provided.")
        raise credentials_exception

    config: ServiceConfig = request.app.state.config
    try:
        return validate_token(credentials.credentials, config)
    except TokenValidationError as e:
        logger.warning(f"Authentication failed: {e}")
        raise credentials_exception from e
