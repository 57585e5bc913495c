# backend/tests/functional/core/test_security.py
import time

import pytest
from jose import jwt

from user_service.core.config import ServiceConfig
from user_service.core.security import (
    TokenValidationError,
    SecurityError,
    extract_roles,
    validate_token,
)


def test_valid_token_returns_payload(service_config: ServiceConfig, make_token):
    payload = validate_token(make_token(role="admin"), service_config)
    assert payload["sub"] == "test-admin"
    assert payload["role"] == "admin"


def test_expired_token_is_rejected(service_config: ServiceConfig, make_token):
    token = make_token(exp=int(time.time()) - 60)
    with pytest.raises(TokenValidationError, match="Expired"):
        validate_token(token, service_config)


def test_wrong_audience_is_rejected(service_config: ServiceConfig, make_token):
    with pytest.raises(TokenValidationError):
        validate_token(make_token(aud="someone-else"), service_config)


def test_wrong_issuer_is_rejected(service_config: ServiceConfig, make_token):
    with pytest.raises(TokenValidationError):
        validate_token(make_token(iss="http://evil"), service_config)


def test_wrong_signing_key_is_rejected(service_config: ServiceConfig):
    token = jwt.encode(
        {"sub": "x", "iss": service_config.issuer, "aud": service_config.audience, "exp": int(time.time()) + 60},
        "another-key",
        algorithm="HS256",
    )
    with pytest.raises(SecurityError):
        validate_token(token, service_config)


def test_garbage_token_is_rejected(service_config: ServiceConfig):
    with pytest.raises(TokenValidationError):
        validate_token("not-a-jwt", service_config)


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"role": "admin"}, ["admin"]),
        ({"roles": ["user", "admin"]}, ["user", "admin"]),
        ({"http://schemas.microsoft.com/ws/2008/06/identity/claims/role": "admin"}, ["admin"]),
        ({"sub": "x"}, []),
    ],
)
def test_extract_roles(payload, expected):
    assert extract_roles(payload) == expected
