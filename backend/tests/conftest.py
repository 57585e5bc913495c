# backend/tests/conftest.py
import logging
import time
import copy
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from jose import jwt
from pymongo.errors import DuplicateKeyError
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult
from pytest_mock import MockerFixture
from unittest.mock import AsyncMock

from user_service.core.config import ServiceConfig
from user_service.db.user_repository import UserRepository

logger = logging.getLogger(__name__)


# --- In-memory stand-in for a motor collection ---
# Returns real pymongo result objects; set ``fail_with`` to make every call raise.

class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]], error: Optional[Exception] = None):
        self._docs = docs
        self._error = error

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        if self._error is not None:
            raise self._error
        for doc in self._docs:
            yield copy.deepcopy(doc)


class FakeCollection:
    def __init__(self):
        self.docs: Dict[Any, Dict[str, Any]] = {}
        self.fail_with: Optional[Exception] = None
        self.calls: List[str] = []

    def _enter(self, name: str):
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    async def insert_one(self, doc: Dict[str, Any]) -> InsertOneResult:
        self._enter("insert_one")
        if doc["_id"] in self.docs:
            raise DuplicateKeyError("E11000 duplicate key error collection: Users index: _id_", code=11000)
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        return InsertOneResult(doc["_id"], True)

    async def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._enter("find_one")
        doc = self.docs.get(query["_id"])
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, query: Dict[str, Any]) -> FakeCursor:
        self.calls.append("find")
        return FakeCursor(list(self.docs.values()), self.fail_with)

    async def replace_one(self, query: Dict[str, Any], replacement: Dict[str, Any]) -> UpdateResult:
        self._enter("replace_one")
        key = query["_id"]
        if key not in self.docs:
            return UpdateResult({"n": 0, "nModified": 0}, True)
        modified = self.docs[key] != replacement
        self.docs[key] = copy.deepcopy(replacement)
        return UpdateResult({"n": 1, "nModified": int(modified)}, True)

    async def delete_one(self, query: Dict[str, Any]) -> DeleteResult:
        self._enter("delete_one")
        removed = self.docs.pop(query["_id"], None)
        return DeleteResult({"n": 0 if removed is None else 1}, True)


class FakeAdmin:
    def __init__(self, client: "FakeMongoClient"):
        self._client = client

    async def command(self, name: str) -> Dict[str, Any]:
        if self._client.collection.fail_with is not None:
            raise self._client.collection.fail_with
        return {"ok": 1.0}


class FakeDatabase:
    def __init__(self, client: "FakeMongoClient", name: str):
        self._client = client
        self.name = name

    def __getitem__(self, collection_name: str) -> FakeCollection:
        self._client.collection_names.append(collection_name)
        return self._client.collection


class FakeMongoClient:
    def __init__(self):
        self.collection = FakeCollection()
        self.admin = FakeAdmin(self)
        self.database_names: List[str] = []
        self.collection_names: List[str] = []
        self.closed = False

    def __getitem__(self, database_name: str) -> FakeDatabase:
        self.database_names.append(database_name)
        return FakeDatabase(self, database_name)

    def close(self):
        self.closed = True


# --- Fixtures ---

@pytest.fixture
def service_config() -> ServiceConfig:
    return ServiceConfig(
        signing_key="test-signing-key-0123456789abcdef",
        issuer="http://auth-service",
        audience="http://user-service",
        connection_string="mongodb://localhost:27017",
        database_name="users_test",
        auth_service_url="http://auth-service:8080",
        collection_name="Users",
        admin_role="admin",
    )


@pytest.fixture
def mongo_client() -> FakeMongoClient:
    return FakeMongoClient()


@pytest.fixture
def repository(service_config: ServiceConfig, mongo_client: FakeMongoClient) -> UserRepository:
    return UserRepository(service_config, client=mongo_client)


@pytest.fixture
def make_token(service_config: ServiceConfig):
    """Builds a signed bearer token; claims can be overridden per test."""
    def _make_token(role: Any = "admin", **claims: Any) -> str:
        payload: Dict[str, Any] = {
            "sub": "test-admin",
            "iss": service_config.issuer,
            "aud": service_config.audience,
            "iat": int(time.time()),
            "exp": int(time.time()) + 3600,
        }
        if role is not None:
            payload["role"] = role
        payload.update(claims)
        return jwt.encode(payload, service_config.signing_key, algorithm="HS256")
    return _make_token


@pytest_asyncio.fixture(scope="function")
async def app(
    mocker: MockerFixture,
    service_config: ServiceConfig,
    repository: UserRepository,
) -> AsyncGenerator[FastAPI, None]:
    """FastAPI app with the Vault bootstrap and the Mongo client replaced."""
    mocker.patch("user_service.main.bootstrap_secrets", new=AsyncMock(return_value=service_config))
    mocker.patch("user_service.main.build_user_repository", return_value=repository)

    from user_service.main import app as fastapi_app

    async with LifespanManager(fastapi_app, startup_timeout=15, shutdown_timeout=15):
        yield fastapi_app


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http_client:
        yield http_client
