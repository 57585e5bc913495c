# backend/tests/functional/services/test_credential_validator.py
import asyncio

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from user_service.core.exceptions import InvalidCredentials, StoreUnavailable
from user_service.core.passwords import hash_password
from user_service.db.user_repository import UserRepository
from user_service.models.enums import Role
from user_service.models.user import User
from user_service.services import credential_validator
from user_service.services.credential_validator import DUMMY_PASSWORD_HASH, CredentialValidator


async def add_user(repository: UserRepository, username, password, role=Role.USER) -> User:
    return await repository.create(
        User(username=username, password=hash_password(password) if password else None, role=role)
    )


@pytest.fixture
def validator(repository: UserRepository) -> CredentialValidator:
    return CredentialValidator(repository)


async def test_exact_match_returns_role(repository, validator):
    await add_user(repository, "bob", "secret", Role.CUSTOMER)
    await add_user(repository, "alice", "p1", Role.ADMIN)

    assert await validator.validate("alice", "p1") == Role.ADMIN


async def test_matched_user_without_role_returns_none(repository, validator):
    await add_user(repository, "carol", "pw", role=None)
    assert await validator.validate("carol", "pw") is None


@pytest.mark.parametrize(
    "username, password",
    [
        ("alice", "wrong"),
        ("mallory", "p1"),
        ("Alice", "p1"),
        ("alice", "P1"),
        ("", ""),
    ],
)
async def test_partial_or_no_match_is_rejected(repository, validator, username, password):
    await add_user(repository, "alice", "p1")
    with pytest.raises(InvalidCredentials) as exc_info:
        await validator.validate(username, password)
    assert str(exc_info.value) == "Invalid username or password"


async def test_empty_store_rejects(validator):
    with pytest.raises(InvalidCredentials):
        await validator.validate("alice", "p1")


async def test_user_without_password_never_matches(repository, validator):
    await add_user(repository, "ghost", None)
    with pytest.raises(InvalidCredentials):
        await validator.validate("ghost", "")


async def test_plaintext_stored_password_never_matches(repository, validator):
    await repository.create(User(username="legacy", password="p1", role=Role.USER))
    with pytest.raises(InvalidCredentials):
        await validator.validate("legacy", "p1")


async def test_duplicate_usernames_first_full_match_wins(repository, validator):
    await add_user(repository, "dup", "first", Role.CUSTOMER)
    await add_user(repository, "dup", "second", Role.ADMIN)
    await add_user(repository, "dup", "second", Role.USER)

    assert await validator.validate("dup", "first") == Role.CUSTOMER
    assert await validator.validate("dup", "second") == Role.ADMIN


async def test_validation_reads_current_state(repository, validator):
    user = await add_user(repository, "alice", "p1")
    await repository.update(user.id, user.model_copy(update={"username": "alice2"}))

    with pytest.raises(InvalidCredentials):
        await validator.validate("alice", "p1")
    assert await validator.validate("alice2", "p1") == Role.USER


async def test_long_password_validates(repository, validator):
    await add_user(repository, "alice", "x" * 100, Role.USER)
    assert await validator.validate("alice", "x" * 100) == Role.USER


async def test_store_unavailable_propagates(repository, validator, mongo_client):
    await add_user(repository, "alice", "p1")
    mongo_client.collection.fail_with = ServerSelectionTimeoutError("No servers found")
    with pytest.raises(StoreUnavailable):
        await validator.validate("alice", "p1")


async def test_password_checks_run_off_the_event_loop(repository, validator, mocker):
    await add_user(repository, "alice", "p1")
    to_thread = mocker.spy(asyncio, "to_thread")

    await validator.validate("alice", "p1")

    to_thread.assert_called_once()
    assert to_thread.call_args.args[0] is credential_validator.verify_password


async def test_unknown_username_still_checks_a_hash(repository, validator, mocker):
    await add_user(repository, "alice", "p1")
    verify = mocker.patch.object(credential_validator, "verify_password", return_value=False)

    with pytest.raises(InvalidCredentials):
        await validator.validate("mallory", "p1")

    verify.assert_called_once_with("p1", DUMMY_PASSWORD_HASH)


async def test_known_username_skips_dummy_check(repository, validator, mocker):
    await add_user(repository, "alice", "p1")
    verify = mocker.patch.object(credential_validator, "verify_password", return_value=False)

    with pytest.raises(InvalidCredentials):
        await validator.validate("alice", "wrong")

    verify.assert_called_once()
    assert verify.call_args.args[1] != DUMMY_PASSWORD_HASH
