# user_service/api/v1/endpoints/users.py

import asyncio
import uuid
import logging
from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from user_service.api.deps import get_credential_validator, get_user_repository, require_admin
from user_service.core.exceptions import InvalidCredentials
from user_service.core.passwords import hash_password
from user_service.db.user_repository import UserRepository
from user_service.models.user import LoginRequest, User, UserPublic, ValidateResponse
from user_service.services.credential_validator import CredentialValidator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

RepositoryDep = Annotated[UserRepository, Depends(get_user_repository)]


async def _with_hashed_password(user: User) -> User:
    if user.password is None:
        return user
    hashed = await asyncio.to_thread(hash_password, user.password)
    return user.model_copy(update={"password": hashed})


# --- GET /users/{user_id} ---
@router.get(
    "/{user_id}",
    name="get_user_by_id",
    response_model=UserPublic,
    status_code=status.HTTP_200_OK,
    summary="Get a user by ID",
    responses={404: {"description": "User not found"}},
)
async def get_user(user_id: uuid.UUID, repository: RepositoryDep):
    logger.info(f"Getting user with ID: {user_id}")
    user = await repository.get_by_id(user_id)
    if user is None:
        logger.warning(f"User with ID: {user_id} not found")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# --- GET /users ---
@router.get(
    "",
    response_model=List[UserPublic],
    status_code=status.HTTP_200_OK,
    summary="List all users",
)
async def get_all_users(repository: RepositoryDep):
    logger.info("Getting all users")
    return await repository.get_all()


# --- POST /users (Admin Only) ---
@router.post(
    "",
    response_model=UserPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user (Admin Only)",
    responses={
        401: {"description": "Missing or invalid bearer token"},
        403: {"description": "Caller does not hold the admin role"},
        409: {"description": "A user with this ID already exists"},
    },
)
async def create_user(
    new_user: User,
    request: Request,
    response: Response,
    repository: RepositoryDep,
    admin_payload: Annotated[Dict[str, Any], Depends(require_admin)],
):
    # Any client-supplied id is discarded
    new_user = (await _with_hashed_password(new_user)).model_copy(update={"id": uuid.uuid4()})
    created_user = await repository.create(new_user)
    logger.info(f"Admin {admin_payload.get('sub')} added new user with ID: {created_user.id}")
    response.headers["Location"] = str(request.url_for("get_user_by_id", user_id=str(created_user.id)))
    return created_user


# --- PUT /users/{user_id} ---
@router.put(
    "/{user_id}",
    response_model=UserPublic,
    status_code=status.HTTP_200_OK,
    summary="Replace a user",
    description="Full replace of the stored record. The path ID always wins over any ID in the body.",
    responses={404: {"description": "User not found"}},
)
async def update_user(user_id: uuid.UUID, updated_user: User, repository: RepositoryDep):
    existing_user = await repository.get_by_id(user_id)
    if existing_user is None:
        logger.warning(f"User with ID: {user_id} not found")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    updated = await repository.update(user_id, await _with_hashed_password(updated_user))
    if updated is None:
        # Deleted between the lookup and the replace
        logger.warning(f"User with ID: {user_id} disappeared before update")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    logger.info(f"Updated user with ID: {user_id}")
    return updated


# --- DELETE /users/{user_id} ---
@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a user",
    responses={
        404: {"description": "User not found"},
        500: {"description": "The store reported nothing deleted after the user was found"},
    },
)
async def delete_user(user_id: uuid.UUID, repository: RepositoryDep):
    existing_user = await repository.get_by_id(user_id)
    if existing_user is None:
        logger.warning(f"User with ID: {user_id} not found")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    deleted = await repository.delete(user_id)
    if not deleted:
        logger.error(f"Failed to delete user with ID: {user_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete user")

    logger.info(f"Deleted user with ID: {user_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- POST /users/validate ---
@router.post(
    "/validate",
    response_model=ValidateResponse,
    status_code=status.HTTP_200_OK,
    summary="Check a username/password pair",
    responses={401: {"description": "Invalid username or password"}},
)
async def validate_user(
    login: LoginRequest,
    validator: Annotated[CredentialValidator, Depends(get_credential_validator)],
):
    try:
        role = await validator.validate(login.username, login.password)
    except InvalidCredentials as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    return ValidateResponse(role=role)
