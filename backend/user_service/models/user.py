# user_service/models/user.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
import uuid

from .enums import Role

# Shared profile properties. JSON uses camelCase (postalCode, emailAddress, ...).
class UserBase(BaseModel):
    username: Optional[str] = Field(None, description="Login name (not unique at storage level)")
    role: Optional[Role] = Field(None, description="Authorization level of the user")
    name: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    email_address: Optional[str] = None
    phone_number: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

# Full record as stored and passed to the repository
class User(UserBase):
    id: Optional[uuid.UUID] = Field(None, description="Server-assigned identifier")
    password: Optional[str] = Field(None, description="Stored password (bcrypt hash when written through the API)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "alice",
                "password": "p1",
                "role": "User",
                "name": "Alice Andersen",
                "address1": "Main Street 1",
                "postalCode": "8000",
                "city": "Aarhus",
                "emailAddress": "alice@example.com",
                "phoneNumber": "+45 12345678",
            }
        }
    )

# API response model: never exposes the password
class UserPublic(UserBase):
    id: uuid.UUID


class LoginRequest(BaseModel):
    username: str
    password: str


class ValidateResponse(BaseModel):
    role: Optional[Role] = None
