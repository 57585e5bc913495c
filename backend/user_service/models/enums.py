# user_service/models/enums.py

from enum import Enum


class Role(str, Enum):
    """Closed set of roles a user record may carry."""
    ADMIN = "Admin"
    USER = "User"
    CUSTOMER = "Customer"
