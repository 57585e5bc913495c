# user_service/core/exceptions.py
"""Failure kinds raised by the bootstrap, the repository and the validator.

Absence ("no such user") is never one of these: lookups return ``None``.
HTTP status mapping happens only in ``user_service.main``.
"""


class UserServiceError(Exception):
    """Base class for all service errors."""
    pass


# --- Startup ---

class ConfigurationError(UserServiceError):
    """Fatal, startup-only: the process must not serve traffic."""
    pass


class ConfigurationMissing(ConfigurationError):
    """A required configuration value or secret is absent or empty."""

    def __init__(self, field: str, source: str):
        self.field = field
        self.source = source
        super().__init__(f"Required value '{field}' not found at {source}.")


class SecretStoreUnavailable(ConfigurationError):
    """The secret store could not be reached or refused the request."""
    pass


# --- Caller errors ---

class InvalidArgument(UserServiceError, ValueError):
    """Empty id, missing payload and similar caller mistakes."""
    pass


class DuplicateKey(UserServiceError):
    """The document store reported a uniqueness conflict."""
    pass


class InvalidCredentials(UserServiceError):
    """No user matched the supplied username and password."""

    def __init__(self):
        super().__init__("Invalid username or password")


# --- Store faults ---

class StoreError(UserServiceError):
    def __init__(self, operation: str, detail: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {detail}")


class StoreUnavailable(StoreError):
    """The document store could not be reached."""
    pass


class StoreOperationFailed(StoreError):
    """The document store was reached but the operation failed."""
    pass
