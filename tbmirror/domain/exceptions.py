"""Domain-specific exceptions — framework-independent."""


class PlatformError(Exception):
    """Raised when the platform REST API answers with a non-2xx status.

    ``error_code`` carries the platform's own error taxonomy value (the
    ``errorCode`` body field) when present; it is what the device restore
    uses to tell an "already exists" conflict from a hard failure.
    """

    def __init__(self, status_code: int, message: str, error_code: int | None = None):
        self.status_code = status_code
        self.message = message
        self.error_code = error_code
        super().__init__(f"[{status_code}] {message}")


class AuthenticationError(PlatformError):
    """Raised when the session token is missing, expired or rejected."""

    def __init__(self, message: str = "Authentication failed", status_code: int = 401):
        super().__init__(status_code=status_code, message=message)


class EntityNotFoundError(Exception):
    """Raised when a name lookup finds no live entity of the requested kind."""

    def __init__(self, entity_type: str, name: str):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} {name} not found!")


class ConfigurationError(Exception):
    """Raised when settings are not usable (no platform URL, no token)."""


class TreeStoreError(Exception):
    """Raised when the backup tree is missing a required directory."""
