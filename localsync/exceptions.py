# LocalSync Exceptions
# Error hierarchy shared by the client, daemon and CLI


class LocalSyncError(Exception):
    """Base exception for localsync operations."""


class ConfigError(LocalSyncError):
    """Raised when configuration is missing or invalid."""


class ApiError(LocalSyncError):
    """Exception raised when a server call fails."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class SourceNotFoundError(LocalSyncError):
    """Raised when a source id is unknown to the server."""


class UnsafePathError(LocalSyncError):
    """Raised when a relative path would escape the sync root."""
