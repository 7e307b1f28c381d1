"""
Custom exception hierarchy for the 123pan offline-download driver.
The API client raises these; driver-level operations catch them at their
boundary and turn them into False / empty results.
"""


class Pan123Error(Exception):
    """Base exception for all driver errors."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


# Configuration errors
class ConfigurationError(Pan123Error):
    """Raised when there's a configuration problem."""

    pass


class MissingCredentialsError(ConfigurationError):
    """Raised when required credentials are missing."""

    pass


# Remote API errors
class Pan123ClientError(Pan123Error):
    """Base exception for 123pan API errors."""

    pass


class TransportError(Pan123ClientError):
    """Raised when the HTTP layer fails (connection error, non-2xx status)."""

    def __init__(self, message: str, status: int | None = None, details: str | None = None):
        super().__init__(message, details)
        self.status = status


class ProviderResponseError(Pan123ClientError):
    """Raised when the provider answers with a non-success code or an unexpected shape."""

    def __init__(self, message: str, code: int | None = None, details: str | None = None):
        super().__init__(message, details)
        self.code = code


class AuthenticationError(Pan123ClientError):
    """Raised when credentials are rejected or no usable token is available."""

    pass


class ConsistencyError(Pan123ClientError):
    """Raised when an entity is still not visible after a mutating call."""

    def __init__(self, message: str, parent_id: int | None = None, name: str | None = None):
        super().__init__(message)
        self.parent_id = parent_id
        self.name = name


# Torrent input errors
class TorrentReadError(Pan123Error):
    """Raised when a torrent or magnet file cannot be turned into a magnet link."""

    def __init__(self, path: str, message: str | None = None):
        super().__init__(message or f"Cannot read magnet from: {path}")
        self.path = path
