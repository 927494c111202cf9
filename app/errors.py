"""Exception types shared by the adapters, repositories and services."""
from typing import Optional


class RankingsError(Exception):
    """Base class for all MCU Rankings errors."""


class ConfigError(RankingsError):
    """Raised when the configuration file or environment is unusable."""


class FetchError(RankingsError):
    """Raised when a backend read or write fails.

    Attributes:
        message: Raw error message reported by the backend.
        status:  HTTP status code when the backend is remote, else ``None``.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class AuthError(RankingsError):
    """Raised when the auth backend rejects or cannot process a request.

    ``code`` is ``'invalid_credentials'`` for a wrong email/password pair so
    callers can tell a bad password apart from every other failure.
    """

    INVALID_CREDENTIALS = 'invalid_credentials'

    def __init__(self, message: str, code: str = 'error') -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_invalid_credentials(self) -> bool:
        return self.code == self.INVALID_CREDENTIALS


class ValidationError(RankingsError):
    """Raised for user input rejected before any backend call."""


class NotFoundError(RankingsError):
    """Raised when an edit targets an item the backend does not have."""
