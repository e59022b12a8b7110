"""
Error kinds and exceptions shared by the upstream client, the store and the engine.

Callers branch on `ErrorKind`, never on message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    CONNECTION_UNSTABLE = "connection_unstable"
    INVALID_CREDENTIALS = "invalid_credentials"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_SERVER_ERROR = "upstream_server_error"
    UPSTREAM_REJECTED = "upstream_rejected"
    PERSISTENCE = "persistence"


class MovieFinderError(Exception):
    kind: ErrorKind = ErrorKind.UPSTREAM_REJECTED


class ConfigurationError(MovieFinderError):
    """Deployment error, e.g. a missing provider credential."""

    kind = ErrorKind.INVALID_CREDENTIALS


class UpstreamError(MovieFinderError):
    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.operation = operation

    @property
    def retryable(self) -> bool:
        return self.kind in (ErrorKind.CONNECTION_UNSTABLE, ErrorKind.UPSTREAM_SERVER_ERROR)

    @property
    def fatal(self) -> bool:
        return self.kind is ErrorKind.INVALID_CREDENTIALS

    def __repr__(self) -> str:
        return (
            f"UpstreamError(kind={self.kind.value}, status_code={self.status_code}, "
            f"operation={self.operation}, message={self.message!r})"
        )


class SeedNotFound(UpstreamError):
    def __init__(self, movie_id: int, message: Optional[str] = None):
        super().__init__(
            ErrorKind.NOT_FOUND,
            message or f"movie ID {movie_id} not found",
            status_code=404,
        )
        self.movie_id = movie_id


class PersistenceError(MovieFinderError):
    kind = ErrorKind.PERSISTENCE
