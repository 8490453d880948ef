"""
Error taxonomy for the RESO OData client.

Every failure surfaced by the client is a ResoError carrying a closed
ErrorKind, a human-readable message and, for HTTP-level failures, the
originating status code.
"""

from enum import Enum
from typing import Dict, Any, Optional


class ErrorKind(Enum):
    """Closed set of error kinds."""
    CONFIG = "config"
    NETWORK = "network"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    ODATA_ERROR = "odata_error"
    PARSE = "parse"
    INVALID_QUERY = "invalid_query"


RETRYABLE_KINDS = frozenset({
    ErrorKind.NETWORK,
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVER_ERROR,
})


class ResoError(Exception):
    """Base class for all client errors."""

    kind: ErrorKind = ErrorKind.ODATA_ERROR

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        """Whether callers conventionally retry this kind of failure."""
        return self.kind in RETRYABLE_KINDS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            'kind': self.kind.value,
            'message': self.message,
            'status_code': self.status_code,
            'retryable': self.is_retryable
        }

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.kind.value} ({self.status_code}): {self.message}"
        return f"{self.kind.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status_code={self.status_code!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResoError):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.message == other.message
            and self.status_code == other.status_code
        )

    def __hash__(self) -> int:
        return hash((self.kind, self.message, self.status_code))


class ConfigurationError(ResoError):
    """Raised when configuration is invalid or incomplete."""
    kind = ErrorKind.CONFIG


class NetworkError(ResoError):
    """Raised on transport-level failures (connect, DNS, timeout)."""
    kind = ErrorKind.NETWORK


class UnauthorizedError(ResoError):
    """Raised on HTTP 401."""
    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(ResoError):
    """Raised on HTTP 403."""
    kind = ErrorKind.FORBIDDEN


class NotFoundError(ResoError):
    """Raised on HTTP 404."""
    kind = ErrorKind.NOT_FOUND


class RateLimitError(ResoError):
    """Raised when rate limits are exceeded (HTTP 429)."""
    kind = ErrorKind.RATE_LIMITED


class ServerError(ResoError):
    """Raised on HTTP 5xx."""
    kind = ErrorKind.SERVER_ERROR


class ODataError(ResoError):
    """Raised on any other non-success status."""
    kind = ErrorKind.ODATA_ERROR


class ParseError(ResoError):
    """Raised when a success body does not have the expected shape."""
    kind = ErrorKind.PARSE


class InvalidQueryError(ResoError):
    """Raised when a query violates its construction rules."""
    kind = ErrorKind.INVALID_QUERY


ERROR_CLASSES = {
    cls.kind: cls
    for cls in (
        ConfigurationError, NetworkError, UnauthorizedError, ForbiddenError,
        NotFoundError, RateLimitError, ServerError, ODataError, ParseError,
        InvalidQueryError,
    )
}
