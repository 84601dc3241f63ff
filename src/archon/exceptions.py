"""
Exception classes for the Archon console.

All exceptions inherit from ArchonError and provide structured error
information with codes, messages, and optional details. Background
operations collapse any of these into a single failed completion.
"""

from typing import Optional


class ArchonError(Exception):
    """Base exception for all Archon errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ArchonError):
    """Raised when user-supplied entity data is rejected."""

    pass


class NetworkError(ArchonError):
    """Raised on transport-level failures (connect, read, protocol)."""

    pass


class AuthError(ArchonError):
    """Raised when a request cannot be authenticated."""

    pass


class NotFoundError(ArchonError):
    """Raised when a referenced resource does not exist."""

    pass


class ServerError(ArchonError):
    """Raised when a remote node answers with a non-2xx status."""

    def __init__(
        self,
        status: int,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.status = status
        super().__init__(
            code="server_error",
            message=f"Server error: {status} - {message}",
            details={"status": status, "body": message, **(details or {})},
        )


class InvalidResponseError(ArchonError):
    """Raised when a successful response body has the wrong shape."""

    pass


class RequestTimeoutError(ArchonError):
    """Raised when a remote request exceeds the transport deadline."""

    pass


class ProviderError(ArchonError):
    """Raised when a DNS provider operation fails or is unsupported."""

    pass


class ConfigError(ArchonError):
    """Raised when the persisted inventory cannot be read, parsed, or written."""

    pass
