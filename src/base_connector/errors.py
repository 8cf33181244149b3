from typing import Any


class ConnectorError(Exception):
    """Base class for all errors raised by the Connector"""

    def __init__(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}


class ConnectorWarning(ConnectorError):
    """Base class for all warnings raised by the Connector"""


class ConfigRetrievalError(ConnectorError):
    """Known errors wrapper for config loaders."""


class StateError(ConnectorError):
    """Error raised when the state file cannot be read or written."""


class ConnectorClientError(ConnectorError):
    """Error raised by an API client, with the provider error details when known."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
        status_code: int | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> None:
        super().__init__(message, metadata)
        self.status_code = status_code
        self.error_code = error_code
        self.error_message = error_message


class AuthenticationError(ConnectorClientError):
    """Error raised when no valid token or principal can be obtained."""
