"""Shared error types for the DKAN client."""

from __future__ import annotations

from typing import Any, Dict, Optional


class ClientConfigError(Exception):
    """Raised when a client or site profile configuration is invalid or missing."""


class DkanApiError(Exception):
    """Raised when a DKAN request fails.

    ``status_code`` is ``None`` for network-level failures (DNS, refused
    connection, timeout, undecodable body) and holds the HTTP status when the
    server answered with a non-2xx response.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[str] = None,
        timestamp: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response
        self.timestamp = timestamp
        self.data = data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code!r})"


class RequestCancelledError(DkanApiError):
    """Raised when a caller-supplied cancellation signal aborts a request."""

    def __init__(self, message: str = "Request cancelled") -> None:
        super().__init__(message)
