"""Exceptions raised by the EPO OPS client."""

from typing import Optional


class EPOAPIError(Exception):
    """Raised when an EPO OPS API call fails or returns invalid data."""


class AuthError(EPOAPIError):
    """Raised when the client-credentials exchange fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class SearchError(EPOAPIError):
    """Raised when the primary search call returns a non-2xx response."""

    MAX_BODY_CHARS = 200

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = (body or "")[: self.MAX_BODY_CHARS]
        super().__init__(f"EPO search error {status_code}: {self.body}")

    @property
    def error_kind(self) -> str:
        if self.status_code == 429:
            return "rate_limit"
        if self.status_code >= 500:
            return "server"
        return "search"


class EnrichmentError(EPOAPIError):
    """Raised when a per-document bibliographic lookup fails."""

    def __init__(self, doc_id: str, message: str) -> None:
        super().__init__(f"Bibliographic lookup failed for {doc_id}: {message}")
        self.doc_id = doc_id
