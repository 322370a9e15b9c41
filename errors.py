"""
Errors raised by route handlers and rendered as response envelopes in main.py.
"""

from typing import Any, Dict, Optional

from responses import BAD_REQUEST, NOT_FOUND, SERVER_ERROR, envelope


class CatalogError(Exception):
    base: Dict[str, Any] = SERVER_ERROR

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.base["message"])
        self.message = message

    @property
    def status_code(self) -> int:
        return self.base["code"]

    def to_body(self) -> Dict[str, Any]:
        return envelope(self.base, self.message)


class NotFoundError(CatalogError):
    base = NOT_FOUND


class ValidationFailed(CatalogError):
    base = BAD_REQUEST


class ServerError(CatalogError):
    """Catch-all; the body never carries the underlying cause."""

    base = SERVER_ERROR

    def to_body(self) -> Dict[str, Any]:
        return dict(SERVER_ERROR)
