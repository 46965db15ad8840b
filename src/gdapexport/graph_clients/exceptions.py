"""Exceptions raised by the Microsoft Graph client layer."""

from typing import Optional


class GraphAPIError(Exception):
    """Microsoft Graph request failure (HTTP error or transport error)."""

    def __init__(self, status_code: int, message: str, url: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.url = url
        detail = f"Graph API error {status_code}: {message}"
        if url:
            detail += f" ({url})"
        super().__init__(detail)

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)


class AuthenticationError(GraphAPIError):
    """Token acquisition failed."""

    def __init__(self, message: str):
        super().__init__(401, message)


class ConfigurationError(Exception):
    """Required Graph settings (tenant, client id, secret) are missing or invalid."""
