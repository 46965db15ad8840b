"""Microsoft Graph client layer for gdapexport."""

from .directory import AssignmentDetailResult, DirectoryClient
from .exceptions import AuthenticationError, ConfigurationError, GraphAPIError
from .manager import GraphClientManager

__all__ = [
    "GraphClientManager",
    "DirectoryClient",
    "AssignmentDetailResult",
    "GraphAPIError",
    "AuthenticationError",
    "ConfigurationError",
]
