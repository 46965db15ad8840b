"""
Role definition resolution for GDAP export.

Role ids found on access assignments are turned into display names through a
RoleMap built once per run from the directory role definitions.
"""

from typing import Optional

from ..graph_clients.directory import DirectoryClient
from ..utils.logging_config import ContextLogger, component_logger
from .exceptions import RetrievalError
from .models import RoleDefinition, RoleMap


class RoleDefinitionResolver:
    """Retrieves all role definitions and indexes them by id and by name."""

    def __init__(self, directory: DirectoryClient, logger: Optional[ContextLogger] = None):
        self.directory = directory
        self.logger = logger or component_logger("role_resolver", __name__)

    def fetch_all(self) -> RoleMap:
        """
        Build the role lookup indices.

        Returns:
            RoleMap with ``by_id`` (authoritative) and ``by_name`` (last write wins)

        Raises:
            RetrievalError: If the role definitions cannot be listed
        """
        log = self.logger.bind(operation="fetch_all")

        try:
            payloads = self.directory.list_role_definitions()
        except Exception as e:
            log.error(f"Error retrieving role definitions: {str(e)}")
            raise RetrievalError("role definitions", e) from e

        definitions = [RoleDefinition.from_api(payload) for payload in payloads]
        role_map = RoleMap.from_definitions(definitions)

        duplicates = len(definitions) - len(role_map.by_name)
        if duplicates > 0:
            log.debug(f"{duplicates} role definition(s) share a display name with another role")

        log.info(f"Resolved {len(role_map.by_id)} role definitions")
        return role_map
