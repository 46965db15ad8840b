"""Unit tests for the RoleDefinitionResolver class."""

from unittest.mock import Mock

import pytest

from src.gdapexport.gdap.exceptions import RetrievalError
from src.gdapexport.gdap.models import UNKNOWN_ROLE
from src.gdapexport.gdap.role_resolver import RoleDefinitionResolver
from src.gdapexport.graph_clients.directory import DirectoryClient
from src.gdapexport.graph_clients.exceptions import GraphAPIError
from tests.fixtures.graph import (
    GLOBAL_READER_ID,
    HELPDESK_ADMIN_ID,
    FakeGraphClientManager,
    role_definition_payload,
)


class TestRoleDefinitionResolver:
    """Test cases for RoleDefinitionResolver class."""

    @pytest.fixture
    def resolver(self):
        return RoleDefinitionResolver(DirectoryClient(FakeGraphClientManager()))

    def test_fetch_all_builds_both_indices(self, resolver):
        role_map = resolver.fetch_all()

        assert len(role_map) == 3
        assert role_map.by_id[GLOBAL_READER_ID].display_name == "Global Reader"
        assert role_map.by_name["Helpdesk Administrator"].id == HELPDESK_ADMIN_ID

    def test_by_name_entries_agree_with_by_id(self, resolver):
        role_map = resolver.fetch_all()

        for name, definition in role_map.by_name.items():
            assert role_map.by_id[definition.id].display_name == name

    def test_resolve_known_and_unknown_ids(self, resolver):
        role_map = resolver.fetch_all()

        assert role_map.resolve_name(GLOBAL_READER_ID) == "Global Reader"
        assert role_map.resolve_name("not-a-role") == UNKNOWN_ROLE

    def test_duplicate_display_names_keep_last_definition(self):
        manager = FakeGraphClientManager(
            role_definitions=[
                role_definition_payload("role-a", "Custom Auditor", built_in=False),
                role_definition_payload("role-b", "Custom Auditor", built_in=False),
            ]
        )
        resolver = RoleDefinitionResolver(DirectoryClient(manager))

        role_map = resolver.fetch_all()

        assert len(role_map.by_id) == 2
        assert len(role_map.by_name) == 1
        assert role_map.by_name["Custom Auditor"].id == "role-b"
        assert role_map.resolve_name("role-a") == "Custom Auditor"

    def test_empty_role_list_gives_empty_map(self):
        manager = FakeGraphClientManager(role_definitions=[])
        resolver = RoleDefinitionResolver(DirectoryClient(manager))

        role_map = resolver.fetch_all()

        assert len(role_map) == 0
        assert role_map.resolve_name(GLOBAL_READER_ID) == UNKNOWN_ROLE

    def test_listing_failure_raises_retrieval_error(self):
        manager = FakeGraphClientManager(fail_role_listing=True)
        resolver = RoleDefinitionResolver(DirectoryClient(manager))

        with pytest.raises(RetrievalError) as exc_info:
            resolver.fetch_all()

        assert exc_info.value.operation == "role definitions"
        assert "Failed to retrieve role definitions" in str(exc_info.value)

    def test_failure_is_logged(self):
        directory = Mock(spec=DirectoryClient)
        directory.list_role_definitions.side_effect = GraphAPIError(500, "boom")
        logger = Mock()
        bound = Mock()
        logger.bind.return_value = bound
        resolver = RoleDefinitionResolver(directory, logger=logger)

        with pytest.raises(RetrievalError):
            resolver.fetch_all()

        bound.error.assert_called_once()
        assert "boom" in bound.error.call_args[0][0]
