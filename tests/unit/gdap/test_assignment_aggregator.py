"""
Unit tests for the AccessAssignmentAggregator class.

Tests flattening of access assignments into role records including:
- One record per (assignment, role) pair
- Unknown role ids
- Relationship-level and assignment-level failure isolation
- Ordering with sequential and parallel processing
"""

import threading
import time

import pytest

from src.gdapexport.gdap.assignment_aggregator import AccessAssignmentAggregator
from src.gdapexport.gdap.models import (
    UNKNOWN_ROLE,
    AccessAssignment,
    Relationship,
    RoleDefinition,
    RoleMap,
)
from src.gdapexport.graph_clients.directory import AssignmentDetailResult, DirectoryClient
from src.gdapexport.graph_clients.exceptions import GraphAPIError
from tests.fixtures.graph import (
    GLOBAL_READER_ID,
    HELPDESK_ADMIN_ID,
    USER_ADMIN_ID,
    FakeGraphClientManager,
    assignment_detail_payload,
)


def make_relationship(relationship_id, status="active"):
    return Relationship(
        id=relationship_id,
        display_name=f"Contoso-{relationship_id}",
        customer_tenant_id=f"tenant-{relationship_id}",
        status=status,
    )


@pytest.fixture
def role_map():
    return RoleMap.from_definitions(
        [
            RoleDefinition(id=GLOBAL_READER_ID, display_name="Global Reader"),
            RoleDefinition(id=HELPDESK_ADMIN_ID, display_name="Helpdesk Administrator"),
            RoleDefinition(id=USER_ADMIN_ID, display_name="User Administrator"),
        ]
    )


class TestAccessAssignmentAggregator:
    """Test cases for AccessAssignmentAggregator class."""

    def test_unknown_role_gets_sentinel_name(self, role_map):
        """A1 grants X (known) and Y (unknown): two records, one resolved, one sentinel."""
        manager = FakeGraphClientManager(
            assignments={"R1": [assignment_detail_payload("A1", [GLOBAL_READER_ID, "role-y"])]}
        )
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))

        records = aggregator.aggregate([make_relationship("R1")], role_map)

        assert len(records) == 2
        assert records[0].role_definition_id == GLOBAL_READER_ID
        assert records[0].role_display_name == "Global Reader"
        assert records[1].role_definition_id == "role-y"
        assert records[1].role_display_name == UNKNOWN_ROLE
        assert aggregator.failures == []

    def test_records_copy_relationship_fields(self, role_map):
        manager = FakeGraphClientManager(
            assignments={"R1": [assignment_detail_payload("A1", [USER_ADMIN_ID])]}
        )
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))
        relationship = make_relationship("R1", status="expired")

        record = aggregator.aggregate([relationship], role_map)[0]

        assert record.relationship_id == "R1"
        assert record.relationship_name == "Contoso-R1"
        assert record.customer_tenant_id == "tenant-R1"
        assert record.assignment_id == "A1"
        assert record.status == "expired"

    def test_record_count_equals_sum_of_roles(self, role_map):
        manager = FakeGraphClientManager(
            assignments={
                "R1": [
                    assignment_detail_payload("A1", [GLOBAL_READER_ID, HELPDESK_ADMIN_ID]),
                    assignment_detail_payload("A2", [USER_ADMIN_ID]),
                ],
                "R2": [
                    assignment_detail_payload("A3", []),
                    assignment_detail_payload("A4", [GLOBAL_READER_ID, USER_ADMIN_ID, "x"]),
                ],
            }
        )
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))

        records = aggregator.aggregate([make_relationship("R1"), make_relationship("R2")], role_map)

        assert len(records) == 2 + 1 + 0 + 3
        assert aggregator.assignments_seen == 4

    def test_assignment_without_roles_yields_no_records(self, role_map):
        manager = FakeGraphClientManager(assignments={"R1": [assignment_detail_payload("A1", [])]})
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))

        records = aggregator.aggregate([make_relationship("R1")], role_map)

        assert records == []
        assert aggregator.assignments_seen == 1
        assert aggregator.failures == []

    def test_relationship_without_assignments_yields_no_records(self, role_map):
        aggregator = AccessAssignmentAggregator(DirectoryClient(FakeGraphClientManager()))

        assert aggregator.aggregate([make_relationship("R1")], role_map) == []

    def test_no_relationships(self, role_map):
        manager = FakeGraphClientManager()
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))

        assert aggregator.aggregate([], role_map) == []
        assert manager.calls == []

    def test_relationship_listing_failure_is_skipped(self, role_map):
        """R2 assignment listing fails: R2 contributes nothing, R1 records are intact."""
        manager = FakeGraphClientManager(
            assignments={
                "R1": [assignment_detail_payload("A1", [GLOBAL_READER_ID])],
                "R2": [assignment_detail_payload("A2", [USER_ADMIN_ID])],
            },
            fail_assignment_listing={"R2"},
        )
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))

        records = aggregator.aggregate([make_relationship("R1"), make_relationship("R2")], role_map)

        assert [(r.relationship_id, r.assignment_id) for r in records] == [("R1", "A1")]
        assert len(aggregator.failures) == 1
        failure = aggregator.failures[0]
        assert failure.relationship_id == "R2"
        assert failure.scope == "relationship"
        assert isinstance(failure.cause, GraphAPIError)

    def test_assignment_detail_failure_skips_only_that_assignment(self, role_map):
        manager = FakeGraphClientManager(
            assignments={
                "R1": [
                    assignment_detail_payload("A1", [GLOBAL_READER_ID]),
                    assignment_detail_payload("A2", [HELPDESK_ADMIN_ID]),
                    assignment_detail_payload("A3", [USER_ADMIN_ID]),
                ]
            },
            fail_assignment_detail={("R1", "A2")},
        )
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))

        records = aggregator.aggregate([make_relationship("R1")], role_map)

        assert [r.assignment_id for r in records] == ["A1", "A3"]
        assert aggregator.assignments_seen == 3
        assert len(aggregator.failures) == 1
        assert aggregator.failures[0].scope == "assignment"
        assert aggregator.failures[0].assignment_id == "A2"

    def test_failures_do_not_leak_between_runs(self, role_map):
        manager = FakeGraphClientManager(fail_assignment_listing={"R1"})
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))

        aggregator.aggregate([make_relationship("R1")], role_map)
        assert len(aggregator.failures) == 1

        manager.fail_assignment_listing.clear()
        aggregator.aggregate([make_relationship("R1")], role_map)
        assert aggregator.failures == []

    def test_unexpected_exception_is_isolated(self, role_map):
        directory = DirectoryClient(FakeGraphClientManager())

        def broken(relationship_id):
            if relationship_id == "R1":
                raise RuntimeError("connection reset")
            return [AssignmentDetailResult("A9")]

        directory.get_access_assignments_with_details = broken
        aggregator = AccessAssignmentAggregator(directory)

        records = aggregator.aggregate([make_relationship("R1"), make_relationship("R2")], role_map)

        assert records == []
        assert [f.relationship_id for f in aggregator.failures] == ["R1", "R2"]
        assert aggregator.failures[1].scope == "assignment"

    @pytest.mark.parametrize("max_workers", [1, 4])
    def test_malformed_role_id_skips_only_that_assignment(self, role_map, max_workers):
        """R1 detail carries a list as roleDefinitionId; R2 records survive."""
        bad_detail = assignment_detail_payload("A1", [])
        bad_detail["accessDetails"]["unifiedRoles"] = [{"roleDefinitionId": ["x"]}]
        manager = FakeGraphClientManager(
            assignments={
                "R1": [bad_detail, assignment_detail_payload("A3", [HELPDESK_ADMIN_ID])],
                "R2": [assignment_detail_payload("A2", [GLOBAL_READER_ID])],
            }
        )
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager), max_workers=max_workers)

        records = aggregator.aggregate([make_relationship("R1"), make_relationship("R2")], role_map)

        assert [(r.relationship_id, r.assignment_id) for r in records] == [
            ("R1", "A3"),
            ("R2", "A2"),
        ]
        assert len(aggregator.failures) == 1
        assert aggregator.failures[0].assignment_id == "A1"
        assert isinstance(aggregator.failures[0].cause, ValueError)

    def test_flatten_failure_is_isolated(self, role_map):
        directory = DirectoryClient(FakeGraphClientManager())
        broken = AccessAssignment(id="A1", relationship_id="R1", role_definition_ids=(["x"],))
        good = AccessAssignment(id="A2", relationship_id="R1", role_definition_ids=(USER_ADMIN_ID,))
        directory.get_access_assignments_with_details = lambda relationship_id: [
            AssignmentDetailResult("A1", assignment=broken),
            AssignmentDetailResult("A2", assignment=good),
        ]
        aggregator = AccessAssignmentAggregator(directory)

        records = aggregator.aggregate([make_relationship("R1")], role_map)

        assert [r.assignment_id for r in records] == ["A2"]
        assert [f.assignment_id for f in aggregator.failures] == ["A1"]
        assert isinstance(aggregator.failures[0].cause, TypeError)

    def test_listed_assignment_without_id_is_skipped(self, role_map):
        manager = FakeGraphClientManager(
            assignments={"R1": [assignment_detail_payload("A1", [GLOBAL_READER_ID])]}
        )
        manager.get_all = lambda path, params=None, key="value": [{}, {"id": "A1"}]
        aggregator = AccessAssignmentAggregator(DirectoryClient(manager))

        records = aggregator.aggregate([make_relationship("R1")], role_map)

        assert [r.assignment_id for r in records] == ["A1"]
        assert len(aggregator.failures) == 1
        assert aggregator.failures[0].scope == "assignment"

    def test_max_workers_lower_bound(self):
        directory = DirectoryClient(FakeGraphClientManager())

        assert AccessAssignmentAggregator(directory, max_workers=0).max_workers == 1
        assert AccessAssignmentAggregator(directory, max_workers=-3).max_workers == 1


class TestParallelAggregation:
    """Concurrent processing keeps the sequential output."""

    @pytest.fixture
    def manager(self):
        assignments = {
            f"R{i}": [
                assignment_detail_payload(f"A{i}-1", [GLOBAL_READER_ID, HELPDESK_ADMIN_ID]),
                assignment_detail_payload(f"A{i}-2", [USER_ADMIN_ID]),
            ]
            for i in range(12)
        }
        return FakeGraphClientManager(assignments=assignments, fail_assignment_listing={"R5"})

    @pytest.fixture
    def relationships(self):
        return [make_relationship(f"R{i}") for i in range(12)]

    def test_parallel_matches_sequential(self, manager, relationships, role_map):
        sequential = AccessAssignmentAggregator(DirectoryClient(manager), max_workers=1)
        parallel = AccessAssignmentAggregator(DirectoryClient(manager), max_workers=6)

        expected = sequential.aggregate(relationships, role_map)
        actual = parallel.aggregate(relationships, role_map)

        assert actual == expected
        assert [f.relationship_id for f in parallel.failures] == ["R5"]
        assert parallel.assignments_seen == sequential.assignments_seen == 22

    def test_parallel_preserves_input_order_when_completion_order_differs(
        self, relationships, role_map
    ):
        directory = DirectoryClient(FakeGraphClientManager())
        delays = {r.id: (len(relationships) - i) * 0.005 for i, r in enumerate(relationships)}

        def slow_details(relationship_id):
            time.sleep(delays[relationship_id])
            detail = assignment_detail_payload(f"A-{relationship_id}", [GLOBAL_READER_ID])
            return [
                AssignmentDetailResult(
                    f"A-{relationship_id}",
                    assignment=AccessAssignment.from_api(relationship_id, detail),
                )
            ]

        directory.get_access_assignments_with_details = slow_details
        aggregator = AccessAssignmentAggregator(directory, max_workers=4)

        records = aggregator.aggregate(relationships, role_map)

        assert [r.relationship_id for r in records] == [r.id for r in relationships]

    def test_concurrency_is_bounded(self, relationships, role_map):
        directory = DirectoryClient(FakeGraphClientManager())
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def tracked(relationship_id):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1
            return []

        directory.get_access_assignments_with_details = tracked
        aggregator = AccessAssignmentAggregator(directory, max_workers=3)

        aggregator.aggregate(relationships, role_map)

        assert 1 <= state["peak"] <= 3
