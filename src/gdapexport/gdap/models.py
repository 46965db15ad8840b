"""
Data models for GDAP export operations.

This module defines the core data structures used while exporting delegated admin
relationships, role definitions and access assignments from Microsoft Graph.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

# Display name used when a role definition id cannot be resolved
UNKNOWN_ROLE = "Unknown Role"

ACTIVE_STATUS = "active"
EXPIRED_STATUSES = frozenset({"expired", "terminated"})


class StatusFilter(Enum):
    """Enumeration of relationship status filters."""

    ACTIVE_ONLY = "active"
    EXPIRED_ONLY = "expired"
    BOTH = "both"

    @classmethod
    def from_string(cls, value: str) -> "StatusFilter":
        """Parse a CLI/config value such as ``active`` or ``ExpiredOnly``."""
        normalized = value.strip().lower().replace("_", "").replace("-", "")
        aliases = {
            "active": cls.ACTIVE_ONLY,
            "activeonly": cls.ACTIVE_ONLY,
            "expired": cls.EXPIRED_ONLY,
            "expiredonly": cls.EXPIRED_ONLY,
            "both": cls.BOTH,
            "all": cls.BOTH,
        }
        if normalized not in aliases:
            raise ValueError(
                f"Invalid status filter '{value}'. Valid values: active, expired, both"
            )
        return aliases[normalized]

    def matches(self, status: Optional[str]) -> bool:
        """Check whether a relationship status passes this filter."""
        if self is StatusFilter.BOTH:
            return True
        if self is StatusFilter.ACTIVE_ONLY:
            return status == ACTIVE_STATUS
        return status in EXPIRED_STATUSES


@dataclass(frozen=True)
class Relationship:
    """A delegated admin relationship between the partner and one customer tenant."""

    id: str
    display_name: str
    customer_tenant_id: str
    status: str
    customer_display_name: Optional[str] = None
    created_date_time: Optional[str] = None
    activated_date_time: Optional[str] = None
    end_date_time: Optional[str] = None
    duration: Optional[str] = None
    auto_extend_duration: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Relationship":
        """Build a relationship from a Graph ``delegatedAdminRelationship`` payload."""
        customer = payload.get("customer") or {}
        return cls(
            id=payload.get("id", ""),
            display_name=payload.get("displayName", ""),
            customer_tenant_id=customer.get("tenantId", ""),
            status=payload.get("status", ""),
            customer_display_name=customer.get("displayName"),
            created_date_time=payload.get("createdDateTime"),
            activated_date_time=payload.get("activatedDateTime"),
            end_date_time=payload.get("endDateTime"),
            duration=payload.get("duration"),
            auto_extend_duration=payload.get("autoExtendDuration"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the renderer row shape."""
        return {
            "relationshipId": self.id,
            "relationshipName": self.display_name,
            "customerTenantId": self.customer_tenant_id,
            "customerName": self.customer_display_name,
            "status": self.status,
            "createdDateTime": self.created_date_time,
            "activatedDateTime": self.activated_date_time,
            "endDateTime": self.end_date_time,
            "duration": self.duration,
            "autoExtendDuration": self.auto_extend_duration,
        }


@dataclass(frozen=True)
class RoleDefinition:
    """A directory role definition."""

    id: str
    display_name: str
    description: Optional[str] = None
    is_built_in: Optional[bool] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "RoleDefinition":
        """Build a role definition from a Graph ``unifiedRoleDefinition`` payload."""
        return cls(
            id=payload.get("id", ""),
            display_name=payload.get("displayName", ""),
            description=payload.get("description"),
            is_built_in=payload.get("isBuiltIn"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roleDefinitionId": self.id,
            "roleDisplayName": self.display_name,
            "description": self.description,
            "isBuiltIn": self.is_built_in,
        }


@dataclass
class RoleMap:
    """Role definitions indexed by id and by display name."""

    by_id: Dict[str, RoleDefinition] = field(default_factory=dict)
    by_name: Dict[str, RoleDefinition] = field(default_factory=dict)

    @classmethod
    def from_definitions(cls, definitions: Iterable[RoleDefinition]) -> "RoleMap":
        """Index definitions; a repeated display name keeps the last definition seen."""
        role_map = cls()
        for definition in definitions:
            role_map.by_id[definition.id] = definition
            role_map.by_name[definition.display_name] = definition
        return role_map

    def resolve_name(self, role_definition_id: str) -> str:
        """Return the display name for a role id, or UNKNOWN_ROLE on a miss."""
        definition = self.by_id.get(role_definition_id)
        if definition is None or not definition.display_name:
            return UNKNOWN_ROLE
        return definition.display_name

    def __len__(self) -> int:
        return len(self.by_id)


@dataclass(frozen=True)
class AccessAssignment:
    """An access assignment under a relationship, with its unified role ids."""

    id: str
    relationship_id: str
    role_definition_ids: Tuple[str, ...] = ()
    status: Optional[str] = None
    access_container_id: Optional[str] = None
    access_container_type: Optional[str] = None

    @classmethod
    def from_api(
        cls, relationship_id: str, detail: Dict[str, Any], assignment_id: str = ""
    ) -> "AccessAssignment":
        """
        Build an assignment from a Graph ``delegatedAdminAccessAssignment`` detail payload.

        Args:
            relationship_id: Id of the parent relationship
            detail: Payload returned by the per-assignment detail call
            assignment_id: Id from the listing call, used when the payload omits it

        Returns:
            AccessAssignment with the role ids listed under accessDetails.unifiedRoles

        Raises:
            ValueError: If a unified role carries a role definition id that is not a string
        """
        access_details = detail.get("accessDetails") or {}
        unified_roles = access_details.get("unifiedRoles") or []
        container = detail.get("accessContainer") or {}

        role_ids = []
        for role in unified_roles:
            role_id = role.get("roleDefinitionId") if isinstance(role, dict) else None
            if not role_id:
                continue
            if not isinstance(role_id, str):
                raise ValueError(
                    f"Malformed roleDefinitionId in access assignment "
                    f"{detail.get('id') or assignment_id}: {role_id!r}"
                )
            role_ids.append(role_id)

        return cls(
            id=detail.get("id") or assignment_id,
            relationship_id=relationship_id,
            role_definition_ids=tuple(role_ids),
            status=detail.get("status"),
            access_container_id=container.get("accessContainerId"),
            access_container_type=container.get("accessContainerType"),
        )


@dataclass(frozen=True)
class FlattenedRoleRecord:
    """One (assignment, role) grant with its relationship context copied in."""

    relationship_id: str
    relationship_name: str
    customer_tenant_id: str
    assignment_id: str
    role_definition_id: str
    role_display_name: str
    status: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the renderer row shape."""
        return {
            "relationshipId": self.relationship_id,
            "relationshipName": self.relationship_name,
            "customerTenantId": self.customer_tenant_id,
            "assignmentId": self.assignment_id,
            "roleDefinitionId": self.role_definition_id,
            "roleDisplayName": self.role_display_name,
            "status": self.status,
        }


RECORD_FIELDS = (
    "relationshipId",
    "relationshipName",
    "customerTenantId",
    "assignmentId",
    "roleDefinitionId",
    "roleDisplayName",
    "status",
)

RELATIONSHIP_FIELDS = (
    "relationshipId",
    "relationshipName",
    "customerTenantId",
    "customerName",
    "status",
    "createdDateTime",
    "activatedDateTime",
    "endDateTime",
    "duration",
    "autoExtendDuration",
)


def as_plain_dict(item: Any) -> Dict[str, Any]:
    """Convert a model instance (or a plain dict) to a dict for rendering."""
    if isinstance(item, dict):
        return dict(item)
    if hasattr(item, "to_dict"):
        return item.to_dict()
    return asdict(item)
