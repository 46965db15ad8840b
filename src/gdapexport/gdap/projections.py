"""
Table projections consumed by the export renderers.

Each view is a named output shape over the pipeline results. The views do not
reshape data; pivoting the matrix view is left to the renderers.
"""

from typing import Any, Dict, Iterable, List, Sequence

from .models import FlattenedRoleRecord, Relationship, as_plain_dict

RELATIONSHIPS_VIEW = "relationships"
ROLE_SUMMARY_VIEW = "role_summary"
ROLE_MATRIX_VIEW = "role_matrix"

VIEW_NAMES = (RELATIONSHIPS_VIEW, ROLE_SUMMARY_VIEW, ROLE_MATRIX_VIEW)


def relationships_view(relationships: Sequence[Relationship]) -> Sequence[Relationship]:
    """The filtered relationships, unmodified."""
    return relationships


def role_summary_view(records: Sequence[FlattenedRoleRecord]) -> Sequence[FlattenedRoleRecord]:
    """One row per role grant."""
    return records


def role_matrix_view(records: Sequence[FlattenedRoleRecord]) -> Sequence[FlattenedRoleRecord]:
    """The role grants, for relationship x role matrix rendering."""
    return records


def to_rows(items: Iterable[Any]) -> List[Dict[str, Any]]:
    """Convert view items to plain dictionaries keyed by the renderer field names."""
    return [as_plain_dict(item) for item in items]
