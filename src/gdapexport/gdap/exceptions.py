"""Custom exception classes for GDAP export operations."""

from typing import Any, Dict, Optional


class GdapExportError(Exception):
    """Base exception for GDAP export operations."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Initialize export error.

        Args:
            message: Error message
            context: Additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class RetrievalError(GdapExportError):
    """Exception raised when a bulk listing call fails and the export cannot continue."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        """Initialize retrieval error.

        Args:
            operation: The listing operation that failed
            cause: Underlying exception raised by the directory client
        """
        message = f"Failed to retrieve {operation}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message, context={"operation": operation})
        self.operation = operation
        self.cause = cause


class PartialFetchError(GdapExportError):
    """A per-relationship or per-assignment fetch that failed and was skipped.

    Instances are recorded by the aggregator for reporting; they are not raised
    past it.
    """

    def __init__(
        self,
        relationship_id: str,
        cause: Optional[BaseException] = None,
        assignment_id: Optional[str] = None,
    ):
        """Initialize partial fetch error.

        Args:
            relationship_id: Relationship being processed
            cause: Underlying exception raised by the directory client
            assignment_id: Assignment being processed, if the failure was assignment-level
        """
        if assignment_id:
            message = (
                f"Failed to fetch access assignment {assignment_id} "
                f"for relationship {relationship_id}"
            )
        else:
            message = f"Failed to list access assignments for relationship {relationship_id}"
        if cause is not None:
            message += f": {cause}"

        super().__init__(
            message,
            context={"relationship_id": relationship_id, "assignment_id": assignment_id},
        )
        self.relationship_id = relationship_id
        self.assignment_id = assignment_id
        self.cause = cause

    @property
    def scope(self) -> str:
        """Return ``assignment`` or ``relationship`` depending on what was skipped."""
        return "assignment" if self.assignment_id else "relationship"
