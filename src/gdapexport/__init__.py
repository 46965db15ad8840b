"""gdapexport - export GDAP relationships, roles and access assignments from Microsoft Graph."""

from .gdap.exceptions import GdapExportError, PartialFetchError, RetrievalError
from .gdap.models import (
    UNKNOWN_ROLE,
    AccessAssignment,
    FlattenedRoleRecord,
    Relationship,
    RoleDefinition,
    RoleMap,
    StatusFilter,
)
from .gdap.pipeline import ExportResult, GdapExportPipeline


# Version will be set by build system
def _get_version():
    """Get the version from package metadata or pyproject.toml."""
    try:
        from importlib.metadata import PackageNotFoundError, version

        return version("gdapexport")
    except PackageNotFoundError:
        # Fallback for development checkouts that were never installed
        import re
        from pathlib import Path

        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        if not pyproject_path.exists():
            raise RuntimeError(f"Could not find pyproject.toml at {pyproject_path}")

        with open(pyproject_path, "r", encoding="utf-8") as f:
            content = f.read()
            version_match = re.search(r'version\s*=\s*["\']([^"\']+)["\']', content)
            if not version_match:
                raise RuntimeError("Could not find version in pyproject.toml")
            return version_match.group(1)


__version__ = _get_version()

__all__ = [
    "__version__",
    # Models
    "StatusFilter",
    "Relationship",
    "RoleDefinition",
    "RoleMap",
    "AccessAssignment",
    "FlattenedRoleRecord",
    "UNKNOWN_ROLE",
    # Pipeline
    "GdapExportPipeline",
    "ExportResult",
    # Errors
    "GdapExportError",
    "RetrievalError",
    "PartialFetchError",
]
