# mediavault/errors.py
"""
Error kinds raised by registry operations.

Every error carries a stable numeric code and a kind name so that hosts
can surface failures without depending on Python class names.
"""

from typing import Any, Dict, Optional


class RegistryError(Exception):
    """Base class for all registry failures."""

    code = 0
    kind = "RegistryError"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "code": self.code, "message": self.message}


class ContentMissing(RegistryError):
    code = 1
    kind = "ContentMissing"


class ContentAlreadyExists(RegistryError):
    code = 2
    kind = "ContentAlreadyExists"


class InvalidMetadata(RegistryError):
    code = 3
    kind = "InvalidMetadata"


class FileSizeViolation(RegistryError):
    code = 4
    kind = "FileSizeViolation"


class UnauthorizedAccess(RegistryError):
    """Reserved by the registry core; raised by the gateway for bad signatures."""
    code = 5
    kind = "UnauthorizedAccess"


class OwnershipMismatch(RegistryError):
    code = 6
    kind = "OwnershipMismatch"


class AdminPrivilegesRequired(RegistryError):
    """Reserved."""
    code = 7
    kind = "AdminPrivilegesRequired"


class ViewingRestricted(RegistryError):
    code = 8
    kind = "ViewingRestricted"


class TagValidationFailed(RegistryError):
    code = 9
    kind = "TagValidationFailed"


class MalformedCall(RegistryError):
    """Raised by the gateway when arguments do not fit the named operation."""
    code = 10
    kind = "MalformedCall"


class SnapshotError(Exception):
    """A persisted snapshot could not be read back."""

