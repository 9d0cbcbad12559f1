# mediavault - Media metadata registry with ownership and view permissions
#
# An authoritative registry of media asset metadata. Each entry has one
# owning principal; reads are gated by explicit per-entry grants.
#
# Core concepts:
# - ContentRecord: Metadata for one asset (title, size, description, tags)
# - ContentVault: Map from numeric content id to record
# - SequenceCounter: Source of ids, never reused
# - AccessMatrix: Explicit (content, principal) view grants
# - MediaRegistry: The operations, serialized behind one lock

from .errors import (
    RegistryError,
    ContentMissing,
    ContentAlreadyExists,
    InvalidMetadata,
    FileSizeViolation,
    UnauthorizedAccess,
    OwnershipMismatch,
    AdminPrivilegesRequired,
    ViewingRestricted,
    TagValidationFailed,
    SnapshotError,
)
from .validation import is_valid_tag, is_valid_tag_collection
from .vault import ContentRecord, ContentVault, SequenceCounter
from .access import AccessMatrix
from .clock import BlockClock
from .journal import RegistryEvent, EventLog
from .registry import MediaRegistry, ContentView, VaultStatistics, PermissionReport
from .snapshot import SnapshotStore
from .config import RegistryConfig
from .identity import Identity, CallEnvelope, sign_call, verify_call
from .gateway import CallGateway

__all__ = [
    # Errors
    "RegistryError",
    "ContentMissing",
    "ContentAlreadyExists",
    "InvalidMetadata",
    "FileSizeViolation",
    "UnauthorizedAccess",
    "OwnershipMismatch",
    "AdminPrivilegesRequired",
    "ViewingRestricted",
    "TagValidationFailed",
    "SnapshotError",
    # Core
    "is_valid_tag",
    "is_valid_tag_collection",
    "ContentRecord",
    "ContentVault",
    "SequenceCounter",
    "AccessMatrix",
    "BlockClock",
    "RegistryEvent",
    "EventLog",
    "MediaRegistry",
    "ContentView",
    "VaultStatistics",
    "PermissionReport",
    # Hosting
    "SnapshotStore",
    "RegistryConfig",
    "Identity",
    "CallEnvelope",
    "sign_call",
    "verify_call",
    "CallGateway",
]

__version__ = "0.1.0"
