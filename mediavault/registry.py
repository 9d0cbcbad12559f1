# mediavault/registry.py
"""
The media vault registry state machine.

MediaRegistry composes the content vault, the sequence counter and the
access matrix behind one lock. Every public call checks all of its
preconditions before it touches state, so a refused call changes nothing.

Example:
    registry = MediaRegistry(master_authority="mv1admin")
    content_id = registry.register("alice", "Sunset", 2048, "Beach at dusk", ["photo"])
    view = registry.retrieve("alice", content_id)
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .access import AccessMatrix
from .clock import BlockClock
from .errors import ContentAlreadyExists, ContentMissing, OwnershipMismatch, RegistryError, ViewingRestricted
from .journal import (
    CONTENT_DELETED,
    CONTENT_MODIFIED,
    CONTENT_REGISTERED,
    OWNERSHIP_TRANSFERRED,
    PERMISSION_SET,
    EventLog,
)
from .validation import validate_metadata
from .vault import ContentRecord, ContentVault, SequenceCounter

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0"


@dataclass
class ContentView:
    """Read-only view of a record returned by retrieve()."""
    content_id: int
    title: str
    owner: str
    size_bytes: int
    created_at: int
    description: str
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, content_id: int, record: ContentRecord) -> "ContentView":
        return cls(
            content_id=content_id,
            title=record.title,
            owner=record.owner,
            size_bytes=record.size_bytes,
            created_at=record.created_at,
            description=record.description,
            tags=list(record.tags),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_id": self.content_id,
            "title": self.title,
            "owner": self.owner,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
            "description": self.description,
            "tags": list(self.tags),
        }


@dataclass
class VaultStatistics:
    total_registered: int
    master_authority: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_registered": self.total_registered,
            "master_authority": self.master_authority,
        }


@dataclass
class PermissionReport:
    has_explicit_permission: bool
    is_owner: bool
    can_access: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_explicit_permission": self.has_explicit_permission,
            "is_owner": self.is_owner,
            "can_access": self.can_access,
        }


class MediaRegistry:
    """
    Authoritative registry of media metadata, ownership and view grants.

    All state lives on the instance. Calls are serialized by a single
    re-entrant lock, so one registry can be shared between threads.
    """

    def __init__(
        self,
        master_authority: str,
        clock: Optional[BlockClock] = None,
        prune_orphaned_grants: bool = False,
    ):
        """
        Args:
            master_authority: Principal that initialized the registry (fixed)
            clock: Logical clock used for created_at stamps
            prune_orphaned_grants: If True, delete() also drops the record's grants
        """
        if not master_authority:
            raise ValueError("master_authority is required")
        self._master_authority = master_authority
        self.clock = clock or BlockClock()
        self.prune_orphaned_grants = prune_orphaned_grants

        self.vault = ContentVault()
        self.counter = SequenceCounter()
        self.access = AccessMatrix()
        self.events = EventLog()
        # nonce -> last valid height (None: never expires)
        self.used_nonces: Dict[str, Optional[int]] = {}
        self._lock = threading.RLock()

    @property
    def master_authority(self) -> str:
        return self._master_authority

    @contextmanager
    def _serialized(self, operation: str, caller: Optional[str] = None):
        with self._lock:
            try:
                yield
            except RegistryError as e:
                logger.debug(f"{operation} refused for {caller}: {e.kind}")
                raise

    def _require_record(self, content_id: int) -> ContentRecord:
        record = self.vault.get(content_id)
        if record is None:
            raise ContentMissing(f"Content {content_id} not found")
        return record

    def _require_owner(self, caller: str, content_id: int) -> ContentRecord:
        record = self._require_record(content_id)
        if record.owner != caller:
            raise OwnershipMismatch(f"{caller} does not own content {content_id}")
        return record

    # Mutating operations

    def register(
        self,
        caller: str,
        title: str,
        size_bytes: int,
        description: str,
        tags: List[str],
    ) -> int:
        """
        Register a new content record owned by the caller.

        The caller also receives an explicit view grant.

        Returns:
            The new content id (1 for the first registration)
        """
        with self._serialized("register", caller):
            stored_tags = validate_metadata(title, size_bytes, description, tags)

            next_id = self.counter.peek() + 1
            if next_id in self.vault:
                raise ContentAlreadyExists(f"Content {next_id} already exists")

            height = self.clock.now()
            record = ContentRecord(
                title=title,
                owner=caller,
                size_bytes=size_bytes,
                created_at=height,
                description=description,
                tags=stored_tags,
            )

            content_id = self.counter.advance()
            self.vault.insert(content_id, record)
            self.access.grant(content_id, caller, True)
            self.events.append(CONTENT_REGISTERED, content_id, caller, height, record.to_dict())

            logger.info(f"Registered content {content_id} for {caller}")
            return content_id

    def modify(
        self,
        caller: str,
        content_id: int,
        new_title: str,
        new_size: int,
        new_description: str,
        new_tags: List[str],
    ) -> bool:
        """Replace a record's metadata. Owner and created_at are kept."""
        with self._serialized("modify", caller):
            record = self._require_owner(caller, content_id)
            stored_tags = validate_metadata(new_title, new_size, new_description, new_tags)

            updated = record.with_metadata(new_title, new_size, new_description, stored_tags)
            self.vault.replace(content_id, updated)
            self.events.append(CONTENT_MODIFIED, content_id, caller, self.clock.now(), {
                "title": new_title,
                "size_bytes": new_size,
                "description": new_description,
                "tags": list(stored_tags),
            })

            logger.debug(f"Modified content {content_id}")
            return True

    def transfer_ownership(self, caller: str, content_id: int, new_owner: str) -> bool:
        """
        Hand a record to another principal.

        Grants are untouched: the previous owner keeps whatever explicit grant
        it had, and the new owner views through ownership alone.
        """
        with self._serialized("transfer_ownership", caller):
            record = self._require_owner(caller, content_id)

            self.vault.replace(content_id, record.with_owner(new_owner))
            self.events.append(OWNERSHIP_TRANSFERRED, content_id, caller, self.clock.now(), {
                "previous_owner": caller,
                "new_owner": new_owner,
            })

            logger.info(f"Transferred content {content_id}: {caller} -> {new_owner}")
            return True

    def delete(self, caller: str, content_id: int) -> bool:
        """Remove a record. Its id is never reused."""
        with self._serialized("delete", caller):
            self._require_owner(caller, content_id)

            self.vault.remove(content_id)
            purged = 0
            if self.prune_orphaned_grants:
                purged = self.access.purge(content_id)
            self.events.append(CONTENT_DELETED, content_id, caller, self.clock.now(), {
                "grants_purged": purged,
            })

            logger.info(f"Deleted content {content_id} ({purged} grants purged)")
            return True

    def set_permission(self, caller: str, content_id: int, principal: str, allowed: bool) -> bool:
        """Write an explicit view grant for a principal. Owner only."""
        with self._serialized("set_permission", caller):
            self._require_owner(caller, content_id)

            self.access.grant(content_id, principal, allowed)
            self.events.append(PERMISSION_SET, content_id, caller, self.clock.now(), {
                "principal": principal,
                "allowed": bool(allowed),
            })

            logger.info(f"Permission on {content_id} for {principal} set to {bool(allowed)}")
            return True

    # Read queries

    def retrieve(self, caller: str, content_id: int) -> ContentView:
        with self._serialized("retrieve", caller):
            record = self._require_record(content_id)
            if not (self.access.check(content_id, caller) or record.owner == caller):
                raise ViewingRestricted(f"{caller} may not view content {content_id}")
            return ContentView.from_record(content_id, record)

    def vault_statistics(self) -> VaultStatistics:
        """Totals count every registration ever made, deleted ones included."""
        with self._lock:
            return VaultStatistics(
                total_registered=self.counter.peek(),
                master_authority=self._master_authority,
            )

    def owner_of(self, content_id: int) -> str:
        with self._serialized("owner_of"):
            return self._require_record(content_id).owner

    def check_permissions(self, content_id: int, principal: str) -> PermissionReport:
        with self._serialized("check_permissions"):
            record = self._require_record(content_id)
            explicit = self.access.check(content_id, principal)
            is_owner = record.owner == principal
            return PermissionReport(
                has_explicit_permission=explicit,
                is_owner=is_owner,
                can_access=explicit or is_owner,
            )

    # Replay guard for signed calls

    def consume_nonce(self, nonce: str, valid_until: Optional[int] = None) -> bool:
        """
        Record a signed call's nonce.

        Nonces whose validity window has passed are pruned first; envelopes
        carrying them are already refused as expired.

        Returns:
            False if the nonce was used before
        """
        with self._lock:
            height = self.clock.now()
            expired = [
                n for n, until in self.used_nonces.items()
                if until is not None and until < height
            ]
            for n in expired:
                del self.used_nonces[n]

            if nonce in self.used_nonces:
                return False
            self.used_nonces[nonce] = valid_until
            return True

    def __len__(self) -> int:
        """Number of live records."""
        return len(self.vault)

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "version": STATE_VERSION,
                "master_authority": self._master_authority,
                "counter": self.counter.peek(),
                "height": self.clock.now(),
                "records": self.vault.to_dict(),
                "grants": self.access.to_list(),
                "events": self.events.to_list(),
                "nonces": dict(self.used_nonces),
            }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        clock: Optional[BlockClock] = None,
        prune_orphaned_grants: bool = False,
    ) -> "MediaRegistry":
        registry = cls(
            master_authority=data["master_authority"],
            clock=clock or BlockClock(data.get("height", 0)),
            prune_orphaned_grants=prune_orphaned_grants,
        )
        registry.vault = ContentVault.from_dict(data.get("records", {}))
        counter = data.get("counter", 0)
        if counter < registry.vault.max_id():
            raise ValueError(f"Counter {counter} is below stored content id {registry.vault.max_id()}")
        registry.counter = SequenceCounter(counter)
        registry.access = AccessMatrix.from_list(data.get("grants", []))
        registry.events = EventLog.from_list(data.get("events", []))
        registry.used_nonces = dict(data.get("nonces", {}))
        return registry
