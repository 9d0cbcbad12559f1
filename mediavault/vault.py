# mediavault/vault.py
"""
Canonical content storage for the media vault.

The vault maps numeric content ids to ContentRecords. Ids come from the
SequenceCounter, which only ever moves forward: an id is never handed out
twice, even after the record it named has been deleted.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .errors import ContentAlreadyExists, ContentMissing, RegistryError
from .validation import validate_metadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentRecord:
    """
    Metadata describing one registered media asset.

    Attributes:
        title: 1-64 characters
        owner: Principal currently controlling the record
        size_bytes: Declared size, 1 <= size < 1e9
        created_at: Logical timestamp (block height) at registration
        description: 1-128 characters
        tags: 1-10 tags of 1-32 characters, in submission order
    """
    title: str
    owner: str
    size_bytes: int
    created_at: int
    description: str
    tags: List[str] = field(default_factory=list)

    def with_owner(self, owner: str) -> "ContentRecord":
        return replace(self, owner=owner)

    def with_metadata(
        self,
        title: str,
        size_bytes: int,
        description: str,
        tags: List[str],
    ) -> "ContentRecord":
        """Copy with new metadata; owner and created_at carry over."""
        return replace(
            self,
            title=title,
            size_bytes=size_bytes,
            description=description,
            tags=list(tags),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "owner": self.owner,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
            "description": self.description,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentRecord":
        return cls(
            title=data["title"],
            owner=data["owner"],
            size_bytes=data["size_bytes"],
            created_at=data["created_at"],
            description=data["description"],
            tags=list(data["tags"]),
        )


class ContentVault:
    """
    Point-wise map from content id to ContentRecord.

    Only MediaRegistry touches the vault; callers never see it directly.
    """

    def __init__(self):
        self._records: Dict[int, ContentRecord] = {}

    def get(self, content_id: int) -> Optional[ContentRecord]:
        return self._records.get(content_id)

    def insert(self, content_id: int, record: ContentRecord) -> None:
        """Store a new record. Fails if the id is already taken."""
        if content_id in self._records:
            raise ContentAlreadyExists(f"Content {content_id} already exists")
        self._records[content_id] = record
        logger.debug(f"Vault insert: {content_id}")

    def replace(self, content_id: int, record: ContentRecord) -> None:
        """Overwrite an existing record. Fails if the id is absent."""
        if content_id not in self._records:
            raise ContentMissing(f"Content {content_id} not found")
        self._records[content_id] = record
        logger.debug(f"Vault replace: {content_id}")

    def remove(self, content_id: int) -> ContentRecord:
        if content_id not in self._records:
            raise ContentMissing(f"Content {content_id} not found")
        logger.debug(f"Vault remove: {content_id}")
        return self._records.pop(content_id)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        # JSON object keys are strings
        return {str(k): v.to_dict() for k, v in self._records.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> "ContentVault":
        """
        Rebuild a vault from serialized records, checking every bound.

        Raises:
            ValueError: an id or record field is out of bounds
        """
        vault = cls()
        for key, record_data in data.items():
            content_id = int(key)
            if content_id < 1:
                raise ValueError(f"Invalid content id: {key}")
            try:
                validate_metadata(
                    record_data["title"],
                    record_data["size_bytes"],
                    record_data["description"],
                    record_data["tags"],
                )
            except RegistryError as e:
                raise ValueError(f"Content {content_id}: {e.kind}: {e.message}") from e
            record = ContentRecord.from_dict(record_data)
            if not isinstance(record.owner, str) or not record.owner:
                raise ValueError(f"Content {content_id}: owner must be a non-empty principal")
            if (isinstance(record.created_at, bool) or not isinstance(record.created_at, int)
                    or record.created_at < 0):
                raise ValueError(f"Content {content_id}: invalid created_at {record.created_at!r}")
            vault._records[content_id] = record
        return vault

    def max_id(self) -> int:
        """Highest stored id, or 0 when empty."""
        return max(self._records, default=0)

    def __contains__(self, content_id: int) -> bool:
        return content_id in self._records

    def __len__(self) -> int:
        return len(self._records)


class SequenceCounter:
    """Registration counter. Starts at 0, never decremented."""

    def __init__(self, value: int = 0):
        if value < 0:
            raise ValueError(f"Counter cannot start below zero: {value}")
        self._value = value

    def peek(self) -> int:
        return self._value

    def advance(self) -> int:
        """Increment and return the new value, which becomes the next id."""
        self._value += 1
        return self._value
