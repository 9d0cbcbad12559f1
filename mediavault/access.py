# mediavault/access.py
"""
Explicit viewing grants keyed by (content_id, principal).

The matrix is independent of the vault: it never checks that the content it
refers to exists. Absent entries and explicit False grants both read as
"no access" through check(); lookup() tells them apart.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class AccessMatrix:
    """Flat per-(content, principal) boolean permissions."""

    def __init__(self):
        self._grants: Dict[Tuple[int, str], bool] = {}

    def grant(self, content_id: int, principal: str, allowed: bool) -> None:
        """Record an explicit grant (or explicit denial)."""
        self._grants[(content_id, principal)] = bool(allowed)
        logger.debug(f"Grant {content_id}/{principal} = {bool(allowed)}")

    def check(self, content_id: int, principal: str) -> bool:
        return self._grants.get((content_id, principal), False)

    def lookup(self, content_id: int, principal: str) -> Optional[bool]:
        """Explicit grant value, or None when nothing was ever recorded."""
        return self._grants.get((content_id, principal))

    def purge(self, content_id: int) -> int:
        """
        Drop every grant recorded for a content id.

        Returns:
            Number of grants removed
        """
        keys = [k for k in self._grants if k[0] == content_id]
        for key in keys:
            del self._grants[key]
        return len(keys)

    def grants_for(self, content_id: int) -> Dict[str, bool]:
        return {p: v for (cid, p), v in self._grants.items() if cid == content_id}

    def to_list(self) -> List[Dict[str, Any]]:
        return [
            {"content_id": cid, "principal": p, "allowed": v}
            for (cid, p), v in self._grants.items()
        ]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> "AccessMatrix":
        matrix = cls()
        for item in data:
            matrix._grants[(int(item["content_id"]), item["principal"])] = bool(item["allowed"])
        return matrix

    def __len__(self) -> int:
        return len(self._grants)
