# mediavault/snapshot.py
"""
On-disk snapshots of registry state.

Structure:
    state_dir/
        vault.json    # records, grants, counter, height and event journal
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .clock import BlockClock
from .errors import SnapshotError
from .registry import MediaRegistry

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Saves and restores a MediaRegistry as a single JSON document."""

    def __init__(self, state_dir: Path | str):
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def _snapshot_path(self) -> Path:
        return self.state_dir / "vault.json"

    def exists(self) -> bool:
        return self._snapshot_path().exists()

    def save(self, registry: MediaRegistry) -> Path:
        """Write the registry state, replacing any previous snapshot."""
        path = self._snapshot_path()
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(registry.to_dict(), f, indent=2)
        os.replace(tmp_path, path)
        logger.debug(f"Saved snapshot: {path} ({len(registry)} records)")
        return path

    def load(
        self,
        clock: Optional[BlockClock] = None,
        prune_orphaned_grants: bool = False,
    ) -> Optional[MediaRegistry]:
        """
        Restore the registry from disk.

        Returns:
            The registry, or None if no snapshot has been saved yet
        """
        path = self._snapshot_path()
        if not path.exists():
            return None

        try:
            with open(path) as f:
                data = json.load(f)
            registry = MediaRegistry.from_dict(
                data,
                clock=clock,
                prune_orphaned_grants=prune_orphaned_grants,
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load snapshot {path}: {e}")
            raise SnapshotError(f"Corrupt snapshot {path}: {e}") from e

        logger.debug(f"Loaded snapshot: {path} ({len(registry)} records)")
        return registry
