# mediavault/config.py
"""
Registry configuration loaded from YAML.

Example vault.yaml:
    master_authority: mv1c0ffee
    state_dir: ./vault_state
    prune_orphaned_grants: false
    log_level: INFO
    start_height: 0
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from .clock import BlockClock
from .registry import MediaRegistry

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class RegistryConfig:
    """
    Settings for a hosted registry.

    Attributes:
        master_authority: Principal that initializes the registry
        state_dir: Where snapshots are kept
        prune_orphaned_grants: Drop a record's grants when it is deleted
        log_level: Root logging level for the CLI
        start_height: Initial logical clock height for a new registry
    """
    master_authority: str
    state_dir: Path = Path("./vault_state")
    prune_orphaned_grants: bool = False
    log_level: str = "INFO"
    start_height: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        if not data.get("master_authority"):
            raise ValueError("Config requires master_authority")

        log_level = str(data.get("log_level", "INFO")).upper()
        if log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {log_level}")

        start_height = int(data.get("start_height", 0))
        if start_height < 0:
            raise ValueError(f"start_height cannot be negative: {start_height}")

        return cls(
            master_authority=str(data["master_authority"]),
            state_dir=Path(data.get("state_dir", "./vault_state")),
            prune_orphaned_grants=bool(data.get("prune_orphaned_grants", False)),
            log_level=log_level,
            start_height=start_height,
        )

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "RegistryConfig":
        data = yaml.safe_load(yaml_content) or {}
        if not isinstance(data, dict):
            raise ValueError("Config must be a YAML mapping")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path | str) -> "RegistryConfig":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            return cls.from_yaml(f.read())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "master_authority": self.master_authority,
            "state_dir": str(self.state_dir),
            "prune_orphaned_grants": self.prune_orphaned_grants,
            "log_level": self.log_level,
            "start_height": self.start_height,
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    def configure_logging(self) -> None:
        logging.basicConfig(
            level=getattr(logging, self.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    def create_registry(self) -> MediaRegistry:
        """Build an empty registry from these settings."""
        return MediaRegistry(
            master_authority=self.master_authority,
            clock=BlockClock(self.start_height),
            prune_orphaned_grants=self.prune_orphaned_grants,
        )
