"""
Configuration for the syndication engine.

Settings live in ``<base>/config.yaml`` under a ``sync:`` section:

    sync:
      meta_prefix: syndicate
      queue_limit: 10000
      lock_attempts: 10
      lock_retry_delay: 0.5
      flush_interval: 300

Base path priority: explicit argument > SYNDICATE_BASE_PATH env var > ~/.syndicate
"""

import os
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional, Dict, Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_BASE_PATH = Path.home() / ".syndicate"
CONFIG_FILENAME = "config.yaml"
CONFIG_SECTION = "sync"


def get_base_path(explicit: Optional[Path] = None) -> Path:
    """Resolve the data directory.

    Args:
        explicit: Value from a --data-dir option or caller, if provided.
    """
    if explicit:
        return Path(explicit).expanduser()
    env_path = os.getenv("SYNDICATE_BASE_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_BASE_PATH


@dataclass
class SyncConfig:
    """
    Tunables for queueing, locking and replication.

    Attributes:
        meta_prefix: Namespace prefix for every replication metadata key
        queue_limit: Maximum object ids kept in a durable queue record
        lock_attempts: Lock acquisition attempts before giving up
        lock_retry_delay: Seconds to sleep between lock attempts
        lock_ttl: Seconds after which a stale lock expires
        max_dependency_depth: Recursion bound for dependency replication
        cache_clear_every: Clear local caches every N object ids during a flush
        flush_interval: Seconds between scheduled queue flushes
        asset_timeout: HTTP timeout for asset downloads
        db_filename: SQLite file name inside the data directory
    """
    meta_prefix: str = "syndicate"
    queue_limit: int = 10000
    lock_attempts: int = 10
    lock_retry_delay: float = 0.5
    lock_ttl: int = 60
    max_dependency_depth: int = 3
    cache_clear_every: int = 2
    flush_interval: int = 300
    asset_timeout: int = 15
    db_filename: str = "syndicate.sqlite"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SyncConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        if not data:
            return cls()

        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown sync config key: {key}")
                continue
            field_type = type(getattr(cls(), key))
            try:
                values[key] = field_type(value)
            except (TypeError, ValueError):
                raise ValueError(f"Invalid value for sync.{key}: {value!r}")
        return cls(**values)

    @classmethod
    def load(cls, base_path: Path) -> "SyncConfig":
        """
        Load configuration from ``config.yaml`` in the data directory.

        Missing files produce the defaults. Malformed files are logged and
        ignored so that a broken config never blocks a queue flush.
        """
        config_path = Path(base_path) / CONFIG_FILENAME

        if not config_path.exists():
            logger.debug(f"Config file not found at {config_path}, using defaults")
            return cls()

        try:
            config = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
            return cls()

        if not isinstance(config, dict):
            return cls()

        return cls.from_dict(config.get(CONFIG_SECTION))

    def save(self, base_path: Path) -> Path:
        """Write this config into the ``sync`` section, keeping other sections."""
        config_path = Path(base_path) / CONFIG_FILENAME
        config_path.parent.mkdir(parents=True, exist_ok=True)

        existing: Dict[str, Any] = {}
        if config_path.exists():
            existing = yaml.safe_load(config_path.read_text()) or {}

        existing[CONFIG_SECTION] = self.to_dict()
        config_path.write_text(yaml.dump(existing, default_flow_style=False))
        return config_path

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


__all__ = ["SyncConfig", "get_base_path", "DEFAULT_BASE_PATH", "CONFIG_FILENAME"]
